"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass
from typing import Optional


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class SaleRecorded(Event):
    """Une vente a été enregistrée (directe ou sur un événement)."""

    sale_id: str
    item_id: str
    quantity: int
    sale_price: int
    event_id: Optional[str] = None


@dataclass(frozen=True)
class StockAllocated(Event):
    """Du stock central a été transféré vers un événement."""

    event_id: str
    item_id: str
    quantity: int
    allocated_quantity: int


@dataclass(frozen=True)
class LowStock(Event):
    """Le stock central d'un article vient de passer sous son seuil d'alerte."""

    item_id: str
    name: str
    current_quantity: int
    low_stock_threshold: int
