"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class CreateItem(Command):
    """Demande de création d'un article en stock central."""

    name: str
    description: str
    unit_price: int
    initial_quantity: int
    low_stock_threshold: int = 5
    id: Optional[str] = None


@dataclass(frozen=True)
class UpdateItem(Command):
    """
    Modification manuelle d'un article.

    Les champs laissés à None ne sont pas modifiés. La quantité
    initiale n'est jamais modifiable.
    """

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    unit_price: Optional[int] = None
    current_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None


@dataclass(frozen=True)
class DeleteItem(Command):
    id: str


@dataclass(frozen=True)
class CreateEvent(Command):
    """Demande de création d'un événement de vente."""

    name: str
    location: str
    date: date
    administrator: str
    id: Optional[str] = None


@dataclass(frozen=True)
class UpdateEvent(Command):
    id: str
    name: str
    location: str
    date: date
    administrator: str


@dataclass(frozen=True)
class DeleteEvent(Command):
    """Suppression d'un événement et de toutes ses allocations."""

    id: str


@dataclass(frozen=True)
class RecordSale(Command):
    """
    Enregistrement d'une vente.

    Sans event_id, c'est une vente directe débitée du stock central.
    request_id est une clé d'idempotence optionnelle fournie par l'appelant.
    """

    item_id: str
    quantity: int
    sale_date: Optional[date] = None
    event_id: Optional[str] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class AllocateStock(Command):
    """Transfert d'une quantité du stock central vers un événement."""

    event_id: str
    item_id: str
    quantity: int
