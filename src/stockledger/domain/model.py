"""
Modèle de domaine du registre de stock.

Ce module contient les entités du domaine et toute l'arithmétique
des quantités : stock central (Item.current_quantity), stock alloué
aux événements (EventStock.allocated_quantity) et ventes (Sale).

L'Item est l'agrégat racine : toute opération qui touche une quantité
passe par lui, qui vérifie les invariants et émet les événements du domaine.
Chaque mutation incrémente version_number, ce qui permet à la couche de
persistance de rejeter une écriture concurrente (verrou optimiste).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from stockledger.domain import events

CENTRAL = "central"
EVENT = "event"


class InvalidArgument(Exception):
    """Levée pour une quantité, un prix ou un seuil invalide."""
    pass


class InsufficientStock(Exception):
    """
    Levée quand le stock disponible ne couvre pas la quantité demandée.

    `scope` vaut CENTRAL (stock central) ou EVENT (stock alloué restant
    pour un couple événement/article) ; `available` est la quantité
    qui était disponible au moment de la vérification.
    """

    def __init__(self, scope: str, item_name: str, available: int):
        self.scope = scope
        self.available = available
        if scope == EVENT:
            message = f"Stock d'événement insuffisant pour {item_name}. Restant : {available}"
        else:
            message = f"Stock central insuffisant pour {item_name}. Restant : {available}"
        super().__init__(message)


def check_quantity(quantity: object) -> int:
    """Une quantité est un entier strictement positif (bool exclu)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgument(f"Quantité invalide : {quantity!r}")
    return quantity


def _check_non_negative(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgument(f"{name} invalide : {value!r}")
    return value


def sale_timestamp(sale_date: Optional[date], now: datetime) -> datetime:
    """
    Horodatage d'une vente.

    Une vente antidatée garde l'heure courante : plusieurs ventes saisies
    en lot pour le même jour restent triées dans l'ordre de saisie.
    """
    if sale_date is None:
        return now
    return datetime.combine(sale_date, now.time())


def remaining_event_stock(event_stock: Optional[EventStock], sales: Iterable[Sale]) -> int:
    """Quantité allouée moins les quantités déjà vendues pour le couple."""
    allocated = event_stock.allocated_quantity if event_stock is not None else 0
    return allocated - sum(sale.quantity for sale in sales)


class Event:
    """
    Un événement de vente (salon, concert, kermesse...).

    version_number est incrémenté par toute écriture qui dépend de
    l'existence de l'événement : une allocation concurrente à sa
    suppression fait échouer l'une des deux transactions.
    """

    def __init__(self, id: str, name: str, location: str, date: date, administrator: str,
                 version_number: int = 0):
        self.id = id
        self.name = name
        self.location = location
        self.date = date
        self.administrator = administrator
        self.version_number = version_number

    def __repr__(self) -> str:
        return f"<Event {self.id}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def update(self, name: str, location: str, date: date, administrator: str) -> None:
        self.name = name
        self.location = location
        self.date = date
        self.administrator = administrator
        self.version_number += 1

    def register_allocation(self) -> None:
        self.version_number += 1


class EventStock:
    """
    Allocation d'un article à un événement.

    L'identifiant est dérivé du couple (événement, article) : il ne peut
    exister qu'un seul enregistrement par couple, les allocations
    successives s'y cumulent.
    """

    def __init__(self, event_id: str, item_id: str, allocated_quantity: int = 0,
                 version_number: int = 0):
        self.id = self.key(event_id, item_id)
        self.event_id = event_id
        self.item_id = item_id
        self.allocated_quantity = allocated_quantity
        self.version_number = version_number

    @staticmethod
    def key(event_id: str, item_id: str) -> str:
        return f"{event_id}_{item_id}"

    def __repr__(self) -> str:
        return f"<EventStock {self.id} alloué={self.allocated_quantity}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventStock):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class Sale:
    """
    Enregistrement immuable d'une vente.

    sale_price est figé au moment de la vente : une modification
    ultérieure du prix de l'article ne change pas les ventes passées.
    """

    def __init__(
        self,
        id: str,
        item_id: str,
        quantity: int,
        sale_price: int,
        timestamp: datetime,
        event_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self.id = id
        self.item_id = item_id
        self.quantity = quantity
        self.sale_price = sale_price
        self.timestamp = timestamp
        self.event_id = event_id
        self.request_id = request_id

    def __repr__(self) -> str:
        return f"<Sale {self.id} {self.item_id} x{self.quantity}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sale):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class Item:
    """
    Agrégat racine : un article stockable.

    current_quantity ne baisse que par une vente directe ou une allocation
    à un événement, et ne remonte que par une modification manuelle.
    """

    def __init__(
        self,
        id: str,
        name: str,
        description: str,
        unit_price: int,
        initial_quantity: int,
        current_quantity: Optional[int] = None,
        low_stock_threshold: int = 5,
        version_number: int = 0,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.unit_price = _check_non_negative("Prix unitaire", unit_price)
        self.initial_quantity = _check_non_negative("Quantité initiale", initial_quantity)
        if current_quantity is None:
            current_quantity = initial_quantity
        self.current_quantity = _check_non_negative("Quantité", current_quantity)
        self.low_stock_threshold = _check_non_negative("Seuil d'alerte", low_stock_threshold)
        self.version_number = version_number
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Item {self.id} stock={self.current_quantity}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_low_stock(self) -> bool:
        return self.current_quantity < self.low_stock_threshold

    def update(self, **changes: object) -> None:
        """
        Modification manuelle (formulaire d'administration).

        C'est le seul chemin qui peut augmenter le stock central.
        """
        for name in ("unit_price", "current_quantity", "low_stock_threshold"):
            if changes.get(name) is not None:
                _check_non_negative(name, changes[name])
        for name in ("name", "description", "unit_price", "current_quantity", "low_stock_threshold"):
            if changes.get(name) is not None:
                setattr(self, name, changes[name])
        self.version_number += 1

    def _withdraw(self, quantity: int) -> None:
        if self.current_quantity < quantity:
            raise InsufficientStock(CENTRAL, self.name, self.current_quantity)
        was_low = self.is_low_stock
        self.current_quantity -= quantity
        self.version_number += 1
        if self.is_low_stock and not was_low:
            self.events.append(
                events.LowStock(
                    item_id=self.id,
                    name=self.name,
                    current_quantity=self.current_quantity,
                    low_stock_threshold=self.low_stock_threshold,
                )
            )

    def _new_sale(self, sale_id: str, quantity: int, timestamp: datetime,
                  event_id: Optional[str], request_id: Optional[str]) -> Sale:
        sale = Sale(
            id=sale_id,
            item_id=self.id,
            quantity=quantity,
            sale_price=self.unit_price * quantity,
            timestamp=timestamp,
            event_id=event_id,
            request_id=request_id,
        )
        self.events.append(
            events.SaleRecorded(
                sale_id=sale.id,
                item_id=sale.item_id,
                quantity=sale.quantity,
                sale_price=sale.sale_price,
                event_id=sale.event_id,
            )
        )
        return sale

    def sell(self, sale_id: str, quantity: int, timestamp: datetime,
             request_id: Optional[str] = None) -> Sale:
        """Vente directe : débite le stock central."""
        check_quantity(quantity)
        self._withdraw(quantity)
        return self._new_sale(sale_id, quantity, timestamp, None, request_id)

    def sell_at_event(
        self,
        event_stock: Optional[EventStock],
        already_sold: int,
        sale_id: str,
        quantity: int,
        timestamp: datetime,
        request_id: Optional[str] = None,
    ) -> Sale:
        """
        Vente sur un événement : débite le stock alloué restant.

        Le stock central n'est pas touché, il a déjà été débité à
        l'allocation. La version de l'allocation est incrémentée pour que
        deux ventes concurrentes sur le même couple entrent en conflit.
        """
        check_quantity(quantity)
        allocated = event_stock.allocated_quantity if event_stock is not None else 0
        remaining = allocated - already_sold
        if remaining < quantity:
            raise InsufficientStock(EVENT, self.name, remaining)
        event_stock.version_number += 1
        return self._new_sale(sale_id, quantity, timestamp, event_stock.event_id, request_id)

    def allocate(self, event_id: str, quantity: int,
                 event_stock: Optional[EventStock] = None) -> EventStock:
        """
        Transfère `quantity` du stock central vers l'événement.

        Crée l'allocation si elle n'existe pas encore, sinon l'incrémente.
        Retourne l'allocation à jour.
        """
        check_quantity(quantity)
        self._withdraw(quantity)
        if event_stock is None:
            event_stock = EventStock(event_id=event_id, item_id=self.id)
        event_stock.allocated_quantity += quantity
        event_stock.version_number += 1
        self.events.append(
            events.StockAllocated(
                event_id=event_id,
                item_id=self.id,
                quantity=quantity,
                allocated_quantity=event_stock.allocated_quantity,
            )
        )
        return event_stock
