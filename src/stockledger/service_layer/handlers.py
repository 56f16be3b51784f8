"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)

Toute modification d'une quantité (stock central ou stock alloué)
passe par record_sale ou allocate_stock, dans un seul Unit of Work :
lecture, vérification et écriture sont validées ensemble ou pas du tout.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from stockledger.config import get_settings
from stockledger.domain import commands, events, model

if TYPE_CHECKING:
    from stockledger.adapters.notifications import AbstractNotifications
    from stockledger.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class NotFound(Exception):
    """Levée quand un article, un événement ou une allocation référencé n'existe pas."""
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _get_item(uow: AbstractUnitOfWork, item_id: str) -> model.Item:
    item = uow.items.get(item_id)
    if item is None:
        raise NotFound(f"Article introuvable : {item_id}")
    return item


def _get_event(uow: AbstractUnitOfWork, event_id: str) -> model.Event:
    event = uow.events.get(event_id)
    if event is None:
        raise NotFound(f"Événement introuvable : {event_id}")
    return event


# --- Command Handlers : articles ---


def add_item(cmd: commands.CreateItem, uow: AbstractUnitOfWork) -> str:
    """Crée un article ; la quantité courante part de la quantité initiale."""
    item = model.Item(
        id=cmd.id or _new_id(),
        name=cmd.name,
        description=cmd.description,
        unit_price=cmd.unit_price,
        initial_quantity=cmd.initial_quantity,
        low_stock_threshold=cmd.low_stock_threshold,
    )
    with uow:
        uow.items.add(item)
        uow.commit()
    return item.id


def update_item(cmd: commands.UpdateItem, uow: AbstractUnitOfWork) -> None:
    with uow:
        item = _get_item(uow, cmd.id)
        item.update(
            name=cmd.name,
            description=cmd.description,
            unit_price=cmd.unit_price,
            current_quantity=cmd.current_quantity,
            low_stock_threshold=cmd.low_stock_threshold,
        )
        uow.commit()


def delete_item(cmd: commands.DeleteItem, uow: AbstractUnitOfWork) -> None:
    """Supprime un article. Les ventes passées gardent leur référence orpheline."""
    with uow:
        item = _get_item(uow, cmd.id)
        uow.items.delete(item)
        uow.commit()


# --- Command Handlers : événements ---


def add_event(cmd: commands.CreateEvent, uow: AbstractUnitOfWork) -> str:
    event = model.Event(
        id=cmd.id or _new_id(),
        name=cmd.name,
        location=cmd.location,
        date=cmd.date,
        administrator=cmd.administrator,
    )
    with uow:
        uow.events.add(event)
        uow.commit()
    return event.id


def update_event(cmd: commands.UpdateEvent, uow: AbstractUnitOfWork) -> None:
    with uow:
        event = _get_event(uow, cmd.id)
        event.update(cmd.name, cmd.location, cmd.date, cmd.administrator)
        uow.commit()


def delete_event(cmd: commands.DeleteEvent, uow: AbstractUnitOfWork) -> None:
    """
    Supprime un événement et, dans la même transaction, toutes ses allocations.

    Les ventes réalisées sur l'événement sont conservées. La suppression
    est conditionnée par la version lue : une allocation validée entre-temps
    la fait échouer avec TransactionConflict.
    """
    with uow:
        event = _get_event(uow, cmd.id)
        for event_stock in uow.event_stocks.list(event_id=cmd.id):
            uow.event_stocks.delete(event_stock)
        uow.events.delete(event)
        uow.commit()


# --- Command Handlers : registre de stock ---


def record_sale(
    cmd: commands.RecordSale,
    uow: AbstractUnitOfWork,
    clock: Callable[[], datetime],
) -> model.Sale:
    """
    Enregistre une vente directe ou sur un événement.

    Vente directe : débite le stock central de l'article.
    Vente sur événement : vérifie le stock alloué restant
    (alloué moins déjà vendu), sans toucher au stock central.

    Si request_id est fourni et qu'une vente porte déjà cette clé,
    elle est retournée telle quelle, sans nouveau débit. La clé ne peut
    pas être réutilisée pour une vente différente (InvalidArgument).
    """
    with uow:
        if cmd.request_id is not None:
            existing = uow.sales.list(request_id=cmd.request_id)
            if existing:
                sale = existing[0]
                if (sale.item_id, sale.quantity, sale.event_id) != (
                    cmd.item_id, cmd.quantity, cmd.event_id
                ):
                    raise model.InvalidArgument(
                        f"Clé de requête déjà utilisée pour une autre vente : {cmd.request_id}"
                    )
                logger.info("Vente déjà enregistrée pour la requête %s", cmd.request_id)
                uow.commit()
                return sale

        item = _get_item(uow, cmd.item_id)
        timestamp = model.sale_timestamp(cmd.sale_date, clock())

        if cmd.event_id is None:
            sale = item.sell(_new_id(), cmd.quantity, timestamp, request_id=cmd.request_id)
        else:
            _get_event(uow, cmd.event_id)
            event_stock = uow.event_stocks.get(
                model.EventStock.key(cmd.event_id, cmd.item_id)
            )
            already_sold = sum(
                s.quantity
                for s in uow.sales.list(event_id=cmd.event_id, item_id=cmd.item_id)
            )
            sale = item.sell_at_event(
                event_stock,
                already_sold,
                _new_id(),
                cmd.quantity,
                timestamp,
                request_id=cmd.request_id,
            )

        uow.sales.add(sale)
        uow.commit()
    return sale


def allocate_stock(
    cmd: commands.AllocateStock,
    uow: AbstractUnitOfWork,
) -> model.EventStock:
    """
    Alloue du stock central à un événement.

    Le débit de l'article et la création ou l'incrément de l'allocation
    sont validés ensemble. Retourne l'allocation à jour.

    La version de l'événement est incrémentée : une suppression
    concurrente de l'événement ne peut pas laisser d'allocation orpheline.
    """
    with uow:
        event = _get_event(uow, cmd.event_id)
        item = _get_item(uow, cmd.item_id)
        existing = uow.event_stocks.get(model.EventStock.key(cmd.event_id, cmd.item_id))
        event_stock = item.allocate(cmd.event_id, cmd.quantity, existing)
        event.register_allocation()
        if existing is None:
            uow.event_stocks.add(event_stock)
        uow.commit()
    return event_stock


# --- Event Handlers ---


def publish_sale_recorded(event: events.SaleRecorded) -> None:
    """
    Publie une vente vers l'extérieur.

    Placeholder : un système complet publierait vers un broker.
    """
    logger.info(
        "Vente publiée : %s (article %s, quantité %d, montant %d, événement %s)",
        event.sale_id, event.item_id, event.quantity, event.sale_price, event.event_id,
    )


def publish_stock_allocated(event: events.StockAllocated) -> None:
    logger.info(
        "Allocation publiée : %s -> %s (+%d, total alloué %d)",
        event.item_id, event.event_id, event.quantity, event.allocated_quantity,
    )


def send_low_stock_notification(
    event: events.LowStock,
    notifications: AbstractNotifications,
) -> None:
    """Prévient l'équipe quand un article passe sous son seuil d'alerte."""
    notifications.send(
        destination=get_settings().alerts_email,
        message=(
            f"Stock bas pour {event.name} ({event.item_id}) : "
            f"{event.current_quantity} restant(s), seuil {event.low_stock_threshold}"
        ),
    )
