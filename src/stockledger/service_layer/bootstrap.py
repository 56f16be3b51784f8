"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est le seul endroit de l'application qui connaît les
implémentations concrètes de chaque abstraction ; les tests
y injectent leurs fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockledger.adapters import notifications, orm
from stockledger.config import Settings, get_settings
from stockledger.domain import commands, events
from stockledger.service_layer import handlers, messagebus, unit_of_work


def session_factory(settings: Settings) -> sessionmaker:
    """
    Crée le moteur, les tables manquantes et la fabrique de sessions.

    expire_on_commit=False : les entités retournées par les handlers
    restent lisibles après la fermeture de la session.
    """
    engine = create_engine(settings.database_uri, isolation_level=settings.isolation_level)
    orm.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    clock: Callable[[], datetime] = datetime.now,
    settings: Settings | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, utilise les implémentations concrètes.
    En test, on injecte des fakes via les paramètres.
    """
    settings = settings or get_settings()

    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork(session_factory(settings))

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            sender=settings.sender_email,
        )

    dependencies: dict[str, Any] = {
        "notifications": notifications_adapter,
        "clock": clock,
        **extra_dependencies,
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.SaleRecorded: [handlers.publish_sale_recorded],
    events.StockAllocated: [handlers.publish_stock_allocated],
    events.LowStock: [handlers.send_low_stock_notification],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.CreateItem: handlers.add_item,
    commands.UpdateItem: handlers.update_item,
    commands.DeleteItem: handlers.delete_item,
    commands.CreateEvent: handlers.add_event,
    commands.UpdateEvent: handlers.update_event,
    commands.DeleteEvent: handlers.delete_event,
    commands.RecordSale: handlers.record_sale,
    commands.AllocateStock: handlers.allocate_stock,
}
