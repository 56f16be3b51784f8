"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ignorant
de la persistance.

Les tables items, events et event_stocks portent une colonne version_number
déclarée comme version_id_col : chaque UPDATE ou DELETE est conditionné
par l'ancienne version. Si un autre client a écrit entre-temps, l'ordre
ne touche aucune ligne et SQLAlchemy lève StaleDataError.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    event,
)
from sqlalchemy.orm import registry

from stockledger.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)

# --- Définition des tables ---

items = Table(
    "items",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("unit_price", Integer, nullable=False),
    Column("initial_quantity", Integer, nullable=False),
    Column("current_quantity", Integer, nullable=False),
    Column("low_stock_threshold", Integer, nullable=False, server_default="5"),
    Column("version_number", Integer, nullable=False, server_default="0"),
    CheckConstraint("current_quantity >= 0", name="ck_items_current_quantity"),
)

events = Table(
    "events",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("location", String(255), nullable=False),
    Column("date", Date, nullable=False),
    Column("administrator", String(255), nullable=False),
    Column("version_number", Integer, nullable=False, server_default="0"),
)

# La clé primaire composite "<event_id>_<item_id>" garantit l'unicité
# d'une allocation par couple, sans recherche de doublons à la lecture.
event_stocks = Table(
    "event_stocks",
    metadata,
    Column("id", String(129), primary_key=True),
    Column("event_id", String(64), nullable=False, index=True),
    Column("item_id", String(64), nullable=False),
    Column("allocated_quantity", Integer, nullable=False),
    Column("version_number", Integer, nullable=False, server_default="0"),
    CheckConstraint("allocated_quantity >= 0", name="ck_event_stocks_allocated_quantity"),
)

sales = Table(
    "sales",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("item_id", String(64), nullable=False, index=True),
    Column("quantity", Integer, nullable=False),
    Column("sale_price", Integer, nullable=False),
    Column("timestamp", DateTime, nullable=False),
    Column("event_id", String(64), nullable=True, index=True),
    Column("request_id", String(64), nullable=True, unique=True),
    CheckConstraint("quantity > 0", name="ck_sales_quantity"),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Sans effet si le mapping est déjà en place (l'API et les tests
    peuvent tous deux le démarrer).
    """
    if mapper_registry.mappers:
        return
    mapper_registry.map_imperatively(
        model.Item,
        items,
        version_id_col=items.c.version_number,
        version_id_generator=False,
    )
    mapper_registry.map_imperatively(
        model.Event,
        events,
        version_id_col=events.c.version_number,
        version_id_generator=False,
    )
    mapper_registry.map_imperatively(
        model.EventStock,
        event_stocks,
        version_id_col=event_stocks.c.version_number,
        version_id_generator=False,
    )
    mapper_registry.map_imperatively(model.Sale, sales)


@event.listens_for(model.Item, "load")
def receive_load(item: model.Item, _: object) -> None:
    """Initialise la liste d'événements quand un Item est chargé depuis la BDD."""
    item.events = []
