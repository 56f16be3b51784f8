"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure qui interrogent
directement la base de données, sans passer par le modèle de domaine.

Le stock restant d'un événement n'est jamais stocké : il est
recalculé à chaque lecture (alloué moins vendu), il ne peut donc
pas être périmé.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import Date, DateTime, bindparam, text

from stockledger.service_layer import unit_of_work

_ITEM_COLUMNS = (
    "id, name, description, unit_price, initial_quantity,"
    " current_quantity, low_stock_threshold"
)


def _as_dict(row: Any) -> dict:
    result = dict(row._mapping)
    for key, value in result.items():
        if isinstance(value, (date, datetime)):
            result[key] = value.isoformat()
    return result


def list_items(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        results = uow.session.execute(
            text(f"SELECT {_ITEM_COLUMNS} FROM items ORDER BY name")
        )
        return [_as_dict(r) for r in results]


def item(item_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    with uow:
        row = uow.session.execute(
            text(f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = :id"),
            dict(id=item_id),
        ).first()
        return _as_dict(row) if row is not None else None


def low_stock_items(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Articles dont le stock central est sous le seuil d'alerte."""
    with uow:
        results = uow.session.execute(
            text(
                f"SELECT {_ITEM_COLUMNS} FROM items"
                " WHERE current_quantity < low_stock_threshold"
                " ORDER BY current_quantity"
            )
        )
        return [_as_dict(r) for r in results]


def list_events(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        results = uow.session.execute(
            text(
                "SELECT id, name, location, date, administrator FROM events"
                " ORDER BY date DESC"
            ).columns(date=Date)
        )
        return [_as_dict(r) for r in results]


def event(event_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    with uow:
        row = uow.session.execute(
            text(
                "SELECT id, name, location, date, administrator FROM events"
                " WHERE id = :id"
            ).columns(date=Date),
            dict(id=event_id),
        ).first()
        return _as_dict(row) if row is not None else None


def remaining_event_stock(
    event_id: str, item_id: str, uow: unit_of_work.AbstractUnitOfWork
) -> int:
    """Quantité allouée au couple (événement, article) moins les quantités vendues."""
    with uow:
        remaining = uow.session.execute(
            text(
                "SELECT"
                " COALESCE((SELECT allocated_quantity FROM event_stocks"
                "           WHERE event_id = :event_id AND item_id = :item_id), 0)"
                " - COALESCE((SELECT SUM(quantity) FROM sales"
                "             WHERE event_id = :event_id AND item_id = :item_id), 0)"
            ),
            dict(event_id=event_id, item_id=item_id),
        ).scalar_one()
        return int(remaining)


def event_stock(event_id: str, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Allocations d'un événement avec, par article, l'alloué, le vendu et le restant."""
    with uow:
        results = uow.session.execute(
            text(
                "SELECT es.item_id, i.name, es.allocated_quantity,"
                " COALESCE(SUM(s.quantity), 0) AS sold_quantity"
                " FROM event_stocks es"
                " LEFT JOIN items i ON i.id = es.item_id"
                " LEFT JOIN sales s ON s.event_id = es.event_id AND s.item_id = es.item_id"
                " WHERE es.event_id = :event_id"
                " GROUP BY es.item_id, i.name, es.allocated_quantity"
                " ORDER BY i.name"
            ),
            dict(event_id=event_id),
        )
        rows = [_as_dict(r) for r in results]
    for row in rows:
        row["remaining_quantity"] = row["allocated_quantity"] - row["sold_quantity"]
    return rows


def sales(
    uow: unit_of_work.AbstractUnitOfWork, event_id: Optional[str] = None
) -> list[dict]:
    """Ventes, les plus récentes d'abord ; filtrées sur un événement si demandé."""
    query = (
        "SELECT s.id, s.item_id, i.name AS item_name, s.quantity, s.sale_price,"
        " s.timestamp, s.event_id"
        " FROM sales s LEFT JOIN items i ON i.id = s.item_id"
    )
    params: dict[str, Any] = {}
    if event_id is not None:
        query += " WHERE s.event_id = :event_id"
        params["event_id"] = event_id
    query += " ORDER BY s.timestamp DESC"
    with uow:
        results = uow.session.execute(text(query).columns(timestamp=DateTime), params)
        return [_as_dict(r) for r in results]


def dashboard(uow: unit_of_work.AbstractUnitOfWork, today: date) -> dict:
    """
    Synthèse pour le tableau de bord : chiffre d'affaires, articles vendus,
    chiffre d'affaires par jour, prochain événement.
    """
    with uow:
        totals = uow.session.execute(
            text(
                "SELECT COALESCE(SUM(sale_price), 0) AS total_revenue,"
                " COALESCE(SUM(quantity), 0) AS total_quantity"
                " FROM sales"
            )
        ).one()
        by_day = uow.session.execute(
            text(
                "SELECT date(timestamp) AS day, SUM(sale_price) AS revenue"
                " FROM sales GROUP BY date(timestamp) ORDER BY day"
            )
        )
        revenue_by_day = [
            {"day": str(row.day), "revenue": int(row.revenue)} for row in by_day
        ]
        next_event = uow.session.execute(
            text(
                "SELECT id, name, location, date, administrator FROM events"
                " WHERE date >= :today ORDER BY date LIMIT 1"
            )
            .bindparams(bindparam("today", type_=Date))
            .columns(date=Date),
            dict(today=today),
        ).first()
    return {
        "total_revenue": int(totals.total_revenue),
        "total_quantity": int(totals.total_quantity),
        "revenue_by_day": revenue_by_day,
        "low_stock_items": low_stock_items(uow),
        "next_event": _as_dict(next_event) if next_event is not None else None,
    }
