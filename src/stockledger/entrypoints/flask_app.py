"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle se contente de
convertir les requêtes HTTP en commands, les envoie au
message bus, et convertit les résultats (ou les erreurs
typées du registre de stock) en réponses HTTP.

L'authentification est assurée en amont (proxy) : l'API exige
seulement l'en-tête portant l'utilisateur authentifié.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import Flask, jsonify, request

from stockledger import config
from stockledger.domain import commands, model
from stockledger.service_layer import bootstrap, handlers, unit_of_work
from stockledger.views import views


app = Flask(__name__)
config.configure_logging(config.get_settings())
bus = bootstrap.bootstrap()


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise model.InvalidArgument(f"Date invalide : {value!r}")


def _require(data: dict | None, *names: str) -> dict:
    """Retourne le corps JSON s'il porte tous les champs obligatoires."""
    data = data or {}
    missing = [name for name in names if data.get(name) is None]
    if missing:
        raise model.InvalidArgument(f"Champ manquant : {', '.join(missing)}")
    return data


def _sale_to_json(sale: model.Sale) -> dict:
    return {
        "id": sale.id,
        "item_id": sale.item_id,
        "quantity": sale.quantity,
        "sale_price": sale.sale_price,
        "timestamp": sale.timestamp.isoformat(),
        "event_id": sale.event_id,
    }


@app.before_request
def require_authenticated_user():
    settings = config.get_settings()
    if settings.require_authenticated_user and not request.headers.get(
        settings.authenticated_user_header
    ):
        return jsonify({"message": "Authentification requise"}), 401


# --- Traduction des erreurs ---


@app.errorhandler(handlers.NotFound)
def not_found(e):
    return jsonify({"message": str(e)}), 404


@app.errorhandler(model.InvalidArgument)
def invalid_argument(e):
    return jsonify({"message": str(e)}), 400


@app.errorhandler(model.InsufficientStock)
def insufficient_stock(e):
    return jsonify({"message": str(e), "scope": e.scope, "available": e.available}), 409


@app.errorhandler(unit_of_work.TransactionConflict)
def transaction_conflict(e):
    return jsonify({"message": str(e)}), 409


@app.errorhandler(unit_of_work.StoreUnavailable)
def store_unavailable(e):
    return jsonify({"message": str(e)}), 503


# --- Articles ---


@app.route("/items", methods=["POST"])
def add_item_endpoint():
    """
    POST /items
    Body JSON : { name, description?, unit_price, initial_quantity, low_stock_threshold? }
    """
    data = _require(request.json, "name", "unit_price", "initial_quantity")
    cmd = commands.CreateItem(
        name=data["name"],
        description=data.get("description", ""),
        unit_price=data["unit_price"],
        initial_quantity=data["initial_quantity"],
        low_stock_threshold=data.get("low_stock_threshold", 5),
        id=data.get("id"),
    )
    item_id = bus.handle(cmd).pop(0)
    return jsonify({"id": item_id}), 201


@app.route("/items", methods=["GET"])
def list_items_endpoint():
    return jsonify(views.list_items(bus.uow)), 200


@app.route("/items/low_stock", methods=["GET"])
def low_stock_endpoint():
    return jsonify(views.low_stock_items(bus.uow)), 200


@app.route("/items/<item_id>", methods=["GET"])
def item_endpoint(item_id: str):
    result = views.item(item_id, bus.uow)
    if result is None:
        return "not found", 404
    return jsonify(result), 200


@app.route("/items/<item_id>", methods=["PUT"])
def update_item_endpoint(item_id: str):
    data = request.json or {}
    bus.handle(
        commands.UpdateItem(
            id=item_id,
            name=data.get("name"),
            description=data.get("description"),
            unit_price=data.get("unit_price"),
            current_quantity=data.get("current_quantity"),
            low_stock_threshold=data.get("low_stock_threshold"),
        )
    )
    return "OK", 200


@app.route("/items/<item_id>", methods=["DELETE"])
def delete_item_endpoint(item_id: str):
    bus.handle(commands.DeleteItem(id=item_id))
    return "", 204


# --- Événements ---


@app.route("/events", methods=["POST"])
def add_event_endpoint():
    """
    POST /events
    Body JSON : { name, location, date, administrator }
    """
    data = _require(request.json, "name", "location", "date", "administrator")
    cmd = commands.CreateEvent(
        name=data["name"],
        location=data["location"],
        date=_parse_date(data["date"]),
        administrator=data["administrator"],
        id=data.get("id"),
    )
    event_id = bus.handle(cmd).pop(0)
    return jsonify({"id": event_id}), 201


@app.route("/events", methods=["GET"])
def list_events_endpoint():
    return jsonify(views.list_events(bus.uow)), 200


@app.route("/events/<event_id>", methods=["GET"])
def event_endpoint(event_id: str):
    result = views.event(event_id, bus.uow)
    if result is None:
        return "not found", 404
    return jsonify(result), 200


@app.route("/events/<event_id>", methods=["PUT"])
def update_event_endpoint(event_id: str):
    data = _require(request.json, "name", "location", "date", "administrator")
    bus.handle(
        commands.UpdateEvent(
            id=event_id,
            name=data["name"],
            location=data["location"],
            date=_parse_date(data["date"]),
            administrator=data["administrator"],
        )
    )
    return "OK", 200


@app.route("/events/<event_id>", methods=["DELETE"])
def delete_event_endpoint(event_id: str):
    bus.handle(commands.DeleteEvent(id=event_id))
    return "", 204


@app.route("/events/<event_id>/stock", methods=["POST"])
def allocate_stock_endpoint(event_id: str):
    """
    POST /events/<event_id>/stock
    Body JSON : { item_id, quantity }

    Transfère du stock central vers l'événement.
    """
    data = _require(request.json, "item_id", "quantity")
    cmd = commands.AllocateStock(
        event_id=event_id,
        item_id=data["item_id"],
        quantity=data["quantity"],
    )
    event_stock = bus.handle(cmd).pop(0)
    return jsonify({
        "id": event_stock.id,
        "event_id": event_stock.event_id,
        "item_id": event_stock.item_id,
        "allocated_quantity": event_stock.allocated_quantity,
    }), 201


@app.route("/events/<event_id>/stock", methods=["GET"])
def event_stock_endpoint(event_id: str):
    return jsonify(views.event_stock(event_id, bus.uow)), 200


@app.route("/events/<event_id>/stock/<item_id>", methods=["GET"])
def remaining_event_stock_endpoint(event_id: str, item_id: str):
    remaining = views.remaining_event_stock(event_id, item_id, bus.uow)
    return jsonify({
        "event_id": event_id,
        "item_id": item_id,
        "remaining_quantity": remaining,
    }), 200


# --- Ventes ---


@app.route("/sales", methods=["POST"])
def record_sale_endpoint():
    """
    POST /sales
    Body JSON : { item_id, quantity, sale_date?, event_id?, request_id? }

    Sans event_id, la vente est débitée du stock central.
    """
    data = _require(request.json, "item_id", "quantity")
    cmd = commands.RecordSale(
        item_id=data["item_id"],
        quantity=data["quantity"],
        sale_date=_parse_date(data.get("sale_date")),
        event_id=data.get("event_id"),
        request_id=data.get("request_id"),
    )
    sale = bus.handle(cmd).pop(0)
    return jsonify(_sale_to_json(sale)), 201


@app.route("/sales", methods=["GET"])
def sales_endpoint():
    return jsonify(views.sales(bus.uow, event_id=request.args.get("event_id"))), 200


@app.route("/dashboard", methods=["GET"])
def dashboard_endpoint():
    return jsonify(views.dashboard(bus.uow, today=date.today())), 200
