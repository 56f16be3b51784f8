"""
Tests end-to-end de l'API Flask.

Ces tests vérifient le flux complet :
HTTP request → Flask → Message Bus → Handlers → Repository → SQLite

On utilise le test client Flask avec une base SQLite en mémoire,
ce qui donne des tests rapides tout en couvrant toute la chaîne.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockledger.adapters import notifications, orm
from stockledger.entrypoints.flask_app import app
from stockledger.service_layer import bootstrap, unit_of_work


class FakeNotifications(notifications.AbstractNotifications):
    def __init__(self):
        self.sent = []

    def send(self, destination: str, message: str) -> None:
        self.sent.append({"destination": destination, "message": message})


@pytest.fixture
def sqlite_bus():
    """Crée un message bus configuré avec SQLite en mémoire."""
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    uow = unit_of_work.SqlAlchemyUnitOfWork(session_factory=session_factory)
    return bootstrap.bootstrap(
        start_orm=False,
        uow=uow,
        notifications_adapter=FakeNotifications(),
    )


@pytest.fixture
def client(sqlite_bus):
    """Client de test Flask authentifié, avec le bus injecté."""
    import stockledger.entrypoints.flask_app as flask_module

    original_bus = flask_module.bus
    flask_module.bus = sqlite_bus
    app.config["TESTING"] = True

    with app.test_client() as client:
        client.environ_base["HTTP_X_AUTHENTICATED_USER"] = "awa@example.com"
        yield client

    flask_module.bus = original_bus


def créer_article(client, item_id="tshirt", quantité=40, prix=2500):
    response = client.post("/items", json={
        "id": item_id,
        "name": "T-shirt",
        "description": "Coton",
        "unit_price": prix,
        "initial_quantity": quantité,
    })
    assert response.status_code == 201


def créer_événement(client, event_id="salon"):
    response = client.post("/events", json={
        "id": event_id,
        "name": "Salon",
        "location": "Douala",
        "date": "2026-11-02",
        "administrator": "Awa",
    })
    assert response.status_code == 201


class TestAuthentification:
    def test_sans_utilisateur_retourne_401(self, sqlite_bus):
        import stockledger.entrypoints.flask_app as flask_module

        original_bus = flask_module.bus
        flask_module.bus = sqlite_bus
        try:
            with app.test_client() as anonyme:
                response = anonyme.get("/items")
        finally:
            flask_module.bus = original_bus

        assert response.status_code == 401


class TestArticles:
    def test_créer_et_lire_un_article(self, client):
        response = client.post("/items", json={
            "name": "Casquette",
            "unit_price": 3000,
            "initial_quantity": 12,
        })
        assert response.status_code == 201
        item_id = response.get_json()["id"]

        response = client.get(f"/items/{item_id}")
        assert response.status_code == 200
        assert response.get_json()["current_quantity"] == 12

    def test_article_inexistant_retourne_404(self, client):
        assert client.get("/items/inexistant").status_code == 404

    def test_champ_manquant_retourne_400(self, client):
        response = client.post("/items", json={"name": "Casquette"})
        assert response.status_code == 400
        assert "unit_price" in response.get_json()["message"]

    def test_modification_manuelle_du_stock(self, client):
        créer_article(client, quantité=10)

        response = client.put("/items/tshirt", json={"current_quantity": 30})

        assert response.status_code == 200
        article = client.get("/items/tshirt").get_json()
        assert article["current_quantity"] == 30
        assert article["initial_quantity"] == 10

    def test_supprimer_un_article(self, client):
        créer_article(client)
        assert client.delete("/items/tshirt").status_code == 204
        assert client.get("/items/tshirt").status_code == 404


class TestVentes:
    def test_vente_directe(self, client):
        créer_article(client, quantité=40, prix=2500)

        response = client.post("/sales", json={"item_id": "tshirt", "quantity": 3})

        assert response.status_code == 201
        vente = response.get_json()
        assert vente["sale_price"] == 7500
        assert vente["event_id"] is None
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 37

    def test_vente_antidatée(self, client):
        créer_article(client)

        response = client.post("/sales", json={
            "item_id": "tshirt", "quantity": 1, "sale_date": "2026-09-01",
        })

        assert response.get_json()["timestamp"].startswith("2026-09-01T")

    def test_stock_central_insuffisant_retourne_409(self, client):
        créer_article(client, quantité=2)

        response = client.post("/sales", json={"item_id": "tshirt", "quantity": 3})

        assert response.status_code == 409
        data = response.get_json()
        assert data["scope"] == "central"
        assert data["available"] == 2
        assert client.get("/sales").get_json() == []

    def test_quantité_invalide_retourne_400(self, client):
        créer_article(client)
        response = client.post("/sales", json={"item_id": "tshirt", "quantity": 0})
        assert response.status_code == 400

    def test_article_inconnu_retourne_404(self, client):
        response = client.post("/sales", json={"item_id": "inconnu", "quantity": 1})
        assert response.status_code == 404
        assert "Article introuvable" in response.get_json()["message"]

    def test_requête_rejouée_avec_la_même_clé(self, client):
        créer_article(client, quantité=10)
        payload = {"item_id": "tshirt", "quantity": 2, "request_id": "caisse-1-7"}

        première = client.post("/sales", json=payload).get_json()
        seconde = client.post("/sales", json=payload).get_json()

        assert seconde["id"] == première["id"]
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 8

    def test_clé_réutilisée_pour_une_autre_vente_retourne_400(self, client):
        créer_article(client, quantité=10)
        client.post("/sales", json={"item_id": "tshirt", "quantity": 2, "request_id": "caisse-1-7"})

        response = client.post("/sales", json={
            "item_id": "tshirt", "quantity": 5, "request_id": "caisse-1-7",
        })

        assert response.status_code == 400
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 8

    def test_vente_sans_quantité_retourne_400(self, client):
        créer_article(client)
        response = client.post("/sales", json={"item_id": "tshirt"})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Champ manquant : quantity"


class TestÉvénements:
    def test_exemple_complet(self, client):
        créer_article(client, quantité=40, prix=2500)
        créer_événement(client)

        response = client.post("/events/salon/stock", json={"item_id": "tshirt", "quantity": 10})
        assert response.status_code == 201
        assert response.get_json()["allocated_quantity"] == 10
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 30

        response = client.post("/sales", json={
            "item_id": "tshirt", "quantity": 4, "event_id": "salon",
        })
        assert response.status_code == 201
        assert response.get_json()["sale_price"] == 10000

        response = client.get("/events/salon/stock/tshirt")
        assert response.get_json()["remaining_quantity"] == 6
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 30

        response = client.post("/sales", json={
            "item_id": "tshirt", "quantity": 10, "event_id": "salon",
        })
        assert response.status_code == 409
        assert response.get_json()["scope"] == "event"
        assert response.get_json()["available"] == 6

    def test_allocations_cumulées(self, client):
        créer_article(client, quantité=40)
        créer_événement(client)

        client.post("/events/salon/stock", json={"item_id": "tshirt", "quantity": 10})
        client.post("/events/salon/stock", json={"item_id": "tshirt", "quantity": 5})

        lignes = client.get("/events/salon/stock").get_json()
        assert len(lignes) == 1
        assert lignes[0]["allocated_quantity"] == 15
        assert client.get("/items/tshirt").get_json()["current_quantity"] == 25

    def test_allocation_vers_un_événement_inconnu(self, client):
        créer_article(client)
        response = client.post("/events/concert/stock", json={"item_id": "tshirt", "quantity": 1})
        assert response.status_code == 404

    def test_supprimer_un_événement(self, client):
        créer_article(client)
        créer_événement(client)
        client.post("/events/salon/stock", json={"item_id": "tshirt", "quantity": 10})
        client.post("/sales", json={"item_id": "tshirt", "quantity": 1, "event_id": "salon"})

        assert client.delete("/events/salon").status_code == 204

        assert client.get("/events/salon").status_code == 404
        assert client.get("/events/salon/stock").get_json() == []
        assert len(client.get("/sales?event_id=salon").get_json()) == 1

    def test_modifier_un_événement(self, client):
        créer_événement(client)

        response = client.put("/events/salon", json={
            "name": "Salon 2026",
            "location": "Yaoundé",
            "date": "2026-11-03",
            "administrator": "Awa",
        })

        assert response.status_code == 200
        événement = client.get("/events/salon").get_json()
        assert événement["location"] == "Yaoundé"
        assert événement["date"] == "2026-11-03"


class TestTableauDeBord:
    def test_synthèse(self, client):
        créer_article(client, quantité=6, prix=1000)
        client.post("/sales", json={"item_id": "tshirt", "quantity": 2})

        data = client.get("/dashboard").get_json()

        assert data["total_revenue"] == 2000
        assert data["total_quantity"] == 2
        assert [i["id"] for i in data["low_stock_items"]] == ["tshirt"]
