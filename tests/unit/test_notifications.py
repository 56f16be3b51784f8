"""
Tests de l'envoi des alertes par email, sans serveur SMTP.
"""

import pytest

from stockledger.adapters import notifications


class FakeSMTP:
    envoyés: list = []

    def __init__(self, host, port):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass

    def send_message(self, message):
        FakeSMTP.envoyés.append(message)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.envoyés = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_alerte_avec_un_nom_accentué(smtp):
    email = notifications.EmailNotifications("localhost", 587, "inventaire@example.com")

    email.send("stock@example.com", "Stock bas pour Écharpe (echarpe) : 2 restant(s), seuil 5")

    [message] = smtp.envoyés
    assert message["To"] == "stock@example.com"
    assert message["From"] == "inventaire@example.com"
    assert message["Subject"] == "Alerte de stock"
    assert "Écharpe" in message.get_content()
    assert message.as_bytes()
