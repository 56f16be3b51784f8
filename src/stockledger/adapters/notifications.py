"""
Adapter pour les notifications.

Les alertes de stock bas partent par email. Le domaine ne voit que
AbstractNotifications ; les tests y branchent un fake.
"""

from __future__ import annotations

import abc
import smtplib
from email.message import EmailMessage

SUBJECT = "Alerte de stock"


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour les notifications."""

    @abc.abstractmethod
    def send(self, destination: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """
    Envoi par SMTP.

    Le message est encodé en UTF-8 : les noms d'articles accentués
    (« Écharpe ») passent tels quels.
    """

    def __init__(self, smtp_host: str, smtp_port: int, sender: str):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender

    def build(self, destination: str, message: str) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = SUBJECT
        email["From"] = self.sender
        email["To"] = destination
        email.set_content(message)
        return email

    def send(self, destination: str, message: str) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.send_message(self.build(destination, message))
