"""
Configuration de l'application.

Les paramètres sont lus depuis l'environnement (préfixe STOCKLEDGER_)
ou un fichier .env, via pydantic-settings.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class Settings(BaseSettings):
    """Paramètres partagés par l'API, le Unit of Work et les notifications."""

    database_uri: str = Field(default="sqlite:///stockledger.db")
    isolation_level: str = Field(default="SERIALIZABLE")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=5005)
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    alerts_email: str = Field(default="stock@example.com")
    sender_email: str = Field(default="inventaire@example.com")
    require_authenticated_user: bool = Field(default=True)
    authenticated_user_header: str = Field(default="X-Authenticated-User")

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="STOCKLEDGER_", extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Configure le niveau et le format du logging racine."""
    logging.basicConfig(level=settings.log_level, format=_LOG_FORMAT)
