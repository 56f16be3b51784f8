"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
La configuration pointe vers une base SQLite en mémoire avant tout import
de l'API, qui construit son bus au chargement du module.
"""

import os

os.environ.setdefault("STOCKLEDGER_DATABASE_URI", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockledger.adapters import orm


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


@pytest.fixture
def sqlite_session_factory():
    """Fabrique de sessions sur une base SQLite en mémoire avec les tables."""
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def file_session_factory(tmp_path):
    """
    Fabrique de sessions sur un fichier SQLite.

    Contrairement à la base en mémoire, deux sessions y ont chacune
    leur propre connexion : on peut simuler deux clients concurrents.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'stock.db'}")
    orm.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()
