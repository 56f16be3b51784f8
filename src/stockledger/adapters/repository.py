"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get, list, delete)
qui masque les détails de l'accès aux données. Il n'y a pas de
méthode update : les modifications des entités chargées sont suivies
par le Unit of Work et écrites au commit.

Un repository est instancié par collection (articles, événements,
allocations, ventes) ; la classe d'entité est passée au constructeur.
"""

from __future__ import annotations

import abc
from typing import Any

from sqlalchemy.orm import Session


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository.

    Les méthodes publiques gèrent le tracking via `seen`, puis délèguent
    aux méthodes abstraites préfixées _ que les sous-classes implémentent.
    """

    def __init__(self) -> None:
        # `seen` trace toutes les entités consultées pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[Any] = set()

    def add(self, entity: Any) -> None:
        self._add(entity)
        self.seen.add(entity)

    def get(self, id: str) -> Any | None:
        """Récupère une entité par son identifiant, None si absente."""
        entity = self._get(id)
        if entity is not None:
            self.seen.add(entity)
        return entity

    def list(self, **filters: Any) -> list[Any]:
        """Toutes les entités, ou celles dont les champs égalent `filters`."""
        entities = self._list(**filters)
        self.seen.update(entities)
        return entities

    def delete(self, entity: Any) -> None:
        self._delete(entity)

    @abc.abstractmethod
    def _add(self, entity: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id: str) -> Any | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _list(self, **filters: Any) -> list[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def _delete(self, entity: Any) -> None:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Implémentation concrète du repository avec SQLAlchemy."""

    def __init__(self, session: Session, entity_class: type):
        super().__init__()
        self.session = session
        self.entity_class = entity_class

    def _add(self, entity: Any) -> None:
        self.session.add(entity)

    def _get(self, id: str) -> Any | None:
        return self.session.get(self.entity_class, id)

    def _list(self, **filters: Any) -> list[Any]:
        return self.session.query(self.entity_class).filter_by(**filters).all()

    def _delete(self, entity: Any) -> None:
        self.session.delete(entity)
