"""
Pattern Unit of Work.

Le Unit of Work (UoW) est la primitive de transaction atomique du
registre de stock : lecture d'un instantané cohérent des enregistrements
concernés, décision, puis écriture de toutes les modifications d'un coup,
ou d'aucune.

    with uow:
        # ... lectures et modifications via les repositories ...
        uow.commit()

Sans commit(), tout est annulé à la sortie du bloc. Les erreurs de la
base sont traduites en TransactionConflict (écriture concurrente
détectée, l'appelant peut recommencer depuis une lecture fraîche) ou
StoreUnavailable (base injoignable).
"""

from __future__ import annotations

import abc
import logging
import threading
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from stockledger.adapters import repository
from stockledger.domain import events, model

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
SERIALIZATION_FAILURES = {"40001", "40P01"}


class TransactionConflict(Exception):
    """Une écriture concurrente sur les mêmes enregistrements a annulé la transaction."""
    pass


class StoreUnavailable(Exception):
    """La base de données est injoignable."""
    pass


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit un repository par collection et gère commit/rollback.
    Le rollback est automatique si commit() n'est pas appelé
    (grâce au __exit__ du context manager).
    """

    items: repository.AbstractRepository
    events: repository.AbstractRepository
    event_stocks: repository.AbstractRepository
    sales: repository.AbstractRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self) -> Iterator[events.Event]:
        """
        Collecte les événements émis par les articles vus pendant la transaction.

        Les articles sont l'agrégat racine : ventes et allocations
        émettent leurs événements depuis l'Item concerné.
        """
        for item in self.items.seen:
            while item.events:
                yield item.events.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


def _translate(exc: BaseException) -> Optional[Exception]:
    if isinstance(exc, (StaleDataError, IntegrityError)):
        return TransactionConflict(
            "Le stock a été modifié par une autre opération, veuillez réessayer."
        )
    if isinstance(exc, OperationalError):
        code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        if code in SERIALIZATION_FAILURES:
            return TransactionConflict(
                "Le stock a été modifié par une autre opération, veuillez réessayer."
            )
        return StoreUnavailable("Base de données indisponible.")
    return None


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager,
    la ferme à la sortie. Rollback automatique si pas de commit.

    Une même instance est partagée par le bus entre toutes les requêtes :
    la session et les repositories sont propres à chaque thread, deux
    requêtes simultanées ne voient jamais la transaction de l'autre.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> Session:
        return self._local.session

    @property
    def items(self) -> repository.SqlAlchemyRepository:
        return self._local.items

    @property
    def events(self) -> repository.SqlAlchemyRepository:
        return self._local.events

    @property
    def event_stocks(self) -> repository.SqlAlchemyRepository:
        return self._local.event_stocks

    @property
    def sales(self) -> repository.SqlAlchemyRepository:
        return self._local.sales

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        session = self.session_factory()
        self._local.session = session
        self._local.items = repository.SqlAlchemyRepository(session, model.Item)
        self._local.events = repository.SqlAlchemyRepository(session, model.Event)
        self._local.event_stocks = repository.SqlAlchemyRepository(session, model.EventStock)
        self._local.sales = repository.SqlAlchemyRepository(session, model.Sale)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        super().__exit__(exc_type, exc, tb)
        self.session.close()
        if isinstance(exc, SQLAlchemyError):
            translated = _translate(exc)
            if translated is not None:
                raise translated from exc

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            translated = _translate(e)
            if translated is None:
                raise
            logger.debug("Échec du commit : %s", e)
            raise translated from e

    def rollback(self) -> None:
        self.session.rollback()
