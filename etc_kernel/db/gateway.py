"""
Module: etc_kernel.db.gateway
Responsibility: The transactional persistence contract every higher component
    writes through, plus the SQLAlchemy base class that implements it.
Architecture position: Kernel > DB.  Entity-specific gateways in
    etc_ingestion.gateway and etc_mapping.gateway subclass SqlAlchemyGateway.

Invariants enforced:
    - ``begin_tx`` returns a NEW gateway instance bound to one Session; every
      call on that instance participates in the transaction.
    - Exactly one of ``commit_tx`` / ``rollback_tx`` takes effect per
      ``begin_tx``.  Once finished, further commit raises, rollback is a no-op.
    - A failed commit rolls the Session back before raising TransactionError.
    - ``transaction()`` rolls back and re-raises the original exception when
      anything escapes its block.

Failure modes:
    - TransactionError on begin, commit or rollback failure.
    - OperationCancelledError when the context is already cancelled at begin.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Protocol, TypeVar, runtime_checkable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from etc_kernel.domain.clock import Clock
from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.exceptions import PersistenceError, TransactionError
from etc_kernel.logging_config import get_logger

logger = get_logger("db.gateway")

G = TypeVar("G", bound="TransactionalGateway")


@runtime_checkable
class TransactionalGateway(Protocol):
    """Capability contract shared by every entity gateway."""

    def begin_tx(self: G, ctx: OperationContext | None = None) -> G: ...

    def commit_tx(self) -> None: ...

    def rollback_tx(self) -> None: ...

    def ping(self, ctx: OperationContext | None = None) -> None: ...


class SqlAlchemyGateway:
    """
    SQLAlchemy implementation of TransactionalGateway.

    Contract:
        Unscoped instances open a short-lived Session per call and commit it.
        Scoped instances (returned by ``begin_tx``) share one Session until
        ``commit_tx`` or ``rollback_tx``.

    Guarantees:
        - Subclasses keep the ``(session_factory, clock, *, session=None)``
          constructor so ``begin_tx`` can rebuild them.

    Non-goals:
        - No nested ``begin_tx`` on an already-scoped instance.
    """

    entity_name = "entity"

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        *,
        session: Session | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._tx_session = session
        self._finished = False

    @property
    def in_transaction(self) -> bool:
        return self._tx_session is not None and not self._finished

    def begin_tx(self, ctx: OperationContext | None = None):
        ensure_context(ctx).raise_if_cancelled()
        if self._tx_session is not None:
            raise TransactionError("begin", "gateway is already scoped to a transaction")
        session = self._session_factory()
        try:
            session.begin()
        except SQLAlchemyError as exc:
            session.close()
            raise TransactionError("begin", str(exc)) from exc
        logger.debug("transaction_started", extra={"entity": self.entity_name})
        return type(self)(self._session_factory, self._clock, session=session)

    def commit_tx(self) -> None:
        session = self._require_open_tx("commit")
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning(
                "transaction_commit_failed",
                extra={"entity": self.entity_name, "error": str(exc)},
            )
            raise TransactionError("commit", str(exc)) from exc
        finally:
            self._finished = True
            session.close()
        logger.debug("transaction_committed", extra={"entity": self.entity_name})

    def rollback_tx(self) -> None:
        if self._tx_session is None:
            raise TransactionError("rollback", "no transaction to roll back")
        if self._finished:
            return
        session = self._tx_session
        try:
            session.rollback()
        except SQLAlchemyError as exc:
            raise TransactionError("rollback", str(exc)) from exc
        finally:
            self._finished = True
            session.close()
        logger.debug("transaction_rolled_back", extra={"entity": self.entity_name})

    def ping(self, ctx: OperationContext | None = None) -> None:
        ensure_context(ctx).raise_if_cancelled()
        try:
            with self._use_session() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise PersistenceError("ping", self.entity_name, str(exc)) from exc

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _require_open_tx(self, operation: str) -> Session:
        if self._tx_session is None:
            raise TransactionError(operation, "no active transaction")
        if self._finished:
            raise TransactionError(operation, "transaction already finished")
        return self._tx_session

    @contextmanager
    def _use_session(self) -> Iterator[Session]:
        """Yield the transaction Session, or a one-shot committed Session."""
        if self._tx_session is not None:
            yield self._require_open_tx("use")
            return
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _write(self, operation: str) -> Iterator[Session]:
        """
        Run a write inside a SAVEPOINT so a rejected statement leaves the
        enclosing transaction usable.
        """
        with self._use_session() as session:
            try:
                with session.begin_nested():
                    yield session
                    session.flush()
            except SQLAlchemyError as exc:
                raise PersistenceError(operation, self.entity_name, str(exc)) from exc


@contextmanager
def transaction(gateway: G, ctx: OperationContext | None = None) -> Iterator[G]:
    """
    Begin a transaction on ``gateway`` and yield the scoped instance.

    Commits on normal exit.  If anything escapes the block the transaction
    is rolled back and the original exception re-raised.
    """
    tx = gateway.begin_tx(ctx)
    try:
        yield tx
    except BaseException:
        try:
            tx.rollback_tx()
        except TransactionError:
            logger.error("transaction_rollback_failed", exc_info=True)
        raise
    tx.commit_tx()
