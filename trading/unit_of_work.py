import logging

from django.db import (
    DEFAULT_DB_ALIAS,
    DatabaseError,
    OperationalError,
    transaction,
)

from .events import publish_safely
from .exceptions import Conflict, InternalError

# Serialization failures, deadlocks and lock timeouts. Constraint violations
# are not retryable and end up as InternalError.
CONTENTION_ERRORS = (OperationalError,)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """All-or-nothing scope around one business operation.

    Every write made while the scope is open commits together or not at all.
    Notifications registered with :meth:`publish` are sent only after a
    successful commit and can never undo it.

        with UnitOfWork(publisher) as uow:
            stock.reserve_and_decrement(uow, product_id, qty)
            uow.publish("OrderConfirmed", {...})

    Database contention surfaces as ``Conflict``; any other database failure as
    ``InternalError``. Domain errors raised inside the scope pass through
    unchanged after the rollback.
    """

    def __init__(self, publisher=None, using=DEFAULT_DB_ALIAS):
        self.publisher = publisher
        self.using = using
        self._atomic = None

    def __enter__(self):
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        atomic, self._atomic = self._atomic, None
        try:
            atomic.__exit__(exc_type, exc, tb)
        except CONTENTION_ERRORS as err:
            logger.warning("Transaction aborted by contention: %s", err)
            raise Conflict() from err
        except DatabaseError as err:
            logger.exception("Transaction commit failed")
            raise InternalError("Storage failure.") from err
        if exc_type is None:
            return False
        if issubclass(exc_type, CONTENTION_ERRORS):
            logger.warning("Transaction aborted by contention: %s", exc)
            raise Conflict() from exc
        if issubclass(exc_type, DatabaseError):
            logger.error("Transaction rolled back: %s", exc)
            raise InternalError("Storage failure.") from exc
        return False

    @property
    def active(self):
        return (
            self._atomic is not None
            and transaction.get_connection(self.using).in_atomic_block
        )

    def ensure_active(self):
        if not self.active:
            raise InternalError("Ledger writes require an open unit of work.")

    def on_commit(self, func):
        transaction.on_commit(func, using=self.using)

    def publish(self, event_name, payload):
        if self.publisher is None:
            return
        publisher = self.publisher
        self.on_commit(lambda: publish_safely(publisher, event_name, payload))
