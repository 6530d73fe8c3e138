"""
Scoped ledger transactions and cancellation
"""
from contextlib import contextmanager
from typing import Iterator, Optional
import threading

from sqlalchemy.orm import Session

from .errors import ErrorCode, LedgerError


class CancellationToken:
    """Cancellation signal checked before a ledger transaction commits"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@contextmanager
def ledger_transaction(db: Session, cancel: Optional[CancellationToken] = None) -> Iterator[Session]:
    """
    Commit the enclosed work, or roll all of it back.

    Cancellation is honoured up to the moment commit starts; once commit
    begins it runs to completion.
    """
    try:
        yield db
        if cancel is not None and cancel.cancelled:
            raise LedgerError(ErrorCode.CANCELLED, "Operation cancelled before commit.")
        db.commit()
    except Exception:
        db.rollback()
        raise
