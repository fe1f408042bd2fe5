"""
Base service implementation with common functionality for all services.

This module provides the session handling and error translation shared by the
credential and hosting-profile stores.
"""

from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import AccountConflictError, PersistenceError
from ..utils.logger import ContextAwareLogger, get_logger


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` rows ``limit`` at a time."""
    return (total + limit - 1) // limit if limit > 0 else 0


class SessionManagedService:
    """
    Service that owns or borrows a database session.

    When a session is passed in, the caller manages the transaction: the
    service only adds and flushes, and ``commit``/``rollback`` are no-ops
    unless the service created the session itself.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        logger: Optional[ContextAwareLogger] = None,
    ):
        """
        Initialize service with a session.

        Args:
            session: Optional existing session (for testing or coordination)
            logger: Optional logger instance
        """
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

        self.logger = logger or get_logger()

    def _create_session(self) -> Session:
        """Create a new database session from the global database manager."""
        from ..db.db_config import get_db_manager

        return get_db_manager().new_session()

    def commit(self):
        """Manually commit the current transaction."""
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        """Manually rollback the current transaction."""
        if self._owns_session:
            self.session.rollback()

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        """Support for 'with' statement."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Auto-close session on exit."""
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()

    def _flush(self, operation: str, unique_fields: Iterable[str] = (), **context) -> None:
        """
        Flush pending changes, translating constraint violations.

        A unique-constraint failure on one of ``unique_fields`` becomes an
        AccountConflictError naming that field; any other store failure becomes
        a PersistenceError. The session is rolled back in both cases.
        """
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            field = _conflicting_field(e, unique_fields)
            if field is not None:
                raise AccountConflictError(
                    field, context.get(field, ""), cause=e, operation=operation
                ) from e
            raise PersistenceError(
                f"Integrity constraint violated in {operation}",
                cause=e,
                operation=operation,
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                f"Store failure in {operation}: {e}", cause=e, operation=operation
            ) from e

def _conflicting_field(error: IntegrityError, candidates: Iterable[str]) -> Optional[str]:
    """Best-effort lookup of the unique column named in a driver error message."""
    message = str(getattr(error, "orig", error)).lower()
    if not any(marker in message for marker in ("unique", "duplicate")):
        return None
    for field in candidates:
        if field.lower() in message:
            return field
    return None

