"""
Unit of work: one SQLAlchemy session, one transaction at a time.

Each request gets its own ``UnitOfWork``. The player and game session
repositories are built together with it and share its session, so every
repository call made between ``begin_transaction`` and ``commit`` lands or
fails as a unit.
"""

import logging
from contextlib import contextmanager

from .exceptions import InvalidStateError
from .repositories import GameSessionRepository, PlayerRepository

logger = logging.getLogger(__name__)


class UnitOfWork:

    def __init__(self, session_factory):
        self._session = session_factory()
        self._transaction = None
        self.players = PlayerRepository(self._session)
        self.game_sessions = GameSessionRepository(self._session)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def session(self):
        return self._session

    @property
    def has_active_transaction(self) -> bool:
        return self._transaction is not None

    def begin_transaction(self):
        if self._transaction is not None:
            raise InvalidStateError("A transaction is already in progress.")

        # Reads made before this point may have auto-begun a transaction on the
        # session; adopt it instead of failing on a second begin().
        if self._session.in_transaction():
            self._transaction = self._session.get_transaction()
        else:
            self._transaction = self._session.begin()

    def save_changes(self):
        """Flush queued writes so constraint violations surface before commit."""
        self._session.flush()

    def commit(self):
        if self._transaction is None:
            raise InvalidStateError("No transaction in progress.")

        try:
            self._transaction.commit()
        except Exception:
            self._safe_rollback()
            raise
        finally:
            self._transaction = None

    def rollback(self):
        if self._transaction is None:
            raise InvalidStateError("No transaction in progress.")

        try:
            self._transaction.rollback()
        finally:
            self._transaction = None

    def _safe_rollback(self):
        try:
            self._session.rollback()
        except Exception as exc:
            logger.error("Rollback failed: %s", exc)

    @contextmanager
    def transaction(self):
        """Run the block atomically: begin, flush and commit, or roll back and re-raise.

        A failing rollback is logged and never replaces the error that caused it.
        """
        self.begin_transaction()
        try:
            yield self
            self.save_changes()
        except BaseException:
            logger.warning("Rolling back transaction")
            try:
                self.rollback()
            except Exception as exc:
                logger.error("Rollback failed: %s", exc)
            raise
        self.commit()

    def close(self):
        if self._transaction is not None:
            self._safe_rollback()
            self._transaction = None
        self._session.close()
