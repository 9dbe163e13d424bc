"""
Error taxonomy shared by the services and the HTTP layer.

Storage failures are not wrapped: they surface as SQLAlchemy's own
``SQLAlchemyError`` family after the open transaction has been rolled back.
"""


class ScoreboardError(Exception):
    """Base class for every error raised by the scoreboard core."""


class InvalidArgumentError(ScoreboardError, ValueError):
    """A caller-supplied value violates a precondition (negative score, inverted range, ...)."""


class InvalidOperationError(ScoreboardError):
    """A referential or uniqueness precondition failed."""


class EntityNotFoundError(InvalidOperationError):
    """The record targeted by an update does not exist."""


class InvalidStateError(ScoreboardError):
    """The unit of work was used out of order (nested begin, commit without begin)."""
