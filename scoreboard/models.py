"""
SQLAlchemy ORM models for the scoreboard backend.
Tables: players, game_sessions
"""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, func, text
)
from sqlalchemy.orm import declarative_base, relationship, validates

Base = declarative_base()

USERNAME_MAX_LENGTH = 50


def utcnow():
    """Current UTC time as a naive datetime, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value):
    """Convert an offset-aware datetime to naive UTC. Naive values are taken as UTC already."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Player(Base):
    """Represents a registered player."""

    __tablename__ = "players"

    player_id = Column(Integer, primary_key=True)
    username = Column(String(USERNAME_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    game_sessions = relationship(
        "GameSession",
        back_populates="player",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="GameSession.played_at.desc()",
    )

    __table_args__ = (
        Index("ix_players_username", "username", unique=True),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    @validates("created_at")
    def _normalize_created_at(self, key, value):
        return as_utc_naive(value)

    def __repr__(self):
        return f"<Player(player_id={self.player_id}, username='{self.username}')>"


class GameSession(Base):
    """Records one play-through: score, level reached and when it was played."""

    __tablename__ = "game_sessions"

    game_session_id = Column(Integer, primary_key=True)
    player_id = Column(
        Integer,
        ForeignKey("players.player_id", ondelete="CASCADE", name="fk_game_sessions_players_player_id"),
        nullable=False,
    )
    # Defaults live both here and in __init__
    score = Column(Integer, nullable=False, default=0, server_default=text("0"))
    max_level_reached = Column(Integer, nullable=False, default=1, server_default=text("1"))
    played_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    player = relationship("Player", back_populates="game_sessions")

    __table_args__ = (
        CheckConstraint("score >= 0", name="ck_game_sessions_score_non_negative"),
        CheckConstraint("max_level_reached >= 1", name="ck_game_sessions_level_positive"),
        Index("ix_game_sessions_player_id", "player_id"),
        Index("ix_game_sessions_score", "score"),
        Index("ix_game_sessions_played_at", "played_at"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("score", 0)
        kwargs.setdefault("max_level_reached", 1)
        kwargs.setdefault("played_at", utcnow())
        super().__init__(**kwargs)

    @validates("played_at")
    def _normalize_played_at(self, key, value):
        return as_utc_naive(value)

    def __repr__(self):
        return (
            f"<GameSession(game_session_id={self.game_session_id}, player_id={self.player_id}, "
            f"score={self.score}, max_level_reached={self.max_level_reached})>"
        )
