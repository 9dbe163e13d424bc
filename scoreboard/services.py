"""
Business rules for players and game sessions.

Writes run inside ``UnitOfWork.transaction()`` so that a failure anywhere in
the operation rolls back everything it did. Argument checks happen before the
transaction is opened; reads go straight to the repositories.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from .exceptions import EntityNotFoundError, InvalidArgumentError, InvalidOperationError
from .models import USERNAME_MAX_LENGTH, GameSession, Player, as_utc_naive

logger = logging.getLogger(__name__)

GENERATED_USERNAME_PREFIX = "Player"
MAX_USERNAME_ATTEMPTS = 100
RECENT_SESSIONS_IN_STATISTICS = 5

# Shared across calls so tight retry loops don't keep reseeding
_random = random.Random()


def _require_positive_count(count: int):
    if count < 1:
        raise InvalidArgumentError("Count must be at least 1.")


# ── Result types ─────────────────────────────────────────────────

@dataclass
class PlayerStatistics:
    """A player together with aggregates over all of their sessions."""

    player: Player
    total_game_sessions: int
    best_score: Optional[int]
    max_level_reached: Optional[int]
    average_score: Decimal
    recent_sessions: List[GameSession] = field(default_factory=list)


@dataclass
class PlayerRanking:
    player: Player
    best_score: int
    total_game_sessions: int
    max_level_reached: int


@dataclass
class SessionStatistics:
    player_id: int
    max_level_reached: int
    average_score: Decimal
    total_game_sessions: int
    best_score: int


# ── Players ──────────────────────────────────────────────────────

class PlayerService:
    """Player lifecycle: creation with unique (or generated) names, updates, deletion, rankings."""

    def __init__(self, uow, rng: random.Random = None):
        self._uow = uow
        self._random = rng or _random

    def create_player(self, username: Optional[str]) -> Player:
        """Create a player, generating a ``PlayerNNNNN`` name when *username* is blank.

        Raises InvalidOperationError if the name is invalid or already taken,
        including when a concurrent insert wins the race for it.
        """
        if username is None or not username.strip():
            username = self._generate_username()

        if not self.is_valid_username(username):
            raise InvalidOperationError(f"Username '{username}' already exists or is invalid.")

        try:
            with self._uow.transaction():
                player = self._uow.players.create(Player(username=username))
        except IntegrityError as exc:
            raise InvalidOperationError(f"Username '{username}' already exists.") from exc

        logger.info("Player %d created (username=%s)", player.player_id, player.username)
        return player

    def get_player_by_id(self, player_id: int) -> Optional[Player]:
        return self._uow.players.get_by_id(player_id)

    def get_player_by_username(self, username: str) -> Optional[Player]:
        return self._uow.players.get_by_username(username)

    def list_all_players(self) -> List[Player]:
        return self._uow.players.get_all()

    def update_player(self, player: Player) -> Player:
        if player is None:
            raise InvalidArgumentError("player is required.")
        username = player.username
        if not username or not username.strip() or len(username) > USERNAME_MAX_LENGTH:
            raise InvalidOperationError(f"Username '{username}' is invalid.")

        try:
            with self._uow.transaction():
                if not self._uow.players.exists(player.player_id):
                    raise EntityNotFoundError(f"Player with ID {player.player_id} not found.")
                if self._uow.players.exists_by_username(username, exclude_player_id=player.player_id):
                    raise InvalidOperationError(f"Username '{username}' already exists.")
                updated = self._uow.players.update(player)
        except IntegrityError as exc:
            raise InvalidOperationError(f"Username '{username}' already exists.") from exc

        logger.info("Player %d updated (username=%s)", updated.player_id, updated.username)
        return updated

    def delete_player(self, player_id: int) -> bool:
        """Delete a player and all of their sessions. Returns False if the player doesn't exist."""
        with self._uow.transaction():
            if self._uow.players.get_by_id(player_id) is None:
                return False
            self._uow.players.delete(player_id)

        logger.info("Player %d deleted with all game sessions", player_id)
        return True

    def player_exists_by_username(self, username: str) -> bool:
        return self._uow.players.exists_by_username(username)

    def get_player_with_statistics(self, player_id: int) -> Optional[PlayerStatistics]:
        player = self._uow.players.get_by_id(player_id)
        if player is None:
            return None

        sessions = self._uow.game_sessions
        total = sessions.get_count_by_player(player_id)
        best = sessions.get_best_score_by_player(player_id)
        return PlayerStatistics(
            player=player,
            total_game_sessions=total,
            best_score=best.score if best else None,
            max_level_reached=sessions.get_max_level_reached_by_player(player_id) if total else None,
            average_score=sessions.get_average_score_by_player(player_id),
            recent_sessions=sessions.get_by_player_id(player_id)[:RECENT_SESSIONS_IN_STATISTICS],
        )

    def get_total_players_count(self) -> int:
        return self._uow.players.get_count()

    def get_top_players(self, count: int = 10) -> List[PlayerRanking]:
        """Players ranked by their single best session score, highest first."""
        _require_positive_count(count)
        return [
            PlayerRanking(player, best_score, total, max_level)
            for player, best_score, total, max_level in self._uow.players.get_top_players(count)
        ]

    def is_valid_username(self, username: Optional[str]) -> bool:
        if username is None or not username.strip():
            return False
        if len(username) > USERNAME_MAX_LENGTH:
            return False
        return not self.player_exists_by_username(username)

    def _generate_username(self) -> str:
        for _ in range(MAX_USERNAME_ATTEMPTS):
            candidate = f"{GENERATED_USERNAME_PREFIX}{self._random.randint(10000, 99999)}"
            if not self.player_exists_by_username(candidate):
                return candidate

        # Out of luck: derive the suffix from the clock and let the unique index arbitrate
        fallback = f"{GENERATED_USERNAME_PREFIX}{int(time.time()) % 100000:05d}"
        logger.warning("No free generated username after %d attempts, using %s",
                       MAX_USERNAME_ATTEMPTS, fallback)
        return fallback


# ── Game sessions ────────────────────────────────────────────────

class GameSessionService:
    """Session lifecycle plus every leaderboard and statistics query."""

    def __init__(self, uow):
        self._uow = uow

    @staticmethod
    def _validate_values(score: int, max_level_reached: int):
        if score < 0:
            raise InvalidArgumentError("Score cannot be negative.")
        if max_level_reached < 1:
            raise InvalidArgumentError("Max level reached cannot be less than 1.")

    def can_create_game_session(self, player_id: int) -> bool:
        return self._uow.players.exists(player_id)

    def create_game_session(self, player_id: int, score: int, max_level_reached: int) -> GameSession:
        self._validate_values(score, max_level_reached)
        if not self.can_create_game_session(player_id):
            raise InvalidOperationError(f"Cannot create game session for player with ID {player_id}.")

        with self._uow.transaction():
            game_session = self._uow.game_sessions.create(
                GameSession(player_id=player_id, score=score, max_level_reached=max_level_reached)
            )

        logger.info("Game session %d created for player %d (score=%d, level=%d)",
                    game_session.game_session_id, player_id, score, max_level_reached)
        return game_session

    def get_game_session_by_id(self, game_session_id: int) -> Optional[GameSession]:
        return self._uow.game_sessions.get_by_id(game_session_id)

    def get_game_sessions_by_player_id(self, player_id: int) -> List[GameSession]:
        return self._uow.game_sessions.get_by_player_id(player_id)

    def list_all_game_sessions(self) -> List[GameSession]:
        return self._uow.game_sessions.get_all()

    def update_game_session(self, game_session: GameSession) -> GameSession:
        if game_session is None:
            raise InvalidArgumentError("game_session is required.")
        self._validate_values(game_session.score, game_session.max_level_reached)

        with self._uow.transaction():
            if not self._uow.players.exists(game_session.player_id):
                raise InvalidOperationError(f"Player with ID {game_session.player_id} does not exist.")
            updated = self._uow.game_sessions.update(game_session)

        logger.info("Game session %d updated", updated.game_session_id)
        return updated

    def delete_game_session(self, game_session_id: int) -> bool:
        with self._uow.transaction():
            deleted = self._uow.game_sessions.delete(game_session_id)

        if deleted:
            logger.info("Game session %d deleted", game_session_id)
        return deleted

    def delete_all_game_sessions(self) -> int:
        """Remove every session in one statement (leaderboard reset). Returns the count removed."""
        with self._uow.transaction():
            deleted_count = self._uow.game_sessions.delete_all()

        logger.info("Deleted %d game sessions", deleted_count)
        return deleted_count

    # ── Leaderboards ────────────────────────────────────────────

    def get_top_scores(self, count: int = 10) -> List[GameSession]:
        _require_positive_count(count)
        return self._uow.game_sessions.get_top_scores(count)

    def get_top_scores_by_player(self, player_id: int, count: int = 10) -> List[GameSession]:
        _require_positive_count(count)
        return self._uow.game_sessions.get_top_scores_by_player(player_id, count)

    def get_best_score_by_player(self, player_id: int) -> Optional[GameSession]:
        return self._uow.game_sessions.get_best_score_by_player(player_id)

    def get_recent_game_sessions(self, count: int = 20) -> List[GameSession]:
        _require_positive_count(count)
        return self._uow.game_sessions.get_recent(count)

    # ── Statistics ──────────────────────────────────────────────

    def get_max_level_reached_by_player(self, player_id: int) -> int:
        return self._uow.game_sessions.get_max_level_reached_by_player(player_id)

    def get_average_score_by_player(self, player_id: int) -> Decimal:
        return self._uow.game_sessions.get_average_score_by_player(player_id)

    def get_total_game_sessions_count(self) -> int:
        return self._uow.game_sessions.get_count()

    def get_game_sessions_count_by_player(self, player_id: int) -> int:
        return self._uow.game_sessions.get_count_by_player(player_id)

    def get_player_statistics(self, player_id: int) -> SessionStatistics:
        best = self.get_best_score_by_player(player_id)
        return SessionStatistics(
            player_id=player_id,
            max_level_reached=self.get_max_level_reached_by_player(player_id),
            average_score=self.get_average_score_by_player(player_id),
            total_game_sessions=self.get_game_sessions_count_by_player(player_id),
            best_score=best.score if best else 0,
        )

    # ── Range queries ───────────────────────────────────────────

    def get_game_sessions_by_score_range(self, min_score: int, max_score: int) -> List[GameSession]:
        if min_score > max_score:
            raise InvalidArgumentError("Minimum score cannot be greater than maximum score.")
        return self._uow.game_sessions.get_by_score_range(min_score, max_score)

    def get_game_sessions_by_date_range(self, start: datetime, end: datetime) -> List[GameSession]:
        start, end = as_utc_naive(start), as_utc_naive(end)
        if start > end:
            raise InvalidArgumentError("Start date cannot be greater than end date.")
        return self._uow.game_sessions.get_by_date_range(start, end)
