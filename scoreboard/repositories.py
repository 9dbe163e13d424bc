"""
Typed repositories over the players and game_sessions tables.

Repositories never commit: they queue writes on the session they were
constructed with and leave transaction control to the unit of work.
"""

from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.orm import joinedload

from .exceptions import EntityNotFoundError
from .models import GameSession, Player

# Leaderboard ranking: score, then level, then most recent. The id is a last
# resort so equal rows always come back in the same order.
LEADERBOARD_ORDER = (
    GameSession.score.desc(),
    GameSession.max_level_reached.desc(),
    GameSession.played_at.desc(),
    GameSession.game_session_id.desc(),
)

RECENT_ORDER = (
    GameSession.played_at.desc(),
    GameSession.game_session_id.desc(),
)


class BaseRepository:
    """CRUD helpers shared by the concrete repositories."""

    model = None

    def __init__(self, session):
        self._session = session

    def get_by_id(self, entity_id):
        return self._session.get(self.model, entity_id)

    def exists(self, entity_id) -> bool:
        return self.get_by_id(entity_id) is not None

    def create(self, entity):
        self._session.add(entity)
        return entity

    def get_count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(self.model))


class PlayerRepository(BaseRepository):
    model = Player

    def get_by_username(self, username: str):
        return self._session.scalars(
            select(Player).where(Player.username == username)
        ).first()

    def get_all(self):
        return list(self._session.scalars(select(Player).order_by(Player.username.asc())))

    def exists_by_username(self, username: str, exclude_player_id: int = None) -> bool:
        stmt = select(Player.player_id).where(Player.username == username)
        if exclude_player_id is not None:
            stmt = stmt.where(Player.player_id != exclude_player_id)
        return self._session.scalars(stmt.limit(1)).first() is not None

    def update(self, player: Player) -> Player:
        existing = self.get_by_id(player.player_id)
        if existing is None:
            raise EntityNotFoundError(f"Player with ID {player.player_id} not found.")

        # created_at is immutable
        existing.username = player.username
        return existing

    def delete(self, player_id: int) -> bool:
        """Delete the player's sessions, then the player. Returns False if nothing matched."""
        self._session.execute(delete(GameSession).where(GameSession.player_id == player_id))
        result = self._session.execute(delete(Player).where(Player.player_id == player_id))
        return result.rowcount > 0

    def get_top_players(self, count: int):
        """Players with at least one session, best single score first.

        Returns ``(player, best_score, total_game_sessions, max_level_reached)`` rows.
        """
        best_score = func.max(GameSession.score).label("best_score")
        stmt = (
            select(
                Player,
                best_score,
                func.count(GameSession.game_session_id).label("total_game_sessions"),
                func.max(GameSession.max_level_reached).label("max_level_reached"),
            )
            .join(GameSession, GameSession.player_id == Player.player_id)
            .group_by(Player.player_id)
            .order_by(best_score.desc(), Player.player_id.asc())
            .limit(count)
        )
        return [tuple(row) for row in self._session.execute(stmt)]


class GameSessionRepository(BaseRepository):
    model = GameSession

    def _select(self):
        return select(GameSession).options(joinedload(GameSession.player))

    def get_by_player_id(self, player_id: int):
        stmt = self._select().where(GameSession.player_id == player_id).order_by(*RECENT_ORDER)
        return list(self._session.scalars(stmt))

    def get_all(self):
        return list(self._session.scalars(self._select().order_by(*RECENT_ORDER)))

    def update(self, game_session: GameSession) -> GameSession:
        existing = self.get_by_id(game_session.game_session_id)
        if existing is None:
            raise EntityNotFoundError(f"GameSession with ID {game_session.game_session_id} not found.")

        existing.player_id = game_session.player_id
        # Reload the owner on next access in case the session moved to another player
        self._session.expire(existing, ["player"])
        existing.score = game_session.score
        existing.max_level_reached = game_session.max_level_reached
        existing.played_at = game_session.played_at
        return existing

    def delete(self, game_session_id: int) -> bool:
        result = self._session.execute(
            delete(GameSession).where(GameSession.game_session_id == game_session_id)
        )
        return result.rowcount > 0

    def delete_all(self) -> int:
        """Set-based delete of every session. Returns the number of rows removed."""
        result = self._session.execute(delete(GameSession))
        return result.rowcount

    # ── Leaderboards ────────────────────────────────────────────

    def get_top_scores(self, count: int):
        stmt = self._select().order_by(*LEADERBOARD_ORDER).limit(count)
        return list(self._session.scalars(stmt))

    def get_top_scores_by_player(self, player_id: int, count: int):
        stmt = (
            self._select()
            .where(GameSession.player_id == player_id)
            .order_by(*LEADERBOARD_ORDER)
            .limit(count)
        )
        return list(self._session.scalars(stmt))

    def get_best_score_by_player(self, player_id: int):
        top = self.get_top_scores_by_player(player_id, 1)
        return top[0] if top else None

    def get_recent(self, count: int):
        return list(self._session.scalars(self._select().order_by(*RECENT_ORDER).limit(count)))

    # ── Aggregates ──────────────────────────────────────────────

    def get_max_level_reached_by_player(self, player_id: int) -> int:
        max_level = self._session.scalar(
            select(func.max(GameSession.max_level_reached)).where(GameSession.player_id == player_id)
        )
        # No sessions yet: level 1 is where every player starts
        return max_level if max_level is not None else 1

    def get_average_score_by_player(self, player_id: int) -> Decimal:
        total, sessions = self._session.execute(
            select(func.coalesce(func.sum(GameSession.score), 0), func.count(GameSession.game_session_id))
            .where(GameSession.player_id == player_id)
        ).one()
        if not sessions:
            return Decimal(0)
        return Decimal(total) / Decimal(sessions)

    def get_count_by_player(self, player_id: int) -> int:
        return self._session.scalar(
            select(func.count(GameSession.game_session_id)).where(GameSession.player_id == player_id)
        )

    # ── Range queries ───────────────────────────────────────────

    def get_by_score_range(self, min_score: int, max_score: int):
        stmt = (
            self._select()
            .where(GameSession.score >= min_score, GameSession.score <= max_score)
            .order_by(*LEADERBOARD_ORDER)
        )
        return list(self._session.scalars(stmt))

    def get_by_date_range(self, start, end):
        stmt = (
            self._select()
            .where(GameSession.played_at >= start, GameSession.played_at <= end)
            .order_by(*RECENT_ORDER)
        )
        return list(self._session.scalars(stmt))
