"""
Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Request Schemas ──────────────────────────────────────────────

class PlayerCreate(BaseModel):
    """Request body for creating a player. A blank username gets a generated one."""

    username: Optional[str] = Field(default=None, description="Desired username; omit to auto-generate")


class PlayerUpdate(BaseModel):
    """Request body for renaming a player."""

    player_id: int = Field(..., description="Must match the id in the URL")
    username: str


class GameSessionCreate(BaseModel):
    """Request body for recording a game session."""

    player_id: int = Field(..., description="ID of the player")
    score: int = Field(..., description="Score achieved in the game session")
    max_level_reached: int = Field(default=1, description="Highest level reached")


class GameSessionUpdate(BaseModel):
    """Request body for overwriting a game session."""

    game_session_id: int = Field(..., description="Must match the id in the URL")
    player_id: int
    score: int
    max_level_reached: int
    played_at: datetime


# ── Response Schemas ─────────────────────────────────────────────

class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    username: str
    created_at: datetime


class GameSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_session_id: int
    player_id: int
    score: int
    max_level_reached: int
    played_at: datetime
    username: Optional[str] = None

    @classmethod
    def from_entity(cls, game_session):
        response = cls.model_validate(game_session)
        if game_session.player is not None:
            response.username = game_session.player.username
        return response


class PlayerWithStatisticsResponse(BaseModel):
    """A player plus aggregates over their sessions."""

    player_id: int
    username: str
    created_at: datetime
    total_game_sessions: int
    best_score: Optional[int] = None
    max_level_reached: Optional[int] = None
    average_score: Decimal
    recent_sessions: list[GameSessionResponse]


class TopPlayerEntry(BaseModel):
    """A single entry in the player leaderboard."""

    rank: int
    player_id: int
    username: str
    best_score: int
    total_game_sessions: int
    max_level_reached: int


class PlayerStatisticsResponse(BaseModel):
    """Aggregates for one player computed from the sessions table."""

    player_id: int
    max_level_reached: int
    average_score: Decimal
    total_game_sessions: int
    best_score: int


class CountResponse(BaseModel):
    count: int


class DeleteAllResponse(BaseModel):
    """Response after wiping every game session."""

    message: str
    deleted_count: int
    success: bool
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    database_status: str
    version: str
    timestamp: datetime
    total_players: Optional[int] = None
    total_game_sessions: Optional[int] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
