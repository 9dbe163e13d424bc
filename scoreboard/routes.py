"""
Player and game session API routes.

Handlers only translate HTTP to service calls and back; every write goes
through the services so it runs inside the request's unit of work.

Endpoints:
  /api/players        : player CRUD, statistics, player leaderboard
  /api/game-sessions  : session CRUD, score leaderboards, range queries, reset
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from .limiter import limiter, read_limit, write_limit
from .models import GameSession, Player
from .schemas import (
    CountResponse,
    DeleteAllResponse,
    GameSessionCreate,
    GameSessionResponse,
    GameSessionUpdate,
    PlayerCreate,
    PlayerResponse,
    PlayerStatisticsResponse,
    PlayerUpdate,
    PlayerWithStatisticsResponse,
    TopPlayerEntry,
)
from .services import GameSessionService, PlayerService
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

players_router = APIRouter(prefix="/api/players", tags=["Players"])
game_sessions_router = APIRouter(prefix="/api/game-sessions", tags=["Game Sessions"])


# ── Dependencies ─────────────────────────────────────────────────

def get_uow(request: Request):
    """Yield a unit of work bound to a fresh session; closed when the request ends."""
    uow = UnitOfWork(request.app.state.session_factory)
    try:
        yield uow
    finally:
        uow.close()


def get_player_service(uow: UnitOfWork = Depends(get_uow)) -> PlayerService:
    return PlayerService(uow)


def get_game_session_service(uow: UnitOfWork = Depends(get_uow)) -> GameSessionService:
    return GameSessionService(uow)


def _sessions(game_sessions):
    return [GameSessionResponse.from_entity(gs) for gs in game_sessions]


# ── Players ──────────────────────────────────────────────────────

@players_router.get("", response_model=list[PlayerResponse])
@limiter.limit(read_limit)
def list_players(request: Request, service: PlayerService = Depends(get_player_service)):
    """Return all players, sorted by username."""
    return [PlayerResponse.model_validate(p) for p in service.list_all_players()]


@players_router.get("/count", response_model=CountResponse)
@limiter.limit(read_limit)
def count_players(request: Request, service: PlayerService = Depends(get_player_service)):
    return CountResponse(count=service.get_total_players_count())


@players_router.get("/top/{count}", response_model=list[TopPlayerEntry])
@limiter.limit(read_limit)
def top_players(request: Request, count: int, service: PlayerService = Depends(get_player_service)):
    """Players ranked by their best single-session score."""
    return [
        TopPlayerEntry(
            rank=idx + 1,
            player_id=r.player.player_id,
            username=r.player.username,
            best_score=r.best_score,
            total_game_sessions=r.total_game_sessions,
            max_level_reached=r.max_level_reached,
        )
        for idx, r in enumerate(service.get_top_players(count))
    ]


@players_router.get("/by-username/{username}", response_model=PlayerResponse)
@limiter.limit(read_limit)
def get_player_by_username(request: Request, username: str,
                           service: PlayerService = Depends(get_player_service)):
    player = service.get_player_by_username(username)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Player with username '{username}' not found")
    return PlayerResponse.model_validate(player)


@players_router.get("/{player_id}", response_model=PlayerResponse)
@limiter.limit(read_limit)
def get_player(request: Request, player_id: int, service: PlayerService = Depends(get_player_service)):
    player = service.get_player_by_id(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
    return PlayerResponse.model_validate(player)


@players_router.get("/{player_id}/statistics", response_model=PlayerWithStatisticsResponse)
@limiter.limit(read_limit)
def get_player_with_statistics(request: Request, player_id: int,
                               service: PlayerService = Depends(get_player_service)):
    stats = service.get_player_with_statistics(player_id)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
    return PlayerWithStatisticsResponse(
        player_id=stats.player.player_id,
        username=stats.player.username,
        created_at=stats.player.created_at,
        total_game_sessions=stats.total_game_sessions,
        best_score=stats.best_score,
        max_level_reached=stats.max_level_reached,
        average_score=stats.average_score,
        recent_sessions=_sessions(stats.recent_sessions),
    )


@players_router.post("", response_model=PlayerResponse, status_code=201)
@limiter.limit(write_limit)
def create_player(request: Request, payload: PlayerCreate,
                  service: PlayerService = Depends(get_player_service)):
    player = service.create_player(payload.username)
    return PlayerResponse.model_validate(player)


@players_router.put("/{player_id}", response_model=PlayerResponse)
@limiter.limit(write_limit)
def update_player(request: Request, player_id: int, payload: PlayerUpdate,
                  service: PlayerService = Depends(get_player_service)):
    if payload.player_id != player_id:
        raise HTTPException(status_code=400, detail="Player ID in URL does not match the request body")
    player = service.update_player(Player(player_id=player_id, username=payload.username))
    return PlayerResponse.model_validate(player)


@players_router.delete("/{player_id}", status_code=204)
@limiter.limit(write_limit)
def delete_player(request: Request, player_id: int, service: PlayerService = Depends(get_player_service)):
    if not service.delete_player(player_id):
        raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
    return Response(status_code=204)


# ── Game Sessions ────────────────────────────────────────────────

@game_sessions_router.get("", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def list_game_sessions(request: Request, service: GameSessionService = Depends(get_game_session_service)):
    """Return every session, most recent first."""
    return _sessions(service.list_all_game_sessions())


@game_sessions_router.get("/count", response_model=CountResponse)
@limiter.limit(read_limit)
def count_game_sessions(request: Request, service: GameSessionService = Depends(get_game_session_service)):
    return CountResponse(count=service.get_total_game_sessions_count())


@game_sessions_router.get("/top-scores/{count}", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def top_scores(request: Request, count: int,
               service: GameSessionService = Depends(get_game_session_service)):
    """Global leaderboard: score, then level, then most recent."""
    return _sessions(service.get_top_scores(count))


@game_sessions_router.get("/recent/{count}", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def recent_game_sessions(request: Request, count: int,
                         service: GameSessionService = Depends(get_game_session_service)):
    return _sessions(service.get_recent_game_sessions(count))


@game_sessions_router.get("/score-range", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def game_sessions_by_score_range(request: Request, min_score: int = Query(...), max_score: int = Query(...),
                                 service: GameSessionService = Depends(get_game_session_service)):
    return _sessions(service.get_game_sessions_by_score_range(min_score, max_score))


@game_sessions_router.get("/date-range", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def game_sessions_by_date_range(request: Request, start: datetime = Query(...), end: datetime = Query(...),
                                service: GameSessionService = Depends(get_game_session_service)):
    return _sessions(service.get_game_sessions_by_date_range(start, end))


@game_sessions_router.get("/player/{player_id}", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def game_sessions_by_player(request: Request, player_id: int,
                            service: GameSessionService = Depends(get_game_session_service)):
    return _sessions(service.get_game_sessions_by_player_id(player_id))


@game_sessions_router.get("/player/{player_id}/top-scores/{count}", response_model=list[GameSessionResponse])
@limiter.limit(read_limit)
def top_scores_by_player(request: Request, player_id: int, count: int,
                         service: GameSessionService = Depends(get_game_session_service)):
    return _sessions(service.get_top_scores_by_player(player_id, count))


@game_sessions_router.get("/player/{player_id}/best-score", response_model=GameSessionResponse)
@limiter.limit(read_limit)
def best_score_by_player(request: Request, player_id: int,
                         service: GameSessionService = Depends(get_game_session_service)):
    best = service.get_best_score_by_player(player_id)
    if best is None:
        raise HTTPException(status_code=404, detail=f"No game sessions found for player {player_id}")
    return GameSessionResponse.from_entity(best)


@game_sessions_router.get("/player/{player_id}/statistics", response_model=PlayerStatisticsResponse)
@limiter.limit(read_limit)
def player_statistics(request: Request, player_id: int,
                      service: GameSessionService = Depends(get_game_session_service)):
    stats = service.get_player_statistics(player_id)
    return PlayerStatisticsResponse(
        player_id=stats.player_id,
        max_level_reached=stats.max_level_reached,
        average_score=stats.average_score,
        total_game_sessions=stats.total_game_sessions,
        best_score=stats.best_score,
    )


@game_sessions_router.get("/{game_session_id}", response_model=GameSessionResponse)
@limiter.limit(read_limit)
def get_game_session(request: Request, game_session_id: int,
                     service: GameSessionService = Depends(get_game_session_service)):
    game_session = service.get_game_session_by_id(game_session_id)
    if game_session is None:
        raise HTTPException(status_code=404, detail=f"Game session {game_session_id} not found")
    return GameSessionResponse.from_entity(game_session)


@game_sessions_router.post("", response_model=GameSessionResponse, status_code=201)
@limiter.limit(write_limit)
def create_game_session(request: Request, payload: GameSessionCreate,
                        service: GameSessionService = Depends(get_game_session_service)):
    """Record a finished game for a player."""
    game_session = service.create_game_session(payload.player_id, payload.score, payload.max_level_reached)
    return GameSessionResponse.from_entity(game_session)


@game_sessions_router.put("/{game_session_id}", response_model=GameSessionResponse)
@limiter.limit(write_limit)
def update_game_session(request: Request, game_session_id: int, payload: GameSessionUpdate,
                        service: GameSessionService = Depends(get_game_session_service)):
    if payload.game_session_id != game_session_id:
        raise HTTPException(status_code=400, detail="Game session ID in URL does not match the request body")
    updated = service.update_game_session(GameSession(**payload.model_dump()))
    return GameSessionResponse.from_entity(updated)


@game_sessions_router.delete("/all", response_model=DeleteAllResponse)
@limiter.limit(write_limit)
def delete_all_game_sessions(request: Request,
                             service: GameSessionService = Depends(get_game_session_service)):
    """Wipe every session (leaderboard reset)."""
    deleted_count = service.delete_all_game_sessions()
    return DeleteAllResponse(
        message=f"Deleted {deleted_count} game sessions",
        deleted_count=deleted_count,
        success=True,
        timestamp=datetime.now(timezone.utc),
    )


@game_sessions_router.delete("/{game_session_id}", status_code=204)
@limiter.limit(write_limit)
def delete_game_session(request: Request, game_session_id: int,
                        service: GameSessionService = Depends(get_game_session_service)):
    if not service.delete_game_session(game_session_id):
        raise HTTPException(status_code=404, detail=f"Game session {game_session_id} not found")
    return Response(status_code=204)
