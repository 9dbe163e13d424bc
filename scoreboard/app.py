"""
Scoreboard: FastAPI Application Entry Point.

Tracks players and their game sessions and serves leaderboards:
  - Player CRUD with unique (or generated) usernames
  - Session recording with atomic, rolled-back-on-failure writes
  - Top scores, recent sessions and per-player statistics
  - CORS support for the game frontend
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .database import build_engine, build_session_factory, check_connection, create_tables
from .exceptions import EntityNotFoundError, InvalidArgumentError, InvalidOperationError
from .limiter import limiter
from .routes import game_sessions_router, get_uow, players_router
from .schemas import HealthResponse
from .unit_of_work import UnitOfWork

API_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def configure_logging(level: str = Config.LOG_LEVEL):
    logging.basicConfig(
        level=level,
        format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    )


# ── Error Handlers ───────────────────────────────────────────────

def _invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _not_found_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def _invalid_operation_handler(request: Request, exc: InvalidOperationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ── App Lifecycle ────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(application: FastAPI):
    """Startup / shutdown lifecycle handler."""
    engine = application.state.engine
    if check_connection(engine):
        logger.info("✓ Database connected successfully")
        create_tables(engine)

    yield  # ← app is running

    engine.dispose()
    logger.info("Database connections closed")


def create_app(config_class=Config, session_factory=None) -> FastAPI:
    """Build the application. Tests pass their own *session_factory*."""
    configure_logging(config_class.LOG_LEVEL)

    application = FastAPI(
        title="Scoreboard API",
        description="Players, game sessions and leaderboards",
        version=API_VERSION,
        lifespan=lifespan,
    )

    if session_factory is None:
        session_factory = build_session_factory(build_engine(config_class.DATABASE_URL, config_class))
    application.state.session_factory = session_factory
    application.state.engine = session_factory.kw["bind"]

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config_class.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_exception_handler(InvalidArgumentError, _invalid_argument_handler)
    application.add_exception_handler(EntityNotFoundError, _not_found_handler)
    application.add_exception_handler(InvalidOperationError, _invalid_operation_handler)
    application.add_exception_handler(SQLAlchemyError, _storage_error_handler)

    application.include_router(players_router)
    application.include_router(game_sessions_router)

    @application.get("/health", tags=["Health"], response_model=HealthResponse)
    def health_check(uow: UnitOfWork = Depends(get_uow)):
        """Liveness probe with database status and table counts."""
        try:
            return HealthResponse(
                status="ok",
                database_status="connected",
                version=API_VERSION,
                timestamp=datetime.now(timezone.utc),
                total_players=uow.players.get_count(),
                total_game_sessions=uow.game_sessions.get_count(),
            )
        except SQLAlchemyError as exc:
            logger.error("✗ Health check failed: %s", exc)
            degraded = HealthResponse(
                status="degraded",
                database_status="disconnected",
                version=API_VERSION,
                timestamp=datetime.now(timezone.utc),
            )
            return JSONResponse(status_code=503, content=degraded.model_dump(mode="json"))

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    # Run the app with auto-reload enabled
    uvicorn.run("scoreboard.app:app", host="127.0.0.1", port=8000, reload=True)
