import os

# The shared slowapi limiter reads this once at import
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from scoreboard.config import Config  # noqa: E402
from scoreboard.database import build_engine, build_session_factory, create_tables  # noqa: E402
from scoreboard.services import GameSessionService, PlayerService  # noqa: E402
from scoreboard.unit_of_work import UnitOfWork  # noqa: E402


class InMemoryConfig(Config):
    DATABASE_URL = 'sqlite://'
    RATE_LIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'


@pytest.fixture()
def engine():
    engine = build_engine(InMemoryConfig.DATABASE_URL, InMemoryConfig)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def uow(session_factory):
    with UnitOfWork(session_factory) as unit_of_work:
        yield unit_of_work


@pytest.fixture()
def player_service(uow):
    return PlayerService(uow)


@pytest.fixture()
def session_service(uow):
    return GameSessionService(uow)


@pytest.fixture()
def client(session_factory):
    from scoreboard.app import create_app

    application = create_app(InMemoryConfig, session_factory=session_factory)
    with TestClient(application) as test_client:
        yield test_client
