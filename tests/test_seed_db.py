import random
import re

from scoreboard.seed_db import seed
from scoreboard.services import GameSessionService, PlayerService


def test_seed_populates_players_and_sessions(uow, session_factory):
    players, sessions = seed(session_factory, players=5, sessions=20, rng=random.Random(7))

    assert (players, sessions) == (5, 20)
    player_service = PlayerService(uow)
    session_service = GameSessionService(uow)
    all_players = player_service.list_all_players()
    assert len(all_players) == 5
    assert all(re.fullmatch(r'Player\d{5}', p.username) for p in all_players)
    assert session_service.get_total_game_sessions_count() == 20
    assert all(0 <= gs.score <= 10000 for gs in session_service.list_all_game_sessions())


def test_seed_reset_clears_sessions_first(uow, session_factory):
    seed(session_factory, players=2, sessions=4, rng=random.Random(1))
    seed(session_factory, players=1, sessions=3, reset=True, rng=random.Random(2))

    assert GameSessionService(uow).get_total_game_sessions_count() == 3
    assert PlayerService(uow).get_total_players_count() == 3


def test_seed_without_players_records_nothing(session_factory):
    assert seed(session_factory, players=0, sessions=10) == (0, 0)
