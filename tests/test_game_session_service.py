from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from scoreboard.exceptions import EntityNotFoundError, InvalidArgumentError, InvalidOperationError
from scoreboard.models import GameSession, utcnow


@pytest.fixture()
def player(player_service):
    return player_service.create_player('pacman')


def _add_session(uow, player_id, score, level=1, played_at=None):
    with uow.transaction():
        game_session = uow.game_sessions.create(
            GameSession(player_id=player_id, score=score, max_level_reached=level,
                        played_at=played_at or utcnow())
        )
    return game_session


# ── Create ───────────────────────────────────────────────────────

def test_create_game_session(session_service, player):
    before = utcnow()
    game_session = session_service.create_game_session(player.player_id, 1500, 3)

    assert game_session.game_session_id is not None
    assert game_session.player_id == player.player_id
    assert game_session.score == 1500
    assert game_session.max_level_reached == 3
    assert game_session.played_at >= before


def test_create_game_session_accepts_boundary_values(session_service, player):
    game_session = session_service.create_game_session(player.player_id, 0, 1)
    assert (game_session.score, game_session.max_level_reached) == (0, 1)


def test_negative_score_is_rejected(session_service, player):
    with pytest.raises(InvalidArgumentError):
        session_service.create_game_session(player.player_id, -1, 1)
    assert session_service.get_total_game_sessions_count() == 0


def test_level_below_one_is_rejected(session_service, player):
    with pytest.raises(InvalidArgumentError):
        session_service.create_game_session(player.player_id, 10, 0)


def test_unknown_player_is_rejected(session_service):
    assert not session_service.can_create_game_session(404)
    with pytest.raises(InvalidOperationError):
        session_service.create_game_session(404, 10, 1)


def test_entity_defaults():
    game_session = GameSession(player_id=1)
    assert game_session.score == 0
    assert game_session.max_level_reached == 1
    assert game_session.played_at is not None


# ── Lookups ──────────────────────────────────────────────────────

def test_get_game_session_by_id(session_service, player):
    created = session_service.create_game_session(player.player_id, 10, 1)

    assert session_service.get_game_session_by_id(created.game_session_id) is created
    assert session_service.get_game_session_by_id(9999) is None


def test_sessions_by_player_and_all_sessions_newest_first(uow, session_service, player_service, player):
    other = player_service.create_player('ghost')
    start = utcnow()
    _add_session(uow, player.player_id, 1, played_at=start)
    _add_session(uow, other.player_id, 2, played_at=start + timedelta(minutes=1))
    _add_session(uow, player.player_id, 3, played_at=start + timedelta(minutes=2))

    assert [gs.score for gs in session_service.get_game_sessions_by_player_id(player.player_id)] == [3, 1]
    assert [gs.score for gs in session_service.list_all_game_sessions()] == [3, 2, 1]


# ── Update ───────────────────────────────────────────────────────

def test_update_game_session_overwrites_fields(session_service, player_service, player):
    other = player_service.create_player('blinky')
    created = session_service.create_game_session(player.player_id, 10, 1)
    played_at = utcnow() - timedelta(days=2)

    updated = session_service.update_game_session(GameSession(
        game_session_id=created.game_session_id,
        player_id=other.player_id,
        score=999,
        max_level_reached=9,
        played_at=played_at,
    ))

    assert updated.player_id == other.player_id
    assert updated.player.username == 'blinky'
    assert (updated.score, updated.max_level_reached, updated.played_at) == (999, 9, played_at)


def test_update_missing_session_has_no_side_effects(session_service, player):
    session_service.create_game_session(player.player_id, 10, 1)

    with pytest.raises(InvalidOperationError) as excinfo:
        session_service.update_game_session(GameSession(
            game_session_id=555, player_id=player.player_id, score=1, max_level_reached=1,
        ))

    assert isinstance(excinfo.value, EntityNotFoundError)
    assert session_service.get_total_game_sessions_count() == 1
    assert [gs.score for gs in session_service.list_all_game_sessions()] == [10]


def test_update_to_unknown_player_is_rejected(session_service, player):
    created = session_service.create_game_session(player.player_id, 10, 1)

    with pytest.raises(InvalidOperationError):
        session_service.update_game_session(GameSession(
            game_session_id=created.game_session_id, player_id=321, score=10, max_level_reached=1,
        ))

    assert session_service.get_game_session_by_id(created.game_session_id).player_id == player.player_id


def test_update_stores_offset_timestamp_as_utc(session_service, player):
    created = session_service.create_game_session(player.player_id, 10, 1)
    local = timezone(timedelta(hours=2))

    session_service.update_game_session(GameSession(
        game_session_id=created.game_session_id, player_id=player.player_id, score=10, max_level_reached=1,
        played_at=datetime(2024, 1, 1, 10, 0, tzinfo=local),
    ))

    stored = session_service.get_game_session_by_id(created.game_session_id)
    assert stored.played_at.tzinfo is None
    assert (stored.played_at.hour, stored.played_at.day) == (8, 1)


def test_update_rejects_invalid_values(session_service, player):
    created = session_service.create_game_session(player.player_id, 10, 1)

    with pytest.raises(InvalidArgumentError):
        session_service.update_game_session(GameSession(
            game_session_id=created.game_session_id, player_id=player.player_id, score=-5, max_level_reached=1,
        ))


# ── Delete ───────────────────────────────────────────────────────

def test_delete_game_session(session_service, player):
    created = session_service.create_game_session(player.player_id, 10, 1)

    assert session_service.delete_game_session(created.game_session_id) is True
    assert session_service.get_game_session_by_id(created.game_session_id) is None
    assert session_service.delete_game_session(created.game_session_id) is False


def test_delete_all_returns_exact_count(session_service, player_service, player):
    other = player_service.create_player('clyde')
    for score in (1, 2, 3):
        session_service.create_game_session(player.player_id, score, 1)
    session_service.create_game_session(other.player_id, 4, 1)

    assert session_service.delete_all_game_sessions() == 4
    assert session_service.get_total_game_sessions_count() == 0
    # Players survive a leaderboard reset
    assert player_service.get_total_players_count() == 2


def test_delete_all_on_empty_store(session_service):
    assert session_service.delete_all_game_sessions() == 0


# ── Leaderboards ─────────────────────────────────────────────────

def test_best_score_breaks_ties_by_level(session_service, player):
    for score, level in [(50, 3), (80, 2), (80, 5)]:
        session_service.create_game_session(player.player_id, score, level)

    best = session_service.get_best_score_by_player(player.player_id)

    assert (best.score, best.max_level_reached) == (80, 5)


def test_best_score_breaks_remaining_ties_by_recency(uow, session_service, player):
    start = utcnow()
    older = _add_session(uow, player.player_id, 80, 5, start - timedelta(hours=1))
    newer = _add_session(uow, player.player_id, 80, 5, start)

    best = session_service.get_best_score_by_player(player.player_id)

    assert best.game_session_id == newer.game_session_id
    assert best.game_session_id != older.game_session_id


def test_best_score_absent_without_sessions(session_service, player):
    assert session_service.get_best_score_by_player(player.player_id) is None


def test_top_scores_ordering(uow, session_service, player_service, player):
    other = player_service.create_player('inky')
    start = utcnow()
    rows = [
        (player.player_id, 100, 2, start - timedelta(minutes=3)),
        (other.player_id, 300, 1, start - timedelta(minutes=2)),
        (player.player_id, 100, 4, start - timedelta(minutes=5)),
        (other.player_id, 100, 4, start - timedelta(minutes=1)),
        (player.player_id, 50, 9, start),
    ]
    for player_id, score, level, played_at in rows:
        _add_session(uow, player_id, score, level, played_at)

    top = session_service.get_top_scores(4)

    assert [(gs.score, gs.max_level_reached) for gs in top] == [(300, 1), (100, 4), (100, 4), (100, 2)]
    # Equal score and level: most recent first
    assert top[1].player_id == other.player_id
    assert top[2].player_id == player.player_id


def test_top_scores_by_player(uow, session_service, player_service, player):
    other = player_service.create_player('sue')
    for score in (5, 50, 500):
        _add_session(uow, player.player_id, score)
    _add_session(uow, other.player_id, 1000)

    top = session_service.get_top_scores_by_player(player.player_id, 2)

    assert [gs.score for gs in top] == [500, 50]


def test_recent_sessions_ignore_score(uow, session_service, player):
    start = utcnow()
    for minutes, score in enumerate([900, 10, 500]):
        _add_session(uow, player.player_id, score, played_at=start + timedelta(minutes=minutes))

    assert [gs.score for gs in session_service.get_recent_game_sessions(2)] == [500, 10]


def test_counts_must_be_positive(session_service, player):
    with pytest.raises(InvalidArgumentError):
        session_service.get_top_scores(0)
    with pytest.raises(InvalidArgumentError):
        session_service.get_recent_game_sessions(-1)
    with pytest.raises(InvalidArgumentError):
        session_service.get_top_scores_by_player(player.player_id, 0)


# ── Statistics ───────────────────────────────────────────────────

def test_average_score(session_service, player_service, player):
    for score in (10, 20, 30):
        session_service.create_game_session(player.player_id, score, 1)
    idle = player_service.create_player('idle')

    average = session_service.get_average_score_by_player(player.player_id)
    assert isinstance(average, Decimal)
    assert average == Decimal(20)
    assert session_service.get_average_score_by_player(idle.player_id) == 0


def test_average_score_keeps_fraction(session_service, player):
    for score in (1, 2):
        session_service.create_game_session(player.player_id, score, 1)

    assert session_service.get_average_score_by_player(player.player_id) == Decimal('1.5')


def test_max_level_defaults_to_one(session_service, player):
    assert session_service.get_max_level_reached_by_player(player.player_id) == 1

    session_service.create_game_session(player.player_id, 10, 6)
    session_service.create_game_session(player.player_id, 10, 4)

    assert session_service.get_max_level_reached_by_player(player.player_id) == 6


def test_counts(session_service, player_service, player):
    other = player_service.create_player('pinky')
    session_service.create_game_session(player.player_id, 1, 1)
    session_service.create_game_session(player.player_id, 2, 1)
    session_service.create_game_session(other.player_id, 3, 1)

    assert session_service.get_total_game_sessions_count() == 3
    assert session_service.get_game_sessions_count_by_player(player.player_id) == 2
    assert session_service.get_game_sessions_count_by_player(999) == 0


def test_player_statistics(session_service, player):
    for score, level in [(40, 2), (60, 5)]:
        session_service.create_game_session(player.player_id, score, level)

    stats = session_service.get_player_statistics(player.player_id)

    assert stats.max_level_reached == 5
    assert stats.average_score == 50
    assert stats.total_game_sessions == 2
    assert stats.best_score == 60


def test_player_statistics_without_sessions(session_service, player):
    stats = session_service.get_player_statistics(player.player_id)

    assert (stats.max_level_reached, stats.average_score, stats.total_game_sessions, stats.best_score) == (1, 0, 0, 0)


# ── Range queries ────────────────────────────────────────────────

def test_score_range_is_inclusive(session_service, player):
    for score in (5, 10, 15, 20, 25):
        session_service.create_game_session(player.player_id, score, 1)

    in_range = session_service.get_game_sessions_by_score_range(10, 20)

    assert sorted(gs.score for gs in in_range) == [10, 15, 20]


def test_inverted_score_range_is_rejected(session_service):
    with pytest.raises(InvalidArgumentError):
        session_service.get_game_sessions_by_score_range(20, 10)


def test_date_range_is_inclusive(uow, session_service, player):
    start = utcnow().replace(microsecond=0)
    for days in range(5):
        _add_session(uow, player.player_id, days, played_at=start + timedelta(days=days))

    in_range = session_service.get_game_sessions_by_date_range(start + timedelta(days=1), start + timedelta(days=3))

    assert [gs.score for gs in in_range] == [3, 2, 1]


def test_inverted_date_range_is_rejected(session_service):
    now = utcnow()
    with pytest.raises(InvalidArgumentError):
        session_service.get_game_sessions_by_date_range(now, now - timedelta(seconds=1))


def test_date_range_accepts_mixed_naive_and_aware_bounds(uow, session_service, player):
    start = utcnow().replace(microsecond=0)
    _add_session(uow, player.player_id, 1, played_at=start)

    in_range = session_service.get_game_sessions_by_date_range(
        (start - timedelta(hours=1)).replace(tzinfo=timezone.utc), start + timedelta(hours=1),
    )

    assert [gs.score for gs in in_range] == [1]


def test_date_range_converts_offset_bounds_to_utc(uow, session_service, player):
    start = utcnow().replace(microsecond=0)
    for days in range(5):
        _add_session(uow, player.player_id, days, played_at=start + timedelta(days=days))
    # Same instant as start + 1 day, written in UTC+02:00
    lower = (start + timedelta(days=1)).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=2)))

    in_range = session_service.get_game_sessions_by_date_range(lower, start + timedelta(days=3))

    assert [gs.score for gs in in_range] == [3, 2, 1]
