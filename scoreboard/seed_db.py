"""
Database seeding script for the scoreboard.

Populates the database through the services, so seeded data obeys the same
rules as live traffic:
  - N players with generated ``PlayerNNNNN`` usernames
  - M game sessions with random scores and levels, spread over the past year

Usage:
    python -m scoreboard.seed_db --players 100 --sessions 1000 [--reset]
"""

import argparse
import random
import time
from datetime import timedelta

from .config import Config
from .database import build_engine, build_session_factory, create_tables
from .models import utcnow
from .services import GameSessionService, PlayerService
from .unit_of_work import UnitOfWork


def seed(session_factory, players: int, sessions: int, reset: bool = False, rng: random.Random = None):
    """Run all seeding steps sequentially. Returns ``(players_created, sessions_created)``."""
    rng = rng or random.Random()

    with UnitOfWork(session_factory) as uow:
        player_service = PlayerService(uow, rng=rng)
        session_service = GameSessionService(uow)

        # ── Step 0: Clean Slate ──────────────────────────────────
        if reset:
            print("⏳ Removing existing game sessions...")
            removed = session_service.delete_all_game_sessions()
            print(f"   ✓ {removed} game sessions removed")

        # ── Step 1: Players ──────────────────────────────────────
        print(f"⏳ Creating {players} players …")
        start = time.time()
        player_ids = [player_service.create_player("").player_id for _ in range(players)]
        print(f"   ✓ Players created in {time.time() - start:.1f}s")

        if not player_ids:
            return 0, 0

        # ── Step 2: Game Sessions ────────────────────────────────
        print(f"⏳ Recording {sessions} game sessions …")
        start = time.time()
        now = utcnow()
        for _ in range(sessions):
            game_session = session_service.create_game_session(
                rng.choice(player_ids),
                rng.randint(0, 10000),
                rng.randint(1, 30),
            )
            game_session.played_at = now - timedelta(days=rng.randint(0, 364), seconds=rng.randint(0, 86399))
            session_service.update_game_session(game_session)
        print(f"   ✓ Game sessions recorded in {time.time() - start:.1f}s")

    print("\n🎉 Database seeding complete!")
    return len(player_ids), sessions


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the scoreboard database")
    parser.add_argument("--players", type=int, default=100)
    parser.add_argument("--sessions", type=int, default=1000)
    parser.add_argument("--reset", action="store_true", help="delete all game sessions first")
    parser.add_argument("--database-url", default=Config.DATABASE_URL)
    args = parser.parse_args(argv)

    engine = build_engine(args.database_url)
    create_tables(engine)
    try:
        seed(build_session_factory(engine), args.players, args.sessions, reset=args.reset)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
