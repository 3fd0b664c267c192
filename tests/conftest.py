import asyncio

import pytest

from golfboard.broadcaster import Broadcaster
from golfboard.config import GolfBoardConfig
from golfboard.database import DatabaseManager
from golfboard.leaderboard import LeaderboardService
from golfboard.live import LiveScoreService


class FakeConnection:
    """Stands in for a websocket: records every message it is sent."""

    def __init__(self, fail=False, delay=0.0):
        self.messages = []
        self.fail = fail
        self.delay = delay
        self.closed = False

    async def send(self, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("viewer went away")
        self.messages.append(message)

    async def close(self):
        self.closed = True

    def types(self):
        return [message["type"] for message in self.messages]

    def of_type(self, kind):
        return [message["data"] for message in self.messages if message["type"] == kind]


@pytest.fixture
def config(tmp_path, monkeypatch):
    for name in ("LIVE_UPDATES", "LIVE_QUEUE_SIZE", "SCORING_MAX_PAR", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return GolfBoardConfig(str(tmp_path / "golfboard_config.json"), create_default=False)


@pytest.fixture
async def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "golfboard.db"))
    await manager.init_db()
    return manager


@pytest.fixture
def leaderboard(db):
    return LeaderboardService(db)


@pytest.fixture
async def broadcaster():
    instance = Broadcaster(queue_size=10, send_timeout=1.0)
    yield instance
    await instance.close()


@pytest.fixture
def live(db, leaderboard, broadcaster, config):
    return LiveScoreService(db, leaderboard, broadcaster, config)


@pytest.fixture
async def tournament(db):
    """A tournament with two teams and two rounds, no scores yet."""
    created = await db.create_tournament("Spring Classic", location="Pebble Creek")
    eagles = await db.create_team(created.tournament_id, "Eagles", "Ann", "Ben")
    hawks = await db.create_team(created.tournament_id, "Hawks", "Cal", "Dee")
    round1 = await db.create_round(created.tournament_id, 1, "2026-05-01")
    round2 = await db.create_round(created.tournament_id, 2, "2026-05-02")
    return {
        "tournament": created,
        "eagles": eagles,
        "hawks": hawks,
        "round1": round1,
        "round2": round2,
    }


@pytest.fixture
def add_scores(db):
    """Upsert (strokes, par) pairs for holes 1..n of a team's round."""

    async def _add(team, round_, holes):
        for hole_number, (strokes, par) in enumerate(holes, start=1):
            await db.upsert_score(team.team_id, round_.round_id, hole_number, strokes, par)

    return _add
