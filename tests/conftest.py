"""
Shared fixtures: an in-memory database per test and a scripted random source.
"""

import random
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sportsbook.models import Base, make_engine
from sportsbook.services.broadcaster import Broadcaster
from sportsbook.services.game_store import GameStore
from sportsbook.services.ledger import Ledger


class ScriptedRandom(random.Random):
    """Random source that replays queued values.

    Each method pops from its own queue; once a queue is empty it falls back
    to a neutral value (``default`` for ``random()``, ``0`` for ``randint``
    and the first element for ``choice``).
    """

    def __init__(self, randoms=(), randints=(), choices=(), default=0.99):
        super().__init__(0)
        self.randoms = list(randoms)
        self.randints = list(randints)
        self.choices = list(choices)
        self.default = default

    def random(self):
        return self.randoms.pop(0) if self.randoms else self.default

    def randint(self, a, b):
        if not self.randints:
            return max(a, min(b, 0))
        value = self.randints.pop(0)
        assert a <= value <= b, f"scripted randint {value} outside [{a}, {b}]"
        return value

    def choice(self, seq):
        if not self.choices:
            return seq[0]
        value = self.choices.pop(0)
        assert value in seq, f"scripted choice {value} not in {seq}"
        return value


@pytest.fixture
def scripted_rng():
    """Factory for :class:`ScriptedRandom` instances."""
    return ScriptedRandom


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    return GameStore(session_factory)


@pytest.fixture
def ledger(session_factory):
    # random() == 0.5 → cash-out factor 0.55
    return Ledger(session_factory, rng=ScriptedRandom(default=0.5))


@pytest.fixture
def broadcaster():
    return Broadcaster()


def _game_fields(**overrides):
    fields = dict(
        sport="nfl",
        league="NFL",
        home_team="Kansas City Chiefs",
        away_team="Buffalo Bills",
        home_score=0,
        away_score=0,
        status="live",
        quarter="Q1",
        time_remaining="15:00",
        start_time=datetime(2026, 1, 18, 18, 0),
        home_moneyline=-150,
        away_moneyline=130,
        spread=-3.5,
        spread_odds=-110,
        total_points=47.5,
        over_odds=-110,
        under_odds=-110,
        home_stats={"passingYards": 0, "rushingYards": 0, "turnovers": 0},
        away_stats={"passingYards": 0, "rushingYards": 0, "turnovers": 0},
    )
    fields.update(overrides)
    return fields


@pytest.fixture
def make_game(store):
    """Insert a game; keyword overrides replace the NFL live defaults."""

    def _make(**overrides):
        return store.create_game(**_game_fields(**overrides))

    return _make


@pytest.fixture
def user_id(ledger):
    return ledger.get_or_create_user("alice", "1000.00")
