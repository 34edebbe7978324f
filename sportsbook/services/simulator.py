"""
Live game simulator: a bounded random walk over scores, odds and stats.

Runs as an APScheduler interval job (default every 5 seconds).  Each tick:

    1. Lists games and keeps the ones that are ``live``.
    2. For each live game, inside the store's atomic read-modify-write,
       rolls three independent deltas against the locked snapshot:
         - scoring   (p = 0.15): sport-dependent points to a random side
         - odds drift: shift in [-8, 8]; |shift| > 3 moves the moneylines
                       zero-sum, then each side is pushed out of the dead zone
         - stat drift (p = 0.30): each side's counters evolve under the
                       rules for the game's sport family
       A game is written only if a field actually changed.
    3. Publishes every changed game as a ``game_update`` event.

A failure on one game (deleted mid-tick, validation error, DB hiccup) is
logged and skipped; the rest of the tick and the schedule carry on.
Overlapping ticks are skipped rather than queued.
"""

import logging
import random
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sportsbook.core.lifecycle import GAME_LIVE
from sportsbook.core.odds_math import clamp_dead_zone
from sportsbook.core.sport_config import (
    FAMILY_BASEBALL,
    FAMILY_BASKETBALL,
    FAMILY_FOOTBALL,
    FAMILY_SOCCER,
    get_sport_config,
)
from sportsbook.schemas import GameOut
from sportsbook.services.broadcaster import Broadcaster, get_broadcaster
from sportsbook.services.game_store import GameStore, get_game_store

logger = logging.getLogger(__name__)

# Per-tick event probabilities
SCORE_PROBABILITY = 0.15
STAT_DRIFT_PROBABILITY = 0.30

# Moneyline random walk
ODDS_SHIFT_RANGE = 8
ODDS_SHIFT_MIN_MAGNITUDE = 3  # |shift| must exceed this to move the line

StatMap = Dict[str, float]


# ---------------------------------------------------------------------------
# Stat drift rules (pure; one function per sport family)
# ---------------------------------------------------------------------------

def _bump(stats: StatMap, key: str, probability: float, rng: random.Random) -> None:
    if key in stats and rng.random() < probability:
        stats[key] += 1


def _drift_soccer(stats: StatMap, rng: random.Random) -> None:
    if "possession" in stats:
        stats["possession"] = max(30, min(70, stats["possession"] + rng.randint(-2, 2)))
    _bump(stats, "totalShots", 0.3, rng)
    if "shotsOnTarget" in stats and "totalShots" in stats:
        on_target = stats["shotsOnTarget"] + (1 if rng.random() < 0.2 else 0)
        stats["shotsOnTarget"] = min(on_target, stats["totalShots"])
    _bump(stats, "fouls", 0.2, rng)
    _bump(stats, "corners", 0.1, rng)


def _drift_football(stats: StatMap, rng: random.Random) -> None:
    if "passingYards" in stats:
        stats["passingYards"] += rng.randint(0, 15)
    if "rushingYards" in stats:
        stats["rushingYards"] += rng.randint(0, 8)
    _bump(stats, "turnovers", 0.05, rng)


def _drift_basketball(stats: StatMap, rng: random.Random) -> None:
    _bump(stats, "rebounds", 0.4, rng)
    _bump(stats, "assists", 0.4, rng)
    _bump(stats, "steals", 0.1, rng)
    if "fieldGoalPct" in stats:
        stats["fieldGoalPct"] = round(stats["fieldGoalPct"] + rng.randint(-1, 1), 1)


def _drift_baseball(stats: StatMap, rng: random.Random) -> None:
    _bump(stats, "hits", 0.15, rng)
    _bump(stats, "strikeouts", 0.2, rng)
    _bump(stats, "walks", 0.1, rng)


STAT_RULES: Dict[str, Callable[[StatMap, random.Random], None]] = {
    FAMILY_SOCCER: _drift_soccer,
    FAMILY_FOOTBALL: _drift_football,
    FAMILY_BASKETBALL: _drift_basketball,
    FAMILY_BASEBALL: _drift_baseball,
}


def drift_stats(stats: Optional[StatMap], sport: str, rng: random.Random) -> Optional[StatMap]:
    """Next stat snapshot for one side.  Absent keys stay absent.

    Returns a new mapping (the input is never mutated), or the input itself
    when there is nothing to drift.
    """
    if not stats:
        return stats
    rule = STAT_RULES.get(get_sport_config(sport).stat_family)
    if rule is None:
        return stats
    updated = dict(stats)
    rule(updated, rng)
    return updated


# ---------------------------------------------------------------------------
# Per-game delta (pure)
# ---------------------------------------------------------------------------

def compute_game_delta(game: GameOut, rng: random.Random) -> Dict[str, object]:
    """Roll one tick's worth of changes for a live game.

    Returns only the fields whose values differ from ``game``; an empty dict
    means the game is untouched this tick.
    """
    if game.status != GAME_LIVE:
        return {}

    delta: Dict[str, object] = {}

    # Scoring
    if rng.random() < SCORE_PROBABILITY:
        side = "home" if rng.random() < 0.5 else "away"
        points = rng.choice(get_sport_config(game.sport).scoring_values)
        field = f"{side}_score"
        delta[field] = getattr(game, field) + points

    # Odds drift
    shift = rng.randint(-ODDS_SHIFT_RANGE, ODDS_SHIFT_RANGE)
    if abs(shift) > ODDS_SHIFT_MIN_MAGNITUDE:
        delta["home_moneyline"] = clamp_dead_zone(game.home_moneyline + shift)
        delta["away_moneyline"] = clamp_dead_zone(game.away_moneyline - shift)

    # Stat drift
    if rng.random() < STAT_DRIFT_PROBABILITY:
        delta["home_stats"] = drift_stats(game.home_stats, game.sport, rng)
        delta["away_stats"] = drift_stats(game.away_stats, game.sport, rng)

    return {k: v for k, v in delta.items() if getattr(game, k) != v}


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------

class GameSimulator:
    """
    Drives live games forward one tick at a time.

    Usage::

        simulator = GameSimulator(store, broadcaster)
        scheduler.add_job(simulator.tick, IntervalTrigger(seconds=5))
    """

    def __init__(
        self,
        store: GameStore,
        broadcaster: Broadcaster,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._broadcaster = broadcaster
        self._rng = rng or random.Random()
        self._tick_lock = threading.Lock()
        self._ticks_run = 0
        self._ticks_skipped = 0
        self._last_tick: Optional[datetime] = None
        self._last_summary: Dict = {}

    def tick(self) -> List[GameOut]:
        """Run one simulation pass.  Returns the games that changed."""
        if not self._tick_lock.acquire(blocking=False):
            self._ticks_skipped += 1
            logger.warning("Simulator tick skipped: previous tick still running")
            return []
        try:
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> List[GameOut]:
        live_games = [g for g in self._store.list_games() if g.status == GAME_LIVE]

        updated: List[GameOut] = []
        failures = 0
        for game in live_games:
            try:
                snapshot = self._store.modify_game(
                    game.id, lambda current: compute_game_delta(current, self._rng)
                )
            except Exception as exc:
                failures += 1
                logger.error("Tick failed for game %s: %s", game.id, exc, exc_info=True)
                continue
            if snapshot is None:
                continue
            updated.append(snapshot)
            self._broadcaster.publish_game(snapshot)

        self._ticks_run += 1
        self._last_tick = datetime.utcnow()
        self._last_summary = {
            "live_games": len(live_games),
            "updated": len(updated),
            "failures": failures,
        }
        if updated or failures:
            logger.info(
                "Simulator tick: %d live, %d updated, %d failed",
                len(live_games), len(updated), failures,
            )
        else:
            logger.debug("Simulator tick: %d live, nothing changed", len(live_games))
        return updated

    def get_status(self) -> Dict:
        """Return simulator status for the admin endpoint."""
        return {
            "ticks_run": self._ticks_run,
            "ticks_skipped": self._ticks_skipped,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "last_summary": dict(self._last_summary),
        }


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_simulator: Optional[GameSimulator] = None


def get_simulator() -> GameSimulator:
    global _simulator
    if _simulator is None:
        _simulator = GameSimulator(get_game_store(), get_broadcaster())
    return _simulator
