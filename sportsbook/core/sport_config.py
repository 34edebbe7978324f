"""Sport-level configuration — all sport-specific constants in one place.

This module is the **registry** for every constant that differs between
sports.  Nowhere else in the codebase should scoring values or stat key sets
be hard-coded.

Architecture
------------
:class:`SportConfig` is a frozen dataclass carrying per-sport constants.
Named constructors (:meth:`SportConfig.nfl`, :meth:`SportConfig.nba`, ...)
return pre-populated instances and :func:`get_sport_config` resolves a sport
id from a game record.  Unknown sports fall back to :meth:`SportConfig.generic`
(one point per scoring event, no in-play stat rules).

The ``stat_family`` field is what the live simulator dispatches stat drift
on; several sport ids share a family (``nba`` and ``ncaab`` are both
``basketball``).

Typical usage::

    from sportsbook.core.sport_config import get_sport_config

    cfg = get_sport_config(game.sport)
    points = rng.choice(cfg.scoring_values)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Final, Tuple

#: Sport identifier strings used in game records and API filters.
SPORT_ID_NFL: Final[str] = "nfl"
SPORT_ID_NCAAF: Final[str] = "ncaaf"
SPORT_ID_NBA: Final[str] = "nba"
SPORT_ID_NCAAB: Final[str] = "ncaab"
SPORT_ID_MLB: Final[str] = "mlb"
SPORT_ID_SOCCER: Final[str] = "soccer"

#: Stat families understood by the simulator's drift rules.
FAMILY_FOOTBALL: Final[str] = "football"
FAMILY_BASKETBALL: Final[str] = "basketball"
FAMILY_BASEBALL: Final[str] = "baseball"
FAMILY_SOCCER: Final[str] = "soccer"
FAMILY_OTHER: Final[str] = "other"


@dataclass(frozen=True)
class SportConfig:
    """Immutable configuration bundle for a single sport.

    Attributes:
        sport_id: Short identifier (``"nfl"``, ``"nba"``, ...).
        sport_name: Human-readable name for logging and display.
        stat_family: Drift-rule family for in-play stats.
        scoring_values: Points awarded by one scoring event; the simulator
            draws uniformly from this tuple.
        stat_keys: In-play counters a freshly seeded game of this sport
            carries, with their opening values.
    """

    sport_id: str
    sport_name: str
    stat_family: str = FAMILY_OTHER
    scoring_values: Tuple[int, ...] = (1,)
    stat_keys: Tuple[Tuple[str, float], ...] = ()

    def opening_stats(self) -> Dict[str, float]:
        """A fresh stat mapping for one side of a newly seeded game."""
        return dict(self.stat_keys)

    # ------------------------------------------------------------------
    # Named constructors
    # ------------------------------------------------------------------

    @classmethod
    def nfl(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_NFL,
            sport_name="NFL",
            stat_family=FAMILY_FOOTBALL,
            scoring_values=(3, 6, 7),
            stat_keys=(("passingYards", 0), ("rushingYards", 0), ("turnovers", 0)),
        )

    @classmethod
    def ncaaf(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_NCAAF,
            sport_name="College Football",
            stat_family=FAMILY_FOOTBALL,
            scoring_values=(3, 6, 7),
            stat_keys=(("passingYards", 0), ("rushingYards", 0), ("turnovers", 0)),
        )

    @classmethod
    def nba(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_NBA,
            sport_name="NBA",
            stat_family=FAMILY_BASKETBALL,
            scoring_values=(1, 2, 3),
            stat_keys=(
                ("rebounds", 0),
                ("assists", 0),
                ("steals", 0),
                ("fieldGoalPct", 45.0),
            ),
        )

    @classmethod
    def ncaab(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_NCAAB,
            sport_name="College Basketball",
            stat_family=FAMILY_BASKETBALL,
            scoring_values=(1, 2, 3),
            stat_keys=(
                ("rebounds", 0),
                ("assists", 0),
                ("steals", 0),
                ("fieldGoalPct", 43.0),
            ),
        )

    @classmethod
    def mlb(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_MLB,
            sport_name="MLB",
            stat_family=FAMILY_BASEBALL,
            stat_keys=(("hits", 0), ("strikeouts", 0), ("walks", 0)),
        )

    @classmethod
    def soccer(cls) -> "SportConfig":
        return cls(
            sport_id=SPORT_ID_SOCCER,
            sport_name="Soccer",
            stat_family=FAMILY_SOCCER,
            stat_keys=(
                ("possession", 50),
                ("totalShots", 0),
                ("shotsOnTarget", 0),
                ("fouls", 0),
                ("corners", 0),
            ),
        )

    @classmethod
    def generic(cls, sport_id: str) -> "SportConfig":
        return cls(sport_id=sport_id, sport_name=sport_id.upper())


_REGISTRY: Final[Dict[str, SportConfig]] = {
    cfg.sport_id: cfg
    for cfg in (
        SportConfig.nfl(),
        SportConfig.ncaaf(),
        SportConfig.nba(),
        SportConfig.ncaab(),
        SportConfig.mlb(),
        SportConfig.soccer(),
    )
}

# League-style ids that play by soccer rules.
for _alias in ("epl", "mls", "laliga", "ucl"):
    _REGISTRY[_alias] = SportConfig(
        sport_id=_alias,
        sport_name=_alias.upper(),
        stat_family=FAMILY_SOCCER,
        stat_keys=SportConfig.soccer().stat_keys,
    )


def get_sport_config(sport_id: str) -> SportConfig:
    """Resolve a sport id (case-insensitive) to its configuration."""
    key = (sport_id or "").strip().lower()
    return _REGISTRY.get(key) or SportConfig.generic(key)
