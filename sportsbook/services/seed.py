"""
Demo slate: a fixed set of games inserted into an empty store.

Covers every sport family the simulator understands, in every status, so a
fresh install has something live to watch and something upcoming to bet on.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sportsbook.core.lifecycle import GAME_FINAL, GAME_LIVE, GAME_UPCOMING
from sportsbook.core.sport_config import get_sport_config
from sportsbook.services.game_store import GameStore

logger = logging.getLogger(__name__)

# (sport, league, home, away, status, quarter, clock, home_score, away_score,
#  home_ml, away_ml, spread, total, start offset in minutes, featured)
_SLATE = [
    ("nfl", "NFL", "Kansas City Chiefs", "Buffalo Bills", GAME_LIVE, "Q3", "8:42",
     17, 14, -145, 125, -3.5, 48.5, -95, True),
    ("nfl", "NFL", "Philadelphia Eagles", "Dallas Cowboys", GAME_UPCOMING, None, None,
     0, 0, -170, 145, -4.0, 45.5, 180, False),
    ("nba", "NBA", "Boston Celtics", "Milwaukee Bucks", GAME_LIVE, "Q2", "3:15",
     52, 49, -190, 160, -5.5, 224.5, -40, True),
    ("nba", "NBA", "Denver Nuggets", "Los Angeles Lakers", GAME_UPCOMING, None, None,
     0, 0, -135, 115, -2.5, 229.0, 240, False),
    ("mlb", "MLB", "Los Angeles Dodgers", "Atlanta Braves", GAME_LIVE, "Top 6th", "1 out",
     3, 2, -125, 105, -1.5, 8.5, -110, False),
    ("mlb", "MLB", "New York Yankees", "Houston Astros", GAME_FINAL, "Final", None,
     5, 4, -115, -105, -1.5, 9.0, -300, False),
    ("soccer", "Premier League", "Arsenal", "Manchester City", GAME_LIVE, "2nd Half", "67'",
     1, 1, 210, 125, 0.5, 2.5, -70, True),
    ("soccer", "La Liga", "Real Madrid", "Barcelona", GAME_UPCOMING, None, None,
     0, 0, 140, 180, -0.5, 3.0, 360, False),
]


def _opening_stats(sport: str) -> Optional[Dict[str, float]]:
    stats = get_sport_config(sport).opening_stats()
    return stats or None


def seed_games(store: GameStore, now: Optional[datetime] = None) -> int:
    """Insert the demo slate if the store is empty.  Returns games created."""
    if store.count_games() > 0:
        logger.debug("Seed skipped: games already present")
        return 0

    now = now or datetime.utcnow()
    created: List[str] = []
    for (sport, league, home, away, status, quarter, clock, home_score, away_score,
         home_ml, away_ml, spread, total, offset, featured) in _SLATE:
        game = store.create_game(
            sport=sport,
            league=league,
            home_team=home,
            away_team=away,
            home_score=home_score,
            away_score=away_score,
            status=status,
            quarter=quarter,
            time_remaining=clock,
            start_time=now + timedelta(minutes=offset),
            home_moneyline=home_ml,
            away_moneyline=away_ml,
            spread=spread,
            spread_odds=-110,
            total_points=total,
            over_odds=-110,
            under_odds=-110,
            home_stats=_opening_stats(sport),
            away_stats=_opening_stats(sport),
            featured=featured,
        )
        created.append(game.id)

    logger.info("Seeded %d games", len(created))
    return len(created)
