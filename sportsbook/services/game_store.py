"""
Game State Store: the authoritative set of upcoming, live and final games.

Reads return detached :class:`~sportsbook.schemas.GameOut` snapshots so
callers never hold a live ORM row.  Writes go through one of two atomic
entry points:

  update_game(game_id, delta)    - apply a known field delta
  modify_game(game_id, mutator)  - read-modify-write; the mutator sees the
                                   locked current snapshot and returns a delta

Both hold a per-game lock (plus a row lock where the backend supports it)
for the whole read-modify-write, so two writers on the same game cannot lose
each other's updates while different games proceed in parallel.

Every delta is validated: odds are pushed out of the dead zone, scores never
decrease, status only moves upcoming → live → final, and a final game is
frozen.
"""

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from sportsbook.core.errors import InvalidInput
from sportsbook.core.lifecycle import GAME_FINAL, GAME_STATUSES, can_transition_game
from sportsbook.core.odds_math import clamp_dead_zone, is_dead_zone
from sportsbook.models import Game, SessionLocal
from sportsbook.schemas import GameOut
from sportsbook.services.locks import KeyedLock

logger = logging.getLogger(__name__)

GameDelta = Dict[str, object]
Mutator = Callable[[GameOut], Optional[GameDelta]]

#: Odds columns that must stay outside the dead zone.
ODDS_FIELDS = ("home_moneyline", "away_moneyline", "spread_odds", "over_odds", "under_odds")

#: Columns a delta may touch.  ``id`` is immutable.
MUTABLE_FIELDS = frozenset({
    "sport", "league", "home_team", "away_team",
    "home_score", "away_score", "status", "quarter", "time_remaining",
    "start_time", "spread", "total_points", "home_stats", "away_stats",
    "featured",
}) | frozenset(ODDS_FIELDS)


def _apply_delta(game: Game, delta: GameDelta) -> GameDelta:
    """Validate ``delta`` against ``game`` and apply it in place.

    Returns the fields whose values actually changed (post-clamp).
    Raises InvalidInput without committing anything; the caller rolls back.
    """
    unknown = set(delta) - MUTABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Unknown game fields: {', '.join(sorted(unknown))}")
    if game.status == GAME_FINAL:
        raise InvalidInput(f"Game {game.id} is final and cannot be updated")

    changed: GameDelta = {}
    for field, value in delta.items():
        current = getattr(game, field)

        if field in ODDS_FIELDS:
            value = clamp_dead_zone(int(value))
        elif field in ("home_score", "away_score"):
            if value is None or int(value) < current:
                raise InvalidInput(
                    f"{field} cannot decrease ({current} → {value}) on game {game.id}"
                )
            value = int(value)
        elif field == "status":
            if value not in GAME_STATUSES or not can_transition_game(current, value):
                raise InvalidInput(
                    f"Illegal status change {current!r} → {value!r} on game {game.id}"
                )
        elif field in ("home_stats", "away_stats") and value is not None:
            # New object so the JSON column registers the change
            value = dict(value)

        if value != current:
            setattr(game, field, value)
            changed[field] = value
    return changed


class GameStore:
    """Read and atomic-update access to games."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_games(self, status: Optional[str] = None, sport: Optional[str] = None) -> List[GameOut]:
        db = self._session_factory()
        try:
            q = db.query(Game)
            if status:
                q = q.filter(Game.status == status)
            if sport:
                q = q.filter(Game.sport == sport)
            return [GameOut.model_validate(g) for g in q.order_by(Game.start_time).all()]
        finally:
            db.close()

    def get_game(self, game_id: str) -> Optional[GameOut]:
        db = self._session_factory()
        try:
            game = db.get(Game, game_id)
            return GameOut.model_validate(game) if game else None
        finally:
            db.close()

    def count_games(self) -> int:
        db = self._session_factory()
        try:
            return db.query(Game).count()
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_game(self, **fields) -> GameOut:
        """Insert a game (seed time).  Odds must already be valid prices."""
        for field in ODDS_FIELDS:
            if field in fields and is_dead_zone(int(fields[field])):
                raise InvalidInput(f"{field}={fields[field]} is inside the odds dead zone")
        if fields.get("status", "upcoming") not in GAME_STATUSES:
            raise InvalidInput(f"Unknown game status {fields.get('status')!r}")

        db = self._session_factory()
        try:
            game = Game(**fields)
            db.add(game)
            db.commit()
            db.refresh(game)
            return GameOut.model_validate(game)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update_game(self, game_id: str, delta: GameDelta) -> Optional[GameOut]:
        """Apply ``delta`` atomically.

        Returns the post-update snapshot (unchanged if the delta was a
        no-op), or ``None`` if the game does not exist.
        """
        snapshot, _ = self._locked_write(game_id, lambda _current: delta)
        return snapshot

    def modify_game(self, game_id: str, mutator: Mutator) -> Optional[GameOut]:
        """Atomic read-modify-write.

        ``mutator`` receives the current snapshot while the game is locked
        and returns a delta (or ``None`` / ``{}`` for no change).  Returns the
        new snapshot only when something changed; ``None`` when the game is
        missing or the mutation was a no-op.
        """
        snapshot, changed = self._locked_write(game_id, mutator)
        return snapshot if changed else None

    def _locked_write(self, game_id: str, mutator: Mutator):
        with self._locks.hold(game_id):
            db = self._session_factory()
            try:
                game = (
                    db.query(Game)
                    .filter(Game.id == game_id)
                    .with_for_update()
                    .first()
                )
                if game is None:
                    return None, {}

                delta = mutator(GameOut.model_validate(game))
                changed = _apply_delta(game, delta) if delta else {}
                if not changed:
                    snapshot = GameOut.model_validate(game)
                    db.rollback()
                    return snapshot, {}

                db.commit()
                db.refresh(game)
                logger.debug("Game %s updated: %s", game_id, sorted(changed))
                return GameOut.model_validate(game), changed
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_store: Optional[GameStore] = None


def get_game_store() -> GameStore:
    global _store
    if _store is None:
        _store = GameStore()
    return _store
