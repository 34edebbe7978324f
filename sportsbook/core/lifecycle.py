"""Status vocabularies and the legal transitions between them.

Games move one way only: ``upcoming → live → final``.  Bets and parlays
start ``pending`` and end at exactly one terminal status.
"""

from __future__ import annotations

from typing import Dict, Final, FrozenSet

# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

GAME_UPCOMING: Final[str] = "upcoming"
GAME_LIVE: Final[str] = "live"
GAME_FINAL: Final[str] = "final"

GAME_STATUSES: Final[tuple] = (GAME_UPCOMING, GAME_LIVE, GAME_FINAL)

_GAME_TRANSITIONS: Final[Dict[str, FrozenSet[str]]] = {
    GAME_UPCOMING: frozenset({GAME_LIVE, GAME_FINAL}),
    GAME_LIVE: frozenset({GAME_FINAL}),
    GAME_FINAL: frozenset(),
}

# ---------------------------------------------------------------------------
# Wagers
# ---------------------------------------------------------------------------

PENDING: Final[str] = "pending"
WON: Final[str] = "won"
LOST: Final[str] = "lost"
CASHED_OUT: Final[str] = "cashed_out"

WAGER_STATUSES: Final[tuple] = (PENDING, WON, LOST, CASHED_OUT)

BET_TYPES: Final[tuple] = ("moneyline", "spread", "total", "prop")


def can_transition_game(current: str, new: str) -> bool:
    """True if a game may move from ``current`` to ``new``.

    Staying in the same non-final status is allowed (a no-op write).
    """
    if current == new:
        return current != GAME_FINAL
    return new in _GAME_TRANSITIONS.get(current, frozenset())


def is_terminal_wager(status: str) -> bool:
    return status != PENDING
