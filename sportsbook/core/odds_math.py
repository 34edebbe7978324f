"""Fundamental odds and payout mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no hidden state.
Randomness (cash-out pricing) is drawn from a caller-supplied source.
Import from this module; never reimplement locally in services or routes.

The pillars exposed are:

1. **Odds conversion** — American ↔ decimal.
2. **Payouts** — stake × odds → total return, rounded to the cent.
3. **Parlay pricing** — product of decimal multipliers back to American.
4. **Cash-out pricing** — a randomized present value for pending wagers.
5. **The dead zone** — American odds in ``(-101, 101)`` are not a legal
   price in this book; the clamp pushes them outward.

Design decisions
----------------
* Odds are ``int`` American odds end to end.  Decimal odds only exist as an
  intermediate inside :func:`combine_odds`.
* Money is :class:`decimal.Decimal`, quantized to the cent with
  ``ROUND_HALF_UP``.  Floats are accepted on input and converted through
  ``str`` so ``0.1`` stays ``0.1``.
* The cash-out offer is deliberately recomputed on every call.  It is a
  moving quote, not a stored field; the value paid is whatever the call at
  acceptance time returns.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import random
from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Iterable, Optional, Union

from sportsbook.core.errors import InvalidInput
from sportsbook.core.lifecycle import PENDING

Number = Union[int, float, Decimal, str]

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Smallest legal American-odds magnitude.  Everything strictly between
#: -101 and +101 (the pick'em band, including ±100) is the dead zone.
MIN_ODDS_MAGNITUDE: Final[int] = 101

#: Cash-out factor bounds: the offer returns the stake plus a uniformly drawn
#: share in ``[0.3, 0.8)`` of the potential profit.
CASH_OUT_MIN_FACTOR: Final[float] = 0.3
CASH_OUT_FACTOR_SPAN: Final[float] = 0.5

_CENT: Final[Decimal] = Decimal("0.01")
_HUNDRED: Final[Decimal] = Decimal(100)


def to_money(value: Number) -> Decimal:
    """Quantize any numeric to a cent-precision :class:`Decimal`."""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# The dead zone
# ---------------------------------------------------------------------------


def is_dead_zone(odds: int) -> bool:
    """True if ``odds`` lies in ``(-101, 101)``."""
    return -MIN_ODDS_MAGNITUDE < odds < MIN_ODDS_MAGNITUDE


def clamp_dead_zone(odds: int) -> int:
    """Push an odds value out of the dead zone.

    Values outside ``(-101, 101)`` are returned unchanged.  Values inside are
    moved to the boundary on their own side of zero, so a favourite stays a
    favourite: positive values land on ``+101``, zero and negative values on
    ``-101``.

    Examples::

        clamp_dead_zone(5)      → 101
        clamp_dead_zone(-95)    → -101
        clamp_dead_zone(0)      → -101
        clamp_dead_zone(-140)   → -140
    """
    odds = int(odds)
    if not is_dead_zone(odds):
        return odds
    return MIN_ODDS_MAGNITUDE if odds > 0 else -MIN_ODDS_MAGNITUDE


def _validate_odds(odds: int) -> int:
    if odds == 0:
        raise InvalidInput("Odds cannot be 0")
    if is_dead_zone(odds):
        raise InvalidInput(
            f"Invalid American odds {odds!r}: magnitude must be ≥ "
            f"{MIN_ODDS_MAGNITUDE}."
        )
    return int(odds)


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def american_to_decimal(american: int) -> float:
    """Convert American odds to a decimal (European) multiplier.

    Decimal odds are the total return per unit staked, **including** the
    stake::

        american_to_decimal(-200) → 1.5
        american_to_decimal(+150) → 2.5

    Raises:
        InvalidInput: for zero or dead-zone odds.
    """
    american = _validate_odds(american)
    if american > 0:
        return 1.0 + american / 100.0
    return 1.0 + 100.0 / abs(american)


def decimal_to_american(decimal_odds: float) -> int:
    """Convert a decimal multiplier to the nearest American integer.

    Values ≥ 2.0 are returned positive (underdog); values below 2.0 negative.

    Raises:
        InvalidInput: if ``decimal_odds <= 1.0`` (no profit is not a price).
    """
    if decimal_odds <= 1.0:
        raise InvalidInput(f"Decimal odds {decimal_odds!r} must be > 1.0.")
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1.0) * 100)
    return round(-100.0 / (decimal_odds - 1.0))


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


def payout(stake: Number, odds: int) -> Decimal:
    """Total return (stake + profit) of a winning wager, to the cent.

    Args:
        stake: Amount risked.  Must be positive.
        odds: American odds.  Must be outside the dead zone.

    Examples::

        payout(100, +150) → Decimal('250.00')
        payout(100, -150) → Decimal('166.67')

    Raises:
        InvalidInput: on a non-positive stake, zero odds or dead-zone odds.
    """
    amount = Decimal(str(stake)) if not isinstance(stake, Decimal) else stake
    if amount <= 0:
        raise InvalidInput(f"Stake must be positive, got {stake!r}")
    odds = _validate_odds(odds)

    if odds > 0:
        total = amount + amount * Decimal(odds) / _HUNDRED
    else:
        total = amount + amount * _HUNDRED / Decimal(abs(odds))
    return to_money(total)


def combine_odds(odds_list: Iterable[int]) -> int:
    """Combine leg odds into a single parlay price.

    Each leg is converted to its decimal multiplier, the multipliers are
    multiplied, and the product is converted back to American.  A combined
    price that rounds into the dead zone is pushed to ±101 by sign so the
    result is always a quotable price.

    Example: ``[+150, -200]`` → ``2.5 × 1.5 = 3.75`` → ``+275``.

    Raises:
        InvalidInput: on an empty list or any invalid leg.  Requiring two or
            more legs for a parlay is the ledger's job, not this function's.
    """
    legs = list(odds_list)
    if not legs:
        raise InvalidInput("Cannot combine an empty list of odds")

    product = 1.0
    for leg in legs:
        product *= american_to_decimal(leg)

    if len(legs) == 1:
        return _validate_odds(legs[0])
    return clamp_dead_zone(decimal_to_american(product))


# ---------------------------------------------------------------------------
# Cash-out
# ---------------------------------------------------------------------------


def cash_out_value(
    stake: Number,
    potential_payout: Number,
    status: str,
    rng: Optional[random.Random] = None,
) -> Decimal:
    """A fresh early-settlement offer for a wager.

    Returns zero for anything that is not ``pending``.  Otherwise::

        stake + (potential_payout − stake) × f,   f ~ U[0.3, 0.8)

    ``f`` is drawn from ``rng`` (the ``random`` module when omitted) on every
    call, so two reads of the same wager will usually differ.

    Args:
        stake: Amount risked on the wager (or parlay).
        potential_payout: Total return if the wager wins.
        status: Current wager status.
        rng: Random source; pass a seeded or scripted instance in tests.
    """
    if status != PENDING:
        return to_money(0)
    source = rng if rng is not None else random
    factor = CASH_OUT_MIN_FACTOR + source.random() * CASH_OUT_FACTOR_SPAN
    base = Decimal(str(stake))
    top = Decimal(str(potential_payout))
    return to_money(base + (top - base) * Decimal(str(factor)))
