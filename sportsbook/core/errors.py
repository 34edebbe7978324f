"""Wagering error taxonomy.

Every failure the engine reports to a caller is one of these.  All of them
are recoverable at the request boundary and are raised *before* any side
effect is committed: a failed placement never debits, a failed cash-out
never credits.
"""


class WagerError(Exception):
    """Base class for recoverable wagering failures."""


class InvalidInput(WagerError, ValueError):
    """Malformed arithmetic or state input (non-positive stake, zero odds, ...)."""


class NotFound(WagerError):
    """Unknown game, bet, parlay or user id."""


class InsufficientBalance(WagerError):
    """Stake exceeds the user's current balance."""


class AlreadySettled(WagerError):
    """Cash-out attempted on a record that is no longer pending."""
