"""Core mathematics and configuration for the live sportsbook engine.

This package contains pure, storage-agnostic building blocks:

- ``odds_math``    — American/decimal conversion, payouts, parlay odds,
                     cash-out pricing, the odds dead-zone clamp
- ``errors``       — the wagering error taxonomy
- ``lifecycle``    — game / bet / parlay status constants and transitions
- ``sport_config`` — per-sport constants (scoring values, stat family)

Nothing in this package imports from ``sportsbook.services`` or
``sportsbook.models``.  Randomness is always injected by the caller.
"""
