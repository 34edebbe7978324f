"""
Pydantic request/response schemas for the sportsbook API.

Using explicit schemas instead of raw dicts prevents mass-assignment
vulnerabilities on ORM models and keeps the wire format stable.  Python
attributes are snake_case; the wire (HTTP bodies and WebSocket events) is
camelCase via the alias generator.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from sportsbook.core.odds_math import MIN_ODDS_MAGNITUDE

#: Decimal in Python, plain JSON number on the wire.
Money = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]

BetType = Literal["moneyline", "spread", "total", "prop"]
StatMap = Dict[str, Union[int, float]]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


def _check_american_odds(v: int) -> int:
    if v == 0:
        raise ValueError("odds cannot be 0")
    if -MIN_ODDS_MAGNITUDE < v < MIN_ODDS_MAGNITUDE:
        raise ValueError(
            f"odds={v} is not valid American odds. "
            f"Must be >= +{MIN_ODDS_MAGNITUDE} or <= -{MIN_ODDS_MAGNITUDE}."
        )
    return v


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

class GameOut(CamelModel):
    """Full snapshot of a game, as stored and as broadcast."""

    id: str
    sport: str
    league: str
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    status: str
    quarter: Optional[str] = None
    time_remaining: Optional[str] = None
    start_time: datetime
    home_moneyline: int
    away_moneyline: int
    spread: float
    spread_odds: int
    total_points: float
    over_odds: int
    under_odds: int
    home_stats: Optional[StatMap] = None
    away_stats: Optional[StatMap] = None
    featured: bool = False


# ---------------------------------------------------------------------------
# Wagers
# ---------------------------------------------------------------------------

class BetLegIn(CamelModel):
    """One selection: a single wager's terms, or one leg of a parlay."""

    game_id: str = Field(..., min_length=1)
    bet_type: BetType
    selection: str = Field(..., min_length=1, max_length=120)
    odds: int = Field(..., description="American odds at selection time")

    @field_validator("odds")
    @classmethod
    def validate_odds(cls, v: int) -> int:
        return _check_american_odds(v)


class PlaceBetRequest(BetLegIn):
    """Payload for POST /api/bets."""

    stake: Decimal = Field(..., gt=0, decimal_places=2)
    potential_payout: Optional[Decimal] = Field(None, gt=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "gameId": "3f0c9a52-1d7e-4a7c-9d1f-6c7b0b3f2a11",
                "betType": "moneyline",
                "selection": "home",
                "odds": 150,
                "stake": 25.0,
            }
        }
    )


class PlaceParlayRequest(CamelModel):
    """Payload for POST /api/parlays."""

    legs: List[BetLegIn] = Field(..., min_length=2)
    stake: Decimal = Field(..., gt=0, decimal_places=2)
    total_odds: int
    potential_payout: Optional[Decimal] = Field(None, gt=0)

    @field_validator("total_odds")
    @classmethod
    def validate_total_odds(cls, v: int) -> int:
        return _check_american_odds(v)


class BetOut(CamelModel):
    id: str
    user_id: str
    game_id: str
    bet_type: str
    selection: str
    odds: int
    stake: Money
    potential_payout: Money
    status: str
    cash_out_value: Optional[Money] = None
    is_parlay: bool
    parlay_id: Optional[str] = None
    created_at: datetime


class ParlayOut(CamelModel):
    id: str
    user_id: str
    total_odds: int
    stake: Money
    potential_payout: Money
    status: str
    cash_out_value: Optional[Money] = None
    created_at: datetime


class ParlayListResponse(CamelModel):
    """Structure for GET /api/parlays: parlays plus their legs by parlay id."""

    parlays: List[ParlayOut]
    legs: Dict[str, List[BetOut]]


class WalletResponse(CamelModel):
    balance: Money


class CashOutResponse(CamelModel):
    cash_out_value: Money


# ---------------------------------------------------------------------------
# Bet slip (client-local)
# ---------------------------------------------------------------------------

class BetSlipItem(CamelModel):
    """A candidate leg on a user's slip; never persisted."""

    id: str
    game_id: str
    home_team: str
    away_team: str
    bet_type: BetType
    selection: str
    display_selection: str
    odds: int
    stake: Decimal = Decimal("0")

    @property
    def key(self) -> tuple:
        return (self.game_id, self.bet_type, self.selection)
