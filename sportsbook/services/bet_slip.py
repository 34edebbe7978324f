"""
Bet slip: a per-session, in-memory composer for wager selections.

One ``BetSlip`` instance per client session.  Selections are keyed by
``(game_id, bet_type, selection)``; adding a key that is already on the slip
removes it (toggle), so a slip never carries duplicates.  Nothing here is
persisted or touches the ledger: the slip previews parlay odds and payouts
through the odds calculator and, when the user commits, builds the request
payloads the API accepts.

Listeners registered with :meth:`BetSlip.subscribe` are called after every
change, which is how a UI re-renders.  :meth:`BetSlip.apply_game_update`
consumes ``game_update`` feed messages and re-prices selections whose line
moved.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from sportsbook.core.errors import InvalidInput
from sportsbook.core.odds_math import combine_odds, payout, to_money
from sportsbook.schemas import (
    BetLegIn,
    BetSlipItem,
    GameOut,
    PlaceBetRequest,
    PlaceParlayRequest,
)

logger = logging.getLogger(__name__)

Listener = Callable[[], None]

#: (bet_type, selection) → game odds field that prices it.
_LINE_FIELDS: Dict[tuple, str] = {
    ("moneyline", "home"): "home_moneyline",
    ("moneyline", "away"): "away_moneyline",
    ("spread", "home"): "spread_odds",
    ("spread", "away"): "spread_odds",
    ("total", "over"): "over_odds",
    ("total", "under"): "under_odds",
}


class BetSlip:
    """Selections for one session, with parlay preview."""

    def __init__(self):
        self._items: List[BetSlipItem] = []
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_item(self, item: Union[BetSlipItem, dict]) -> bool:
        """Toggle a selection.  Returns True if added, False if it was removed."""
        if not isinstance(item, BetSlipItem):
            data = dict(item)
            data.setdefault(
                "id",
                f"{data.get('game_id', data.get('gameId'))}-"
                f"{data.get('bet_type', data.get('betType'))}-{data.get('selection')}",
            )
            item = BetSlipItem.model_validate(data)

        existing = self._find(*item.key)
        if existing is not None:
            self._items = [i for i in self._items if i.id != existing.id]
            added = False
        else:
            self._items = self._items + [item.model_copy(update={"stake": Decimal("0")})]
            added = True
        self._notify()
        return added

    def remove_item(self, item_id: str) -> None:
        self._items = [i for i in self._items if i.id != item_id]
        self._notify()

    def update_stake(self, item_id: str, stake) -> None:
        amount = to_money(stake)
        if amount < 0:
            raise InvalidInput(f"Stake cannot be negative, got {stake}")
        self._items = [
            i.model_copy(update={"stake": amount}) if i.id == item_id else i
            for i in self._items
        ]
        self._notify()

    def clear(self) -> None:
        self._items = []
        self._notify()

    def is_selected(self, game_id: str, bet_type: str, selection: str) -> bool:
        return self._find(game_id, bet_type, selection) is not None

    def _find(self, game_id: str, bet_type: str, selection: str) -> Optional[BetSlipItem]:
        for i in self._items:
            if i.key == (game_id, bet_type, selection):
                return i
        return None

    # ------------------------------------------------------------------
    # Live feed
    # ------------------------------------------------------------------

    def apply_game_update(self, game: Union[GameOut, dict]) -> int:
        """Re-price selections on ``game`` from a ``game_update`` payload.

        Accepts a :class:`GameOut` or the wire dict.  Returns how many
        selections changed odds.
        """
        if not isinstance(game, GameOut):
            game = GameOut.model_validate(game)

        repriced = 0
        items = []
        for item in self._items:
            field = _LINE_FIELDS.get((item.bet_type, item.selection))
            if item.game_id == game.id and field is not None:
                odds = getattr(game, field)
                if odds != item.odds:
                    item = item.model_copy(update={"odds": odds})
                    repriced += 1
            items.append(item)

        if repriced:
            self._items = items
            logger.debug("Bet slip: %d selections repriced for game %s", repriced, game.id)
            self._notify()
        return repriced

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def items(self) -> List[BetSlipItem]:
        return list(self._items)

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def total_stake(self) -> Decimal:
        return to_money(sum((i.stake for i in self._items), Decimal("0")))

    @property
    def parlay_odds(self) -> int:
        """Combined odds of every selection, or 0 for an empty slip."""
        if not self._items:
            return 0
        return combine_odds([i.odds for i in self._items])

    def parlay_payout(self, stake=None) -> Decimal:
        """Preview payout of a parlay over the whole slip.

        Uses ``stake`` when given, otherwise the sum of per-item stakes.
        Zero unless there are 2+ selections and a positive stake.
        """
        amount = self.total_stake if stake is None else to_money(stake)
        if self.count < 2 or amount <= 0:
            return to_money(0)
        return payout(amount, self.parlay_odds)

    # ------------------------------------------------------------------
    # Submission payloads
    # ------------------------------------------------------------------

    def single_requests(self) -> List[PlaceBetRequest]:
        """One place-bet payload per selection that has a stake."""
        return [
            PlaceBetRequest(
                game_id=i.game_id,
                bet_type=i.bet_type,
                selection=i.selection,
                odds=i.odds,
                stake=i.stake,
                potential_payout=payout(i.stake, i.odds),
            )
            for i in self._items
            if i.stake > 0
        ]

    def parlay_request(self, stake=None) -> PlaceParlayRequest:
        """The place-parlay payload for the whole slip.

        ``stake`` defaults to the sum of per-item stakes.
        """
        amount = self.total_stake if stake is None else to_money(stake)
        if self.count < 2:
            raise InvalidInput(f"A parlay needs at least 2 selections, got {self.count}")
        if amount <= 0:
            raise InvalidInput("Parlay stake must be positive")
        return PlaceParlayRequest(
            legs=[
                BetLegIn(
                    game_id=i.game_id,
                    bet_type=i.bet_type,
                    selection=i.selection,
                    odds=i.odds,
                )
                for i in self._items
            ],
            stake=amount,
            total_odds=self.parlay_odds,
            potential_payout=self.parlay_payout(amount),
        )
