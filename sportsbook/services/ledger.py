"""
Wager ledger: balances, bets, parlays and cash-outs.

Every operation is one database transaction that touches a single user's
balance and records.  Operations for the same user are serialized (keyed
in-process lock plus a row lock on the user), so two concurrent placements
can never spend the same money twice.  Different users proceed in parallel.

Failures raise before commit, so a rejected placement never debits and a
rejected cash-out never credits.

Odds are frozen on the wager at placement time; later game odds movement is
never consulted.  Cash-out offers are recomputed on every read and the
amount paid is whatever the calculator returns at acceptance time.
"""

import logging
import random
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from sportsbook.core.errors import (
    AlreadySettled,
    InsufficientBalance,
    InvalidInput,
    NotFound,
)
from sportsbook.core.lifecycle import BET_TYPES, CASHED_OUT, PENDING
from sportsbook.core.odds_math import (
    cash_out_value,
    combine_odds,
    is_dead_zone,
    payout,
    to_money,
)
from sportsbook.models import Bet, Game, Parlay, SessionLocal, User
from sportsbook.schemas import BetLegIn, BetOut, ParlayOut
from sportsbook.services.locks import KeyedLock

logger = logging.getLogger(__name__)

DEFAULT_STARTING_BALANCE = Decimal("1000.00")

Amount = Union[int, float, Decimal, str]


def _as_leg(leg) -> BetLegIn:
    if isinstance(leg, BetLegIn):
        return leg
    try:
        return BetLegIn.model_validate(leg)
    except ValidationError as exc:
        raise InvalidInput(f"Invalid parlay leg: {exc}") from exc


class Ledger:
    """Per-user wager bookkeeping on top of the ORM session factory."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        rng: Optional[random.Random] = None,
    ):
        self._session_factory = session_factory
        self._rng = rng
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_or_create_user(
        self, username: str, starting_balance: Amount = DEFAULT_STARTING_BALANCE
    ) -> str:
        """Return the id of ``username``, creating the account if needed."""
        with self._locks.hold(f"username:{username}"):
            db = self._session_factory()
            try:
                user = db.query(User).filter(User.username == username).first()
                if user is None:
                    user = User(username=username, balance=to_money(starting_balance))
                    db.add(user)
                    db.commit()
                    logger.info("Created user %s with balance %s", username, user.balance)
                return user.id
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def get_balance(self, user_id: str) -> Decimal:
        db = self._session_factory()
        try:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound(f"User {user_id} not found")
            return to_money(user.balance)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def place_bet(
        self,
        user_id: str,
        game_id: str,
        bet_type: str,
        selection: str,
        odds: int,
        stake: Amount,
        potential_payout: Optional[Amount] = None,
    ) -> BetOut:
        """Place a single wager and debit its stake."""
        stake = to_money(stake)
        if stake <= 0:
            raise InvalidInput(f"Stake must be positive, got {stake}")
        if bet_type not in BET_TYPES:
            raise InvalidInput(f"Unknown bet type {bet_type!r}")
        if is_dead_zone(int(odds)):
            raise InvalidInput(f"Odds {odds} are inside the dead zone")

        with self._locks.hold(user_id):
            db = self._session_factory()
            try:
                user = self._locked_user(db, user_id)
                if stake > user.balance:
                    raise InsufficientBalance(
                        f"Stake {stake} exceeds balance {to_money(user.balance)}"
                    )
                if db.get(Game, game_id) is None:
                    raise NotFound(f"Game {game_id} not found")

                amount = (
                    to_money(potential_payout)
                    if potential_payout is not None
                    else payout(stake, odds)
                )
                bet = Bet(
                    user_id=user_id,
                    game_id=game_id,
                    bet_type=bet_type,
                    selection=selection,
                    odds=int(odds),
                    stake=stake,
                    potential_payout=amount,
                    status=PENDING,
                    is_parlay=False,
                    parlay_id=None,
                )
                db.add(bet)
                user.balance = to_money(user.balance) - stake
                db.commit()
                db.refresh(bet)
                logger.info(
                    "Bet placed: user=%s game=%s %s/%s @ %+d stake=%s payout=%s",
                    user_id, game_id, bet_type, selection, odds, stake, amount,
                )
                return BetOut.model_validate(bet)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def place_parlay(
        self,
        user_id: str,
        legs: Sequence,
        stake: Amount,
        total_odds: Optional[int] = None,
        potential_payout: Optional[Amount] = None,
    ) -> ParlayOut:
        """Place a parlay over two or more legs and debit the parlay stake once.

        ``legs`` are :class:`~sportsbook.schemas.BetLegIn` objects or dicts
        with the same fields.  ``total_odds`` defaults to the combined leg
        odds; the payout defaults to the stake at ``total_odds``.
        """
        legs = [_as_leg(leg) for leg in legs]
        if len(legs) < 2:
            raise InvalidInput(f"A parlay needs at least 2 legs, got {len(legs)}")
        stake = to_money(stake)
        if stake <= 0:
            raise InvalidInput(f"Stake must be positive, got {stake}")
        if total_odds is None:
            total_odds = combine_odds([leg.odds for leg in legs])
        elif is_dead_zone(int(total_odds)):
            raise InvalidInput(f"Parlay odds {total_odds} are inside the dead zone")

        with self._locks.hold(user_id):
            db = self._session_factory()
            try:
                user = self._locked_user(db, user_id)
                if stake > user.balance:
                    raise InsufficientBalance(
                        f"Stake {stake} exceeds balance {to_money(user.balance)}"
                    )
                for leg in legs:
                    if db.get(Game, leg.game_id) is None:
                        raise NotFound(f"Game {leg.game_id} not found")

                amount = (
                    to_money(potential_payout)
                    if potential_payout is not None
                    else payout(stake, total_odds)
                )
                parlay = Parlay(
                    user_id=user_id,
                    total_odds=int(total_odds),
                    stake=stake,
                    potential_payout=amount,
                    status=PENDING,
                )
                db.add(parlay)
                db.flush()

                for leg in legs:
                    db.add(Bet(
                        user_id=user_id,
                        game_id=leg.game_id,
                        bet_type=leg.bet_type,
                        selection=leg.selection,
                        odds=leg.odds,
                        stake=Decimal("0.00"),
                        potential_payout=Decimal("0.00"),
                        status=PENDING,
                        is_parlay=True,
                        parlay_id=parlay.id,
                    ))

                user.balance = to_money(user.balance) - stake
                db.commit()
                db.refresh(parlay)
                logger.info(
                    "Parlay placed: user=%s legs=%d @ %+d stake=%s payout=%s",
                    user_id, len(legs), total_odds, stake, amount,
                )
                return ParlayOut.model_validate(parlay)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    # ------------------------------------------------------------------
    # Cash-out
    # ------------------------------------------------------------------

    def cash_out_bet(self, user_id: str, bet_id: str) -> Decimal:
        """Settle a pending single bet early.  Returns the amount credited."""
        with self._locks.hold(user_id):
            db = self._session_factory()
            try:
                user = self._locked_user(db, user_id)
                bet = db.get(Bet, bet_id)
                if bet is None or bet.user_id != user_id:
                    raise NotFound(f"Bet {bet_id} not found")
                if bet.status != PENDING:
                    raise AlreadySettled(f"Bet {bet_id} already settled ({bet.status})")
                if bet.is_parlay:
                    raise InvalidInput(
                        f"Bet {bet_id} is a parlay leg; cash out parlay {bet.parlay_id}"
                    )

                value = cash_out_value(bet.stake, bet.potential_payout, bet.status, self._rng)
                bet.status = CASHED_OUT
                bet.cash_out_value = value
                user.balance = to_money(user.balance) + value
                db.commit()
                logger.info("Bet cashed out: user=%s bet=%s value=%s", user_id, bet_id, value)
                return value
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def cash_out_parlay(self, user_id: str, parlay_id: str) -> Decimal:
        """Settle a pending parlay early; every leg follows it to ``cashed_out``."""
        with self._locks.hold(user_id):
            db = self._session_factory()
            try:
                user = self._locked_user(db, user_id)
                parlay = db.get(Parlay, parlay_id)
                if parlay is None or parlay.user_id != user_id:
                    raise NotFound(f"Parlay {parlay_id} not found")
                if parlay.status != PENDING:
                    raise AlreadySettled(
                        f"Parlay {parlay_id} already settled ({parlay.status})"
                    )

                value = cash_out_value(
                    parlay.stake, parlay.potential_payout, parlay.status, self._rng
                )
                parlay.status = CASHED_OUT
                parlay.cash_out_value = value
                legs = db.query(Bet).filter(Bet.parlay_id == parlay_id).all()
                for leg in legs:
                    leg.status = CASHED_OUT
                user.balance = to_money(user.balance) + value
                db.commit()
                logger.info(
                    "Parlay cashed out: user=%s parlay=%s legs=%d value=%s",
                    user_id, parlay_id, len(legs), value,
                )
                return value
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_bets(self, user_id: str) -> List[BetOut]:
        """All of a user's bets (legs included), newest first, with live offers."""
        db = self._session_factory()
        try:
            bets = (
                db.query(Bet)
                .filter(Bet.user_id == user_id)
                .order_by(Bet.created_at.desc())
                .all()
            )
            return [self._with_offer(BetOut.model_validate(b)) for b in bets]
        finally:
            db.close()

    def list_parlays(self, user_id: str) -> Tuple[List[ParlayOut], Dict[str, List[BetOut]]]:
        """A user's parlays newest first with live offers, plus legs by parlay id."""
        db = self._session_factory()
        try:
            parlays = (
                db.query(Parlay)
                .filter(Parlay.user_id == user_id)
                .order_by(Parlay.created_at.desc())
                .all()
            )
            legs: Dict[str, List[BetOut]] = {}
            out: List[ParlayOut] = []
            for parlay in parlays:
                leg_rows = (
                    db.query(Bet)
                    .filter(Bet.parlay_id == parlay.id)
                    .order_by(Bet.created_at.desc())
                    .all()
                )
                legs[parlay.id] = [BetOut.model_validate(b) for b in leg_rows]
                out.append(self._with_offer(ParlayOut.model_validate(parlay)))
            return out, legs
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_offer(self, record):
        """Attach a fresh, unsaved cash-out offer to a pending record."""
        if record.status != PENDING:
            return record
        offer = cash_out_value(record.stake, record.potential_payout, record.status, self._rng)
        return record.model_copy(update={"cash_out_value": offer})

    @staticmethod
    def _locked_user(db: Session, user_id: str) -> User:
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_ledger: Optional[Ledger] = None


def get_ledger() -> Ledger:
    global _ledger
    if _ledger is None:
        _ledger = Ledger()
    return _ledger
