"""
Database models for the live sportsbook
SQLAlchemy ORM; PostgreSQL in production, SQLite for local runs and tests
"""

import os
import uuid
from datetime import datetime
from decimal import Decimal

from dotenv import load_dotenv
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from sportsbook.core.lifecycle import GAME_UPCOMING, PENDING

# Load .env before reading DATABASE_URL
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sportsbook.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"


def make_engine(url: str = DATABASE_URL, **kwargs):
    """Build an engine; SQLite connections are shared across scheduler threads."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, echo=SQL_ECHO, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Currency columns: two decimal places, returned as Decimal
Money = Numeric(12, 2, asdecimal=True)


def _uuid() -> str:
    return str(uuid.uuid4())


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class User(Base):
    """Account holder with a cash balance"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String, unique=True, nullable=False, index=True)
    balance = Column(Money, nullable=False, default=Decimal("1000.00"))

    bets = relationship("Bet", back_populates="user")
    parlays = relationship("Parlay", back_populates="user")


class Game(Base):
    """A sporting event with live score, odds lines and in-play stats"""

    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_uuid)
    sport = Column(String, nullable=False, index=True)
    league = Column(String, nullable=False)
    home_team = Column(String, nullable=False)
    away_team = Column(String, nullable=False)
    home_score = Column(Integer, nullable=False, default=0)
    away_score = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=GAME_UPCOMING, index=True)  # upcoming | live | final
    quarter = Column(String)  # Display only: "Q3", "2nd Half", "Top 7th"
    time_remaining = Column(String)
    start_time = Column(DateTime, nullable=False)

    # Odds lines (American)
    home_moneyline = Column(Integer, nullable=False)
    away_moneyline = Column(Integer, nullable=False)
    spread = Column(Float, nullable=False)  # Home handicap (negative = home favourite)
    spread_odds = Column(Integer, nullable=False, default=-110)
    total_points = Column(Float, nullable=False)
    over_odds = Column(Integer, nullable=False, default=-110)
    under_odds = Column(Integer, nullable=False, default=-110)

    # Sparse per-side counters, key set depends on the sport
    home_stats = Column(JSON)
    away_stats = Column(JSON)

    featured = Column(Boolean, nullable=False, default=False)


class Parlay(Base):
    """A combined wager over two or more legs"""

    __tablename__ = "parlays"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    total_odds = Column(Integer, nullable=False)  # Frozen at placement
    stake = Column(Money, nullable=False)
    potential_payout = Column(Money, nullable=False)
    status = Column(String, nullable=False, default=PENDING, index=True)
    cash_out_value = Column(Money)  # Amount actually paid on cash-out
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="parlays")
    legs = relationship("Bet", back_populates="parlay")


class Bet(Base):
    """A single wager, or one leg of a parlay (stake 0, terms on the parlay)"""

    __tablename__ = "bets"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    bet_type = Column(String, nullable=False)  # moneyline | spread | total | prop
    selection = Column(String, nullable=False)
    odds = Column(Integer, nullable=False)  # Frozen at placement
    stake = Column(Money, nullable=False)
    potential_payout = Column(Money, nullable=False)
    status = Column(String, nullable=False, default=PENDING, index=True)
    cash_out_value = Column(Money)
    is_parlay = Column(Boolean, nullable=False, default=False)
    parlay_id = Column(String(36), ForeignKey("parlays.id"), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="bets")
    game = relationship("Game")
    parlay = relationship("Parlay", back_populates="legs")


def init_db(bind=None):
    """Initialize database tables"""
    Base.metadata.create_all(bind=bind or engine)
