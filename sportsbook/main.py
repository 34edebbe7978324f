"""
FastAPI application for the live sportsbook
Includes REST API, the game update WebSocket feed and the simulator job
"""

from fastapi import FastAPI, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional
import asyncio
import logging
import os

from sportsbook.models import get_db, init_db
from sportsbook.core.errors import (
    AlreadySettled,
    InsufficientBalance,
    InvalidInput,
    NotFound,
    WagerError,
)
from sportsbook.services.broadcaster import Broadcaster, WebSocketSubscriber, get_broadcaster
from sportsbook.services.game_store import GameStore, get_game_store
from sportsbook.services.ledger import Ledger, get_ledger
from sportsbook.services.seed import seed_games
from sportsbook.services.simulator import GameSimulator, get_simulator
from sportsbook.schemas import (
    BetOut,
    CashOutResponse,
    GameOut,
    ParlayListResponse,
    ParlayOut,
    PlaceBetRequest,
    PlaceParlayRequest,
    WalletResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_NAME = "Live Sportsbook"
APP_VERSION = "1.0"

SIMULATOR_JOB_ID = "game_simulator"

# Scheduler instance
scheduler = BackgroundScheduler()


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("Starting %s", APP_NAME)
    init_db()

    if _env_flag("SEED_ON_STARTUP"):
        seed_games(get_game_store())

    if _env_flag("SIMULATOR_ENABLED"):
        tick_seconds = int(os.getenv("TICK_INTERVAL_SECONDS", "5"))
        scheduler.add_job(
            _simulator_job,
            IntervalTrigger(seconds=tick_seconds),
            id=SIMULATOR_JOB_ID,
            name="Live Game Simulator",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        logger.info("Scheduler started: simulator tick every %ds", tick_seconds)
    else:
        logger.info("Simulator disabled (SIMULATOR_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Shutting down %s", APP_NAME)
    if scheduler.running:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title=APP_NAME,
    description="Live odds, wagers, parlays and cash-out",
    version=APP_VERSION,
    lifespan=lifespan,
)

# CORS (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
        if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# SCHEDULED JOB
# ============================================================================

def _simulator_job():
    """Advance every live game one tick."""
    try:
        get_simulator().tick()
    except Exception as exc:
        logger.error("Simulator job failed: %s", exc, exc_info=True)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_current_user_id(ledger: Ledger = Depends(get_ledger)) -> str:
    """Resolve the acting user.  Single demo account; no authentication."""
    return ledger.get_or_create_user(
        os.getenv("DEMO_USERNAME", "demo"),
        os.getenv("STARTING_BALANCE", "1000"),
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Service banner"""
    return {
        "app": APP_NAME,
        "version": APP_VERSION,
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/health")
def health_check(
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Health check endpoint"""
    health = {
        "status": "healthy",
        "database": "connected",
        "scheduler": "running" if scheduler.running else "stopped",
        "subscribers": broadcaster.subscriber_count,
    }

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    return health


# ============================================================================
# GAMES
# ============================================================================

@app.get("/api/games", response_model=List[GameOut])
def list_games(
    status: Optional[str] = Query(None, description="upcoming | live | final"),
    sport: Optional[str] = Query(None, description="Sport id, e.g. nfl"),
    store: GameStore = Depends(get_game_store),
):
    return store.list_games(status=status, sport=sport)


@app.get("/api/games/{game_id}", response_model=GameOut)
def get_game(game_id: str, store: GameStore = Depends(get_game_store)):
    game = store.get_game(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


# ============================================================================
# WALLET & WAGERS
# ============================================================================

@app.get("/api/wallet", response_model=WalletResponse)
def get_wallet(
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    return WalletResponse(balance=ledger.get_balance(user_id))


@app.get("/api/bets", response_model=List[BetOut])
def list_bets(
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    """All bets for the user, newest first, with a fresh cash-out offer on each pending one."""
    return ledger.list_bets(user_id)


@app.post("/api/bets", response_model=BetOut)
def place_bet(
    body: PlaceBetRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    return ledger.place_bet(
        user_id,
        game_id=body.game_id,
        bet_type=body.bet_type,
        selection=body.selection,
        odds=body.odds,
        stake=body.stake,
        potential_payout=body.potential_payout,
    )


@app.post("/api/bets/{bet_id}/cashout", response_model=CashOutResponse)
def cash_out_bet(
    bet_id: str,
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    return CashOutResponse(cash_out_value=ledger.cash_out_bet(user_id, bet_id))


@app.get("/api/parlays", response_model=ParlayListResponse)
def list_parlays(
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    parlays, legs = ledger.list_parlays(user_id)
    return ParlayListResponse(parlays=parlays, legs=legs)


@app.post("/api/parlays", response_model=ParlayOut)
def place_parlay(
    body: PlaceParlayRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    return ledger.place_parlay(
        user_id,
        legs=body.legs,
        stake=body.stake,
        total_odds=body.total_odds,
        potential_payout=body.potential_payout,
    )


@app.post("/api/parlays/{parlay_id}/cashout", response_model=CashOutResponse)
def cash_out_parlay(
    parlay_id: str,
    user_id: str = Depends(get_current_user_id),
    ledger: Ledger = Depends(get_ledger),
):
    return CashOutResponse(cash_out_value=ledger.cash_out_parlay(user_id, parlay_id))


# ============================================================================
# ADMIN
# ============================================================================

@app.get("/admin/simulator/status")
def simulator_status(
    simulator: GameSimulator = Depends(get_simulator),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Scheduler job state plus the last tick summary."""
    job = scheduler.get_job(SIMULATOR_JOB_ID) if scheduler.running else None
    next_run = getattr(job, "next_run_time", None)
    return {
        "scheduler_running": scheduler.running,
        "job_scheduled": job is not None,
        "next_run": next_run.isoformat() if next_run else None,
        "simulator": simulator.get_status(),
        "broadcaster": broadcaster.get_status(),
    }


# ============================================================================
# LIVE FEED
# ============================================================================

@app.websocket("/ws")
async def game_feed(
    websocket: WebSocket,
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Push a ``game_update`` message for every game the simulator changes."""
    subscriber = WebSocketSubscriber(websocket)
    broadcaster.subscribe(subscriber)
    await websocket.accept()
    writer = asyncio.create_task(subscriber.drain())
    try:
        # Inbound frames are ignored; reading detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(subscriber)
        subscriber.close()
        await writer


# ============================================================================
# ERROR HANDLERS
# ============================================================================

_ERROR_STATUS = (
    (NotFound, 404),
    (InsufficientBalance, 400),
    (AlreadySettled, 400),
    (InvalidInput, 400),
)


@app.exception_handler(WagerError)
async def wager_exception_handler(request, exc):
    """Map ledger/store rejections to client errors"""
    status_code = next(
        (code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 400
    )
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
