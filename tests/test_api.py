"""
Tests for the HTTP and WebSocket boundary in main.py

Services are swapped for in-memory instances through dependency overrides;
the lifespan (scheduler, seeding) is not started.

Run with: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from sportsbook.main import app, get_current_user_id
from sportsbook.models import get_db
from sportsbook.services.broadcaster import get_broadcaster
from sportsbook.services.game_store import get_game_store
from sportsbook.services.ledger import get_ledger
from sportsbook.services.simulator import GameSimulator, get_simulator


@pytest.fixture
def simulator(store, broadcaster, scripted_rng):
    # First tick: home side scores 6, nothing else moves
    return GameSimulator(store, broadcaster, rng=scripted_rng(randoms=[0.1, 0.2], choices=[6]))


@pytest.fixture
def client(store, ledger, broadcaster, simulator, session_factory):
    def _db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides.update({
        get_db: _db,
        get_game_store: lambda: store,
        get_ledger: lambda: ledger,
        get_broadcaster: lambda: broadcaster,
        get_simulator: lambda: simulator,
    })
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bet(game_id, odds=150, stake=100, **extra):
    body = {"gameId": game_id, "betType": "moneyline", "selection": "home", "odds": odds, "stake": stake}
    body.update(extra)
    return body


# ============================================================================
# Public
# ============================================================================

class TestPublic:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["app"] == "Live Sportsbook"
        assert body["status"] == "operational"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["subscribers"] == 0


# ============================================================================
# Games
# ============================================================================

class TestGames:

    def test_list_games_camel_case(self, client, make_game):
        game = make_game()
        (listed,) = client.get("/api/games").json()
        assert listed["id"] == game.id
        assert listed["homeTeam"] == "Kansas City Chiefs"
        assert listed["homeMoneyline"] == -150

    def test_filters(self, client, make_game):
        make_game(status="live", sport="nfl")
        make_game(status="upcoming", sport="nba")
        assert len(client.get("/api/games", params={"status": "live"}).json()) == 1
        assert len(client.get("/api/games", params={"sport": "nba"}).json()) == 1

    def test_get_game(self, client, make_game):
        game = make_game()
        assert client.get(f"/api/games/{game.id}").json()["id"] == game.id

    def test_unknown_game_404(self, client):
        assert client.get("/api/games/missing").status_code == 404


# ============================================================================
# Wallet & bets
# ============================================================================

class TestBets:

    def test_wallet_starts_at_default(self, client):
        assert client.get("/api/wallet").json() == {"balance": 1000.0}

    def test_place_bet(self, client, make_game):
        game = make_game()
        resp = client.post("/api/bets", json=_bet(game.id, stake=25))
        assert resp.status_code == 200
        body = resp.json()
        assert body["gameId"] == game.id
        assert body["stake"] == 25.0
        assert body["potentialPayout"] == 62.5
        assert body["status"] == "pending"
        assert body["isParlay"] is False
        assert client.get("/api/wallet").json()["balance"] == 975.0

    @pytest.mark.parametrize("override", [
        {"odds": 100},
        {"odds": 0},
        {"stake": 0},
        {"stake": -5},
        {"betType": "teaser"},
        {"gameId": ""},
    ])
    def test_malformed_request_rejected(self, client, make_game, override):
        resp = client.post("/api/bets", json=_bet(make_game().id, **override))
        assert resp.status_code == 422
        assert client.get("/api/wallet").json()["balance"] == 1000.0

    def test_unknown_game(self, client):
        resp = client.post("/api/bets", json=_bet("missing"))
        assert resp.status_code == 404
        assert resp.json()["type"] == "NotFound"

    def test_insufficient_balance(self, client, make_game):
        resp = client.post("/api/bets", json=_bet(make_game().id, stake="1000.01"))
        assert resp.status_code == 400
        assert resp.json()["type"] == "InsufficientBalance"

    def test_list_bets_with_offer(self, client, make_game):
        client.post("/api/bets", json=_bet(make_game().id))
        (bet,) = client.get("/api/bets").json()
        assert bet["cashOutValue"] == 182.5

    def test_cash_out(self, client, make_game):
        bet = client.post("/api/bets", json=_bet(make_game().id)).json()

        resp = client.post(f"/api/bets/{bet['id']}/cashout")
        assert resp.json() == {"cashOutValue": 182.5}
        assert client.get("/api/wallet").json()["balance"] == 1082.5

        again = client.post(f"/api/bets/{bet['id']}/cashout")
        assert again.status_code == 400
        assert again.json()["type"] == "AlreadySettled"

    def test_cash_out_unknown_bet(self, client):
        assert client.post("/api/bets/missing/cashout").status_code == 404


# ============================================================================
# Parlays
# ============================================================================

class TestParlays:

    def _body(self, *games, stake=20):
        return {
            "legs": [
                {"gameId": g.id, "betType": "moneyline", "selection": "home", "odds": o}
                for g, o in zip(games, (150, -200))
            ],
            "stake": stake,
            "totalOdds": 275,
        }

    def test_place_and_list(self, client, make_game):
        a, b = make_game(), make_game()
        parlay = client.post("/api/parlays", json=self._body(a, b)).json()
        assert parlay["totalOdds"] == 275
        assert parlay["potentialPayout"] == 75.0
        assert client.get("/api/wallet").json()["balance"] == 980.0

        listing = client.get("/api/parlays").json()
        assert [p["id"] for p in listing["parlays"]] == [parlay["id"]]
        assert listing["parlays"][0]["cashOutValue"] == 50.25
        legs = listing["legs"][parlay["id"]]
        assert {leg["gameId"] for leg in legs} == {a.id, b.id}
        assert all(leg["isParlay"] and leg["parlayId"] == parlay["id"] for leg in legs)

    def test_one_leg_rejected(self, client, make_game):
        body = self._body(make_game())
        assert client.post("/api/parlays", json=body).status_code == 422

    def test_cash_out_parlay(self, client, make_game):
        parlay = client.post("/api/parlays", json=self._body(make_game(), make_game())).json()
        resp = client.post(f"/api/parlays/{parlay['id']}/cashout")
        assert resp.json() == {"cashOutValue": 50.25}

        legs = client.get("/api/parlays").json()["legs"][parlay["id"]]
        assert {leg["status"] for leg in legs} == {"cashed_out"}


# ============================================================================
# Admin & live feed
# ============================================================================

class TestAdmin:

    def test_simulator_status(self, client):
        body = client.get("/admin/simulator/status").json()
        assert body["scheduler_running"] is False
        assert body["simulator"]["ticks_run"] == 0
        assert body["broadcaster"]["subscribers"] == 0


class TestLiveFeed:

    def test_tick_pushes_game_update(self, client, make_game, simulator, broadcaster):
        game = make_game(home_score=0)
        with client.websocket_connect("/ws") as ws:
            assert broadcaster.subscriber_count == 1
            simulator.tick()
            message = ws.receive_json()

        assert message["type"] == "game_update"
        assert message["data"]["id"] == game.id
        assert message["data"]["homeScore"] == 6

    def test_disconnect_unsubscribes(self, client, broadcaster):
        with client.websocket_connect("/ws"):
            assert broadcaster.subscriber_count == 1
        broadcaster.publish("ping", {})
        assert broadcaster.subscriber_count == 0

    def test_demo_user_dependency(self, client, ledger):
        user_id = get_current_user_id(ledger)
        assert ledger.get_balance(user_id) == 1000
