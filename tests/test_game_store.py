"""
Tests for services/game_store.py

Run with: pytest tests/test_game_store.py -v
"""

import threading
from datetime import datetime

import pytest

from sportsbook.core.errors import InvalidInput


class TestReads:

    def test_list_and_filter(self, store, make_game):
        make_game(sport="nfl", status="live")
        make_game(sport="nba", status="upcoming")
        make_game(sport="nba", status="final")

        assert len(store.list_games()) == 3
        assert [g.sport for g in store.list_games(status="live")] == ["nfl"]
        assert {g.status for g in store.list_games(sport="nba")} == {"upcoming", "final"}
        assert store.count_games() == 3

    def test_ordered_by_start_time(self, store, make_game):
        late = make_game(start_time=datetime(2026, 1, 18, 21, 0))
        early = make_game(start_time=datetime(2026, 1, 18, 13, 0))
        assert [g.id for g in store.list_games()] == [early.id, late.id]

    def test_get_unknown_game(self, store):
        assert store.get_game("missing") is None

    def test_snapshot_wire_format(self, make_game):
        wire = make_game().to_wire()
        assert wire["homeMoneyline"] == -150
        assert wire["homeStats"] == {"passingYards": 0, "rushingYards": 0, "turnovers": 0}
        assert "home_moneyline" not in wire


class TestCreate:

    def test_dead_zone_odds_rejected(self, make_game):
        with pytest.raises(InvalidInput):
            make_game(home_moneyline=100)

    def test_unknown_status_rejected(self, make_game):
        with pytest.raises(InvalidInput):
            make_game(status="postponed")


class TestUpdateGame:

    def test_applies_delta(self, store, make_game):
        game = make_game()
        updated = store.update_game(game.id, {"home_score": 7, "quarter": "Q2"})
        assert updated.home_score == 7
        assert updated.quarter == "Q2"
        assert store.get_game(game.id).home_score == 7

    def test_unknown_game_returns_none(self, store):
        assert store.update_game("missing", {"home_score": 3}) is None

    def test_odds_clamped_to_own_side(self, store, make_game):
        game = make_game(home_moneyline=-103, away_moneyline=103)
        updated = store.update_game(game.id, {"home_moneyline": -95, "away_moneyline": 95})
        assert updated.home_moneyline == -101
        assert updated.away_moneyline == 101

    def test_score_cannot_decrease(self, store, make_game):
        game = make_game(home_score=10)
        with pytest.raises(InvalidInput):
            store.update_game(game.id, {"home_score": 7})
        assert store.get_game(game.id).home_score == 10

    def test_rejected_delta_changes_nothing(self, store, make_game):
        game = make_game(home_score=10)
        with pytest.raises(InvalidInput):
            store.update_game(game.id, {"away_score": 3, "home_score": 9})
        assert store.get_game(game.id).away_score == 0

    def test_final_game_is_frozen(self, store, make_game):
        game = make_game(status="final")
        with pytest.raises(InvalidInput):
            store.update_game(game.id, {"home_score": 1})

    def test_status_cannot_go_backwards(self, store, make_game):
        game = make_game(status="live")
        with pytest.raises(InvalidInput):
            store.update_game(game.id, {"status": "upcoming"})

    def test_game_can_finish(self, store, make_game):
        game = make_game(status="live")
        assert store.update_game(game.id, {"status": "final"}).status == "final"

    def test_unknown_field_rejected(self, store, make_game):
        game = make_game()
        with pytest.raises(InvalidInput):
            store.update_game(game.id, {"id": "other"})

    def test_stats_replacement_persisted(self, store, make_game):
        game = make_game()
        stats = dict(game.home_stats, passingYards=42)
        store.update_game(game.id, {"home_stats": stats})
        assert store.get_game(game.id).home_stats["passingYards"] == 42

    def test_noop_delta_returns_current_snapshot(self, store, make_game):
        game = make_game()
        assert store.update_game(game.id, {"home_score": 0}) == game


class TestModifyGame:

    def test_mutator_sees_current_state(self, store, make_game):
        game = make_game(home_score=3)
        updated = store.modify_game(game.id, lambda g: {"home_score": g.home_score + 7})
        assert updated.home_score == 10

    def test_noop_returns_none(self, store, make_game):
        game = make_game()
        assert store.modify_game(game.id, lambda g: {}) is None
        assert store.modify_game(game.id, lambda g: None) is None

    def test_concurrent_increments_are_not_lost(self, store, make_game):
        game = make_game()

        def bump():
            store.modify_game(game.id, lambda g: {"home_score": g.home_score + 1})

        threads = [threading.Thread(target=bump) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get_game(game.id).home_score == 20
