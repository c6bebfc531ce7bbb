"""
HTTP endpoint integration tests for the wagerbook API.

These tests verify that FastAPI endpoints:
- Return correct HTTP status codes
- Validate request/response schemas
- Map wagering errors to 400/404/409

Uses FastAPI TestClient for in-memory HTTP testing.
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from wagerbook.utils.timezone import utcnow


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def open_game(game_factory):
    """A scheduled game starting tomorrow (real clock), fully quoted."""
    return game_factory(start_time=utcnow() + timedelta(days=1))


@pytest.fixture
def bettor(user_factory):
    return user_factory("bettor", balance=Decimal("500.00"))


def _place(client, user, game, **overrides):
    body = {
        "user_id": user.id,
        "game_id": game.id,
        "bet_type": "moneyline",
        "selection": "home",
        "stake": "100.00",
    }
    body.update(overrides)
    return client.post("/api/wagers", json=body)


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:
    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_correlation_id_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers.get("X-Correlation-ID") == "abc-123"


# =============================================================================
# GAMES
# =============================================================================

class TestGameEndpoints:
    def test_upcoming_lists_scheduled_games(self, test_client, open_game, game_factory):
        game_factory(status="in_progress")

        response = test_client.get("/api/games/upcoming")

        assert response.status_code == 200
        data = response.json()
        assert [g["id"] for g in data] == [open_game.id]
        assert data[0]["moneyline_home"] == 150
        assert data[0]["spread_home"] == -3.5

    def test_live_games(self, test_client, game_factory):
        live = game_factory(status="in_progress")
        response = test_client.get("/api/games/live")
        assert [g["id"] for g in response.json()] == [live.id]

    def test_get_game_by_id(self, test_client, open_game):
        response = test_client.get(f"/api/games/{open_game.id}")
        assert response.status_code == 200
        assert response.json()["home_team"] == "Philadelphia 76ers"

    def test_unknown_game_returns_404(self, test_client):
        assert test_client.get("/api/games/does-not-exist").status_code == 404


# =============================================================================
# WAGERS
# =============================================================================

class TestWagerEndpoints:
    def test_place_wager(self, test_client, bettor, open_game):
        response = _place(test_client, bettor, open_game)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["odds_at_placement"] == 150
        assert Decimal(data["potential_payout"]) == Decimal("250.00")

        user = test_client.get(f"/api/users/{bettor.id}").json()
        assert Decimal(user["balance"]) == Decimal("400.00")
        assert user["wagers_placed"] == 1

    def test_insufficient_balance_is_400(self, test_client, bettor, open_game):
        response = _place(test_client, bettor, open_game, stake="500.01")
        assert response.status_code == 400

    def test_invalid_selection_is_400(self, test_client, bettor, open_game):
        response = _place(test_client, bettor, open_game, selection="over")
        assert response.status_code == 400

    def test_unknown_game_is_404(self, test_client, bettor, open_game):
        response = _place(test_client, bettor, open_game, game_id="missing")
        assert response.status_code == 404

    def test_closed_game_is_409(self, test_client, bettor, game_factory):
        started = game_factory(start_time=utcnow() - timedelta(minutes=5))
        response = _place(test_client, bettor, started)
        assert response.status_code == 409

    def test_missing_fields_is_422(self, test_client):
        assert test_client.post("/api/wagers", json={"stake": "10"}).status_code == 422

    def test_list_and_get_wagers(self, test_client, bettor, open_game):
        placed = _place(test_client, bettor, open_game).json()

        listed = test_client.get("/api/wagers", params={"user_id": bettor.id})
        assert listed.status_code == 200
        assert [w["id"] for w in listed.json()] == [placed["id"]]

        single = test_client.get(f"/api/wagers/{placed['id']}")
        assert single.json()["selection"] == "home"

    def test_cancel_wager_refunds(self, test_client, bettor, open_game):
        placed = _place(test_client, bettor, open_game).json()

        response = test_client.delete(f"/api/wagers/{placed['id']}", params={"user_id": bettor.id})

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        user = test_client.get(f"/api/users/{bettor.id}").json()
        assert Decimal(user["balance"]) == Decimal("500.00")

    def test_cancel_by_other_user_is_409(self, test_client, bettor, open_game, user_factory):
        placed = _place(test_client, bettor, open_game).json()
        other = user_factory("someone-else")

        response = test_client.delete(f"/api/wagers/{placed['id']}", params={"user_id": other.id})
        assert response.status_code == 409


# =============================================================================
# USERS
# =============================================================================

class TestUserEndpoints:
    def test_create_user(self, test_client):
        response = test_client.post("/api/users", json={"username": "newcomer"})
        assert response.status_code == 201
        assert response.json()["username"] == "newcomer"

    def test_duplicate_username_is_409(self, test_client, bettor):
        response = test_client.post("/api/users", json={"username": "bettor"})
        assert response.status_code == 409

    def test_leaderboard(self, test_client, user_factory):
        user_factory("rich", balance=Decimal("9000"))
        user_factory("poor", balance=Decimal("1"))

        response = test_client.get("/api/users/leaderboard")

        assert [u["username"] for u in response.json()] == ["rich", "poor"]

    def test_unknown_user_is_404(self, test_client):
        assert test_client.get("/api/users/nobody").status_code == 404


# =============================================================================
# ENGINE
# =============================================================================

class TestEngineEndpoints:
    def test_settle_game(self, test_client, db_session, bettor, game_factory, wager_factory):
        game = game_factory()
        wager_factory(bettor, game, "moneyline", "home", Decimal("100"), odds=150)
        game.status = "finished"
        game.home_score, game.away_score = 110, 100
        game.result_confirmed = True
        db_session.commit()

        first = test_client.post(f"/api/engine/settle/{game.id}")
        second = test_client.post(f"/api/engine/settle/{game.id}")

        assert first.status_code == 200
        assert first.json()["won"] == 1
        assert second.json()["processed"] == 0

    def test_settle_unknown_game_is_404(self, test_client):
        assert test_client.post("/api/engine/settle/missing").status_code == 404

    def test_settle_all(self, test_client):
        response = test_client.post("/api/engine/settle")
        assert response.status_code == 200
        assert response.json() == {"games": 0, "summaries": []}

    def test_cancel_game_refunds_wagers(self, test_client, bettor, open_game):
        _place(test_client, bettor, open_game)

        response = test_client.post(f"/api/engine/cancel/{open_game.id}")

        assert response.status_code == 200
        assert response.json()["refunded"] == 1
        assert test_client.get(f"/api/games/{open_game.id}").json()["status"] == "cancelled"
        user = test_client.get(f"/api/users/{bettor.id}").json()
        assert Decimal(user["balance"]) == Decimal("500.00")

    def test_cancel_started_game_is_409(self, test_client, game_factory):
        live = game_factory(status="in_progress")
        assert test_client.post(f"/api/engine/cancel/{live.id}").status_code == 409

    def test_review_queue(self, test_client, game_factory):
        flagged = game_factory(status="finished", needs_review=True)
        game_factory(status="finished")

        response = test_client.get("/api/engine/review-queue")

        assert [g["id"] for g in response.json()] == [flagged.id]

    def test_ingest_uses_orchestrator(self, test_client, db_session):
        from wagerbook.main import app
        from wagerbook.api.routes.engine import get_orchestrator
        from wagerbook.services.sync.orchestrator import IngestionOrchestrator

        odds_client = AsyncMock()
        odds_client.fetch_odds.return_value = []
        results_client = AsyncMock()
        results_client.fetch_recent_results.return_value = []
        app.dependency_overrides[get_orchestrator] = lambda: IngestionOrchestrator(
            db_session, odds_client=odds_client, results_client=results_client
        )

        response = test_client.post("/api/engine/ingest")

        assert response.status_code == 200
        assert response.json()["feeds"]["odds"] == {"ok": True, "records": 0}
        odds_client.fetch_odds.assert_awaited_once()

    def test_status(self, test_client):
        response = test_client.get("/api/engine/status")

        assert response.status_code == 200
        data = response.json()
        assert data["scheduler"]["running"] is False
        assert set(data["circuit_breakers"]) == {"odds", "results"}
