"""Tests for the FastAPI REST API backed by the in-memory repository"""

import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from flashbot.api.app import create_app
from flashbot.config.models import Settings
from flashbot.database import InMemoryRepository
from flashbot.detectors.executability import FixedCostModel
from flashbot.engine import ArbitrageEngine
from flashbot.services.execution import FixedOutcomePolicy

from tests.conftest import StaticQuoteSource

# Test API keys
TEST_API_KEY_VALID = "test-api-key-12345"
TEST_API_KEY_INVALID = "invalid-key-99999"

HEADERS = {"X-API-Key": TEST_API_KEY_VALID}


@pytest.fixture
def quote_source():
    """BTC spread across QuickSwap and SushiSwap, flat ETH"""
    return StaticQuoteSource(
        {
            "BTC": {1: "50000", 2: "50800"},
            "ETH": {1: "3000", 2: "3000"},
        }
    )


@pytest.fixture
def engine(quote_source):
    """Create engine over a seeded in-memory repository"""
    engine = ArbitrageEngine(
        repository=InMemoryRepository(),
        quote_source=quote_source,
        cost_model=FixedCostModel(Decimal("5")),
        outcome_policy=FixedOutcomePolicy(True, Decimal("30"), Decimal("4")),
    )
    asyncio.run(engine.initialize_default_data())
    return engine


@pytest.fixture
def client(engine):
    """Create test client"""
    settings = Settings(_env_file=None, api_keys=f"{TEST_API_KEY_VALID},other-key")
    app = create_app(settings, engine)
    with TestClient(app) as test_client:
        yield test_client


class TestAuthentication:
    """Test API key authentication"""

    def test_missing_api_key(self, client):
        """Test request without API key is rejected"""
        response = client.get("/api/v1/venues")
        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    def test_invalid_api_key(self, client):
        """Test request with invalid API key is rejected"""
        response = client.get("/api/v1/venues", headers={"X-API-Key": TEST_API_KEY_INVALID})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_health_is_public(self, client):
        """Test health check needs no API key"""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage"] == "in_memory"
        assert data["active_opportunities"] == 0


class TestReferenceData:
    """Test venues and trading pairs"""

    def test_get_venues(self, client):
        """Test default venues are listed"""
        response = client.get("/api/v1/venues", headers=HEADERS)

        assert response.status_code == 200
        names = [venue["name"] for venue in response.json()]
        assert names == ["QuickSwap", "SushiSwap", "Uniswap V3", "Balancer", "Curve", "1inch"]

    def test_get_trading_pairs(self, client):
        """Test default trading pairs are listed"""
        response = client.get("/api/v1/trading-pairs", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 5
        assert data[0]["base_symbol"] == "BTC"
        assert data[0]["quote_symbol"] == "USDC"


class TestOpportunities:
    """Test opportunities and refresh"""

    def test_empty_before_first_cycle(self, client):
        """Test no opportunities exist before detection runs"""
        response = client.get("/api/v1/opportunities", headers=HEADERS)
        assert response.status_code == 200
        assert response.json() == []

    def test_refresh_then_list(self, client):
        """Test a manual refresh stores opportunities with fixed-scale decimals"""
        refresh = client.post("/api/v1/refresh", headers=HEADERS)

        assert refresh.status_code == 200
        assert refresh.json() == {
            "success": True,
            "skipped": False,
            "detected": 1,
            "executable": 1,
            "reason": None,
        }

        response = client.get("/api/v1/opportunities", headers=HEADERS)
        [opp] = response.json()
        assert opp["trading_pair"] == "BTC/USDC"
        assert opp["venue_a"] == "QuickSwap"
        assert opp["venue_b"] == "SushiSwap"
        assert opp["price_a"] == "50000.00000000"
        assert opp["price_b"] == "50800.00000000"
        assert opp["profit_margin"] == "1.60"
        assert opp["estimated_profit"] == "16.00000000"
        assert opp["gas_estimate"] == "5.00000000"
        assert opp["is_executable"] is True

    def test_get_single_opportunity(self, client):
        """Test single opportunity lookup and 404 for unknown ids"""
        client.post("/api/v1/refresh", headers=HEADERS)

        response = client.get("/api/v1/opportunities/1", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["venue_b"] == "SushiSwap"

        missing = client.get("/api/v1/opportunities/999", headers=HEADERS)
        assert missing.status_code == 404

    def test_refresh_skipped_when_source_down(self, client, quote_source):
        """Test refresh reports a skipped cycle when the source fails"""
        quote_source.fail = True

        response = client.post("/api/v1/refresh", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["skipped"] is True
        assert response.json()["success"] is False

    @pytest.mark.parametrize("limit", [0, 1001])
    def test_limit_bounds(self, client, limit):
        """Test limit outside 1..1000 is rejected"""
        response = client.get(f"/api/v1/opportunities?limit={limit}", headers=HEADERS)
        assert response.status_code == 422

    def test_limit_applied(self, client):
        """Test limit caps the result"""
        for _ in range(3):
            client.post("/api/v1/refresh", headers=HEADERS)

        response = client.get("/api/v1/opportunities?limit=2", headers=HEADERS)

        assert len(response.json()) == 2


class TestExecution:
    """Test execution and transactions"""

    def test_execute_and_list(self, client):
        """Test executing an opportunity records a transaction"""
        client.post("/api/v1/refresh", headers=HEADERS)
        opp_id = client.get("/api/v1/opportunities", headers=HEADERS).json()[0]["id"]

        response = client.post(f"/api/v1/execute/{opp_id}", headers=HEADERS)

        assert response.status_code == 200
        tx = response.json()
        assert tx["opportunity_id"] == opp_id
        assert tx["status"] == "success"
        assert tx["tx_hash"].startswith("0x") and len(tx["tx_hash"]) == 66
        assert tx["actual_profit"] == "30.00000000"
        assert tx["gas_used"] == "4.00000000"

        listed = client.get("/api/v1/transactions", headers=HEADERS).json()
        assert [t["id"] for t in listed] == [tx["id"]]

    def test_execute_unknown_id(self, client):
        """Test unknown ids still produce a transaction"""
        response = client.post("/api/v1/execute/424242", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["opportunity_id"] == 424242

    def test_transactions_limit(self, client):
        """Test transaction listing honors the limit"""
        for _ in range(4):
            client.post("/api/v1/execute/1", headers=HEADERS)

        assert len(client.get("/api/v1/transactions?limit=3", headers=HEADERS).json()) == 3
        assert client.get("/api/v1/transactions?limit=0", headers=HEADERS).status_code == 422


class TestStats:
    """Test statistics endpoint"""

    def test_stats_empty(self, client):
        """Test stats with no executions"""
        response = client.get("/api/v1/stats", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success_rate"] == "0.00"
        assert data["total_profit_24h"] == "0.00000000"
        assert data["scanned_pairs"] == 5

    def test_stats_after_execution(self, client):
        """Test stats reflect executed transactions"""
        client.post("/api/v1/refresh", headers=HEADERS)
        client.post("/api/v1/execute/1", headers=HEADERS)

        data = client.get("/api/v1/stats", headers=HEADERS).json()

        assert data["total_profit_24h"] == "30.00000000"
        assert data["gas_spent_24h"] == "4.00000000"
        assert data["success_rate"] == "100.00"
        assert data["active_opportunities"] == 1


class TestSettingsEndpoints:
    """Test settings endpoints"""

    def test_get_settings(self, client):
        """Test default settings"""
        response = client.get("/api/v1/settings", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["min_profit_threshold"] == "1.50"
        assert data["trade_amount"] == "1000.00000000"
        assert data["auto_execute_enabled"] is True

    def test_update_settings(self, client):
        """Test a valid partial update"""
        response = client.post(
            "/api/v1/settings",
            headers=HEADERS,
            json={"min_profit_threshold": 2, "alerts_enabled": False},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["min_profit_threshold"] == "2.00"
        assert data["alerts_enabled"] is False

    @pytest.mark.parametrize(
        "body, field",
        [
            ({"min_profit_threshold": -1}, "min_profit_threshold"),
            ({"min_profit_threshold": 0.5}, "min_profit_threshold"),
            ({"slippage_tolerance": 150}, "slippage_tolerance"),
            ({"min_profit_threshold": "0.504"}, "min_profit_threshold"),
            ({"min_profit_threshold": 1000}, "min_profit_threshold"),
            ({"max_gas_price": 100000000}, "max_gas_price"),
            ({"trade_amount": "10000000000"}, "trade_amount"),
            ({"bogus": 1}, "bogus"),
        ],
    )
    def test_invalid_update_rejected(self, client, body, field):
        """Test invalid updates return 400 and change nothing"""
        response = client.post("/api/v1/settings", headers=HEADERS, json=body)

        assert response.status_code == 400
        assert response.json()["field"] == field

        current = client.get("/api/v1/settings", headers=HEADERS).json()
        assert current["min_profit_threshold"] == "1.50"
        assert current["slippage_tolerance"] == "0.50"


def test_metrics_endpoint(client):
    """Test Prometheus metrics are exposed"""
    client.post("/api/v1/refresh", headers=HEADERS)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "detection_cycles_total" in response.text
    assert "api_requests_total" in response.text
