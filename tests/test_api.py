"""HTTP surface tests using FastAPI's TestClient with overridden dependencies."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from alerts import AlertEvaluator
from conftest import NOW, TOKENS, FakeProvider
from core import Settings, UpstreamUnavailable, get_settings, utcnow
from core.models import Holder, MarketData, TokenMetadata, TokenQuote, VolumeData
from db import get_alert_store, get_history_store
from main import app
from providers import get_birdeye_client
from services import PriceMonitor, get_broadcaster, get_price_monitor


class StatsProvider(FakeProvider):
    """FakeProvider with market data endpoints."""

    def __init__(self):
        super().__init__()
        self.metadata_fails = False

    def get_market_data(self, address):
        if address in self.failing:
            raise UpstreamUnavailable(f"provider down for {address}")
        return MarketData(price=2.0, liquidity=5_000.0, supply=1_000.0, circulating_supply=900.0, market_cap=2_000.0)

    def get_top_holders(self, address, limit=10):
        return [Holder(owner="holder-1", amount=100.0), Holder(owner="holder-2", amount=50.0)][:limit]

    def get_metadata(self, address):
        if self.metadata_fails:
            raise UpstreamUnavailable("metadata unavailable")
        return TokenMetadata(name="dogwifhat", symbol="WIF", decimals=6)

    def get_volume_24h(self, address):
        return VolumeData(volume_24h_usd=12_345.0, price_change_percent=1.5)


@pytest.fixture
def provider():
    provider = StatsProvider()
    provider.prices = {"wif-address": 2.0, "bonk-address": 0.00002}
    return provider


@pytest.fixture
def monitor(provider, history_store, alert_store, broadcaster):
    evaluator = AlertEvaluator(alert_store, history_store, publish=broadcaster.publish)
    return PriceMonitor(provider, history_store, evaluator, broadcaster=broadcaster, tokens=TOKENS)


@pytest.fixture
def client(provider, history_store, alert_store, broadcaster, monitor):
    settings = Settings(birdeye_api_key="test-api-key", tokens=dict(TOKENS))

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_birdeye_client] = lambda: provider
    app.dependency_overrides[get_history_store] = lambda: history_store
    app.dependency_overrides[get_alert_store] = lambda: alert_store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_price_monitor] = lambda: monitor

    # No context manager: the lifespan (and its autostarted monitor) never runs
    yield TestClient(app)

    app.dependency_overrides.clear()


class TestCreateAlert:
    def test_create_returns_camel_case_alert(self, client):
        response = client.post("/alerts", json={"symbol": "wif", "thresholdPercent": 5, "timeframeMinutes": 60})

        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "WIF"
        assert body["thresholdPercent"] == 5
        assert body["timeframeMinutes"] == 60
        assert body["active"] is True
        assert body["status"] == "pending"
        assert body["triggeredAt"] is None
        assert isinstance(body["id"], int)

    def test_snake_case_fields_are_accepted(self, client):
        response = client.post("/alerts", json={"symbol": "BONK", "threshold_percent": 10, "timeframe_minutes": 5})

        assert response.status_code == 200
        assert response.json()["timeframeMinutes"] == 5

    def test_missing_fields(self, client, alert_store):
        response = client.post("/alerts", json={"symbol": "WIF"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Missing required fields"
        assert "thresholdPercent" in body["fields"]
        assert alert_store.list() == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"symbol": "WIF", "thresholdPercent": 0, "timeframeMinutes": 60},
            {"symbol": "WIF", "thresholdPercent": -2, "timeframeMinutes": 60},
            {"symbol": "WIF", "thresholdPercent": 5, "timeframeMinutes": 0},
            {"symbol": "WIF", "thresholdPercent": "lots", "timeframeMinutes": 60},
        ],
    )
    def test_invalid_values(self, client, alert_store, payload):
        response = client.post("/alerts", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid alert parameters"
        assert alert_store.list() == []

    def test_non_object_body(self, client):
        response = client.post("/alerts", json=["WIF", 5, 60])

        assert response.status_code == 400

    def test_unsupported_token(self, client, alert_store):
        response = client.post("/alerts", json={"symbol": "DOGE", "thresholdPercent": 5, "timeframeMinutes": 60})

        assert response.status_code == 404
        assert response.json() == {"error": "Token not supported"}
        assert alert_store.list() == []


class TestListAlerts:
    def test_list_and_filter(self, client, alert_store):
        pending = alert_store.create("WIF", 5, 60)
        done = alert_store.create("BONK", 5, 60)
        alert_store.mark_expired(done.id)

        everything = client.get("/alerts").json()
        active = client.get("/alerts", params={"active": "true"}).json()
        inactive = client.get("/alerts", params={"active": "false"}).json()

        assert [a["id"] for a in everything] == [pending.id, done.id]
        assert [a["id"] for a in active] == [pending.id]
        assert [a["id"] for a in inactive] == [done.id]
        assert inactive[0]["status"] == "expired"

    def test_get_by_id(self, client, alert_store):
        alert = alert_store.create("WIF", 5, 60)

        assert client.get(f"/alerts/{alert.id}").json()["id"] == alert.id
        assert client.get("/alerts/999").status_code == 404


class TestTokens:
    def test_list_tokens(self, client):
        body = client.get("/tokens").json()

        assert body["count"] == 2
        assert {t["symbol"] for t in body["tokens"]} == {"WIF", "BONK"}

    def test_current_price(self, client):
        response = client.get("/tokens/wif")

        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "WIF"
        assert body["currentPrice"] == 2.0
        assert body["change24h"] == "5.00%"

    def test_current_price_falls_back_to_stored_history(self, client, provider, history_store, monkeypatch):
        now = utcnow()
        history_store.append("WIF", 1.0, now - timedelta(hours=2))
        history_store.append("WIF", 1.25, now - timedelta(minutes=1))
        monkeypatch.setattr(provider, "get_price", lambda address: TokenQuote(address=address, price=1.25))

        assert client.get("/tokens/WIF").json()["change24h"] == "25.00%"

    def test_unknown_token(self, client):
        response = client.get("/tokens/UNKNOWN")

        assert response.status_code == 404
        assert "error" in response.json()

    def test_provider_failure_is_bad_gateway(self, client, provider):
        provider.failing.add("wif-address")

        response = client.get("/tokens/WIF")

        assert response.status_code == 502
        assert "error" in response.json()

    def test_history(self, client, history_store):
        history_store.append("WIF", 1.0, NOW - timedelta(minutes=30))
        history_store.append("WIF", 1.5, NOW - timedelta(minutes=20))
        history_store.append("WIF", 1.2, NOW - timedelta(minutes=10))
        history_store.append("WIF", 9.9, NOW - timedelta(hours=3))

        response = client.get(
            "/tokens/WIF/history",
            params={"time_from": int((NOW - timedelta(hours=1)).timestamp()), "time_to": int(NOW.timestamp())},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert [p["price"] for p in body["prices"]] == [1.0, 1.5, 1.2]
        assert body["priceChange"] == "20.00"
        assert body["high"] == 1.5
        assert body["low"] == 1.0

    def test_history_empty(self, client):
        body = client.get("/tokens/BONK/history").json()

        assert body["count"] == 0
        assert body["prices"] == []
        assert body["priceChange"] is None

    def test_stats(self, client):
        body = client.get("/tokens/WIF/stats").json()

        assert body["marketCap"] == 2_000.0
        assert body["supply"] == 1_000.0
        assert body["liquidity"] == 5_000.0
        assert body["volume24h"] == 12_345.0
        assert body["metadata"]["name"] == "dogwifhat"
        assert [h["sharePercent"] for h in body["topHolders"]] == [10.0, 5.0]

    def test_stats_without_optional_extras(self, client, provider):
        provider.metadata_fails = True

        response = client.get("/tokens/WIF/stats")

        assert response.status_code == 200
        assert response.json()["metadata"] is None
        assert response.json()["volume24h"] == 12_345.0
        assert response.json()["marketCap"] == 2_000.0

    def test_stats_provider_failure(self, client, provider):
        provider.failing.add("bonk-address")

        assert client.get("/tokens/BONK/stats").status_code == 502


class TestEventsAndMonitor:
    def test_event_history(self, client, broadcaster):
        broadcaster.publish("priceUpdate", {"symbol": "WIF", "price": 2.0})
        broadcaster.publish("alert", {"id": 1, "symbol": "WIF"})

        everything = client.get("/events/history").json()
        alerts_only = client.get("/events/history", params={"event": "alert"}).json()

        assert everything["count"] == 2
        assert everything["events"][0]["event"] == "alert"
        assert alerts_only["events"] == [{"event": "alert", "data": {"id": 1, "symbol": "WIF"}}]

    def test_monitor_status_and_tick(self, client):
        status = client.get("/monitor/status").json()
        assert status["status"] == "stopped"
        assert status["last_prices"] == {}

        assert client.post("/monitor/tick").json() == {}
        assert client.get("/monitor/status").json()["last_prices"] == {"WIF": 2.0, "BONK": 0.00002}

    def test_stop_when_not_running(self, client):
        assert client.post("/monitor/stop").json()["status"] == "not_running"
