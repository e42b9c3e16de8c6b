"""Tests for the Birdeye client using a mocked HTTP session."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import NOW
from core import UpstreamUnavailable
from providers import BirdeyeClient


def make_response(body=None, status=200, invalid_json=False):
    resp = MagicMock()
    resp.status_code = status
    resp.text = str(body)
    if invalid_json:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return BirdeyeClient(
        api_key="test-api-key",
        base_url="https://birdeye.test",
        chain="solana",
        timeout=10,
        session=session,
    )


class TestRequest:
    def test_sends_auth_headers_and_timeout(self, client, session):
        session.get.return_value = make_response({"success": True, "data": {"value": 1.5}})

        client.get_price("wif-address")

        args, kwargs = session.get.call_args
        assert args[0] == "https://birdeye.test/defi/price"
        assert kwargs["params"] == {"address": "wif-address"}
        assert kwargs["headers"]["X-API-KEY"] == "test-api-key"
        assert kwargs["headers"]["x-chain"] == "solana"
        assert kwargs["timeout"] == 10

    @pytest.mark.parametrize(
        "response",
        [
            make_response({"success": False, "message": "Unauthorized"}),
            make_response({"success": True}),
            make_response({"error": "rate limited"}, status=429),
            make_response({"success": True, "data": {}}, status=500),
            make_response(None, invalid_json=True),
            make_response(["not", "an", "object"]),
        ],
    )
    def test_bad_responses_raise_upstream_unavailable(self, client, session, response):
        session.get.return_value = response

        with pytest.raises(UpstreamUnavailable):
            client.get_price("wif-address")

    @pytest.mark.parametrize(
        "error",
        [requests.exceptions.Timeout("read timed out"), requests.exceptions.ConnectionError("refused")],
    )
    def test_transport_errors_raise_upstream_unavailable(self, client, session, error):
        session.get.side_effect = error

        with pytest.raises(UpstreamUnavailable) as exc_info:
            client.get_price("wif-address")

        assert exc_info.value.endpoint == "/defi/price"

    def test_http_status_is_recorded(self, client, session):
        session.get.return_value = make_response({}, status=503)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            client.get_price("wif-address")

        assert exc_info.value.status == 503


class TestParsing:
    def test_get_price(self, client, session):
        session.get.return_value = make_response({
            "success": True,
            "data": {"value": 2.41, "priceChange24h": -3.2, "updateUnixTime": int(NOW.timestamp())},
        })

        quote = client.get_price("wif-address")

        assert quote.price == 2.41
        assert quote.price_change_24h == -3.2
        assert quote.updated_at == NOW

    def test_get_price_without_value_fails(self, client, session):
        session.get.return_value = make_response({"success": True, "data": {"value": None}})

        with pytest.raises(UpstreamUnavailable):
            client.get_price("wif-address")

    def test_get_history_sorted_ascending(self, client, session):
        ts = int(NOW.timestamp())
        session.get.return_value = make_response({
            "success": True,
            "data": {"items": [
                {"unixTime": ts, "value": 2.0},
                {"unixTime": ts - 60, "value": 1.0},
            ]},
        })

        points = client.get_history("wif-address", ts - 120, ts, "1m")

        assert [p.value for p in points] == [1.0, 2.0]
        assert points[-1].timestamp == NOW
        params = session.get.call_args.kwargs["params"]
        assert params["type"] == "1m"
        assert params["time_from"] == ts - 120
        assert params["time_to"] == ts

    def test_get_history_empty(self, client, session):
        session.get.return_value = make_response({"success": True, "data": {"items": []}})

        assert client.get_history("wif-address", 0, 60) == []

    def test_get_history_malformed_item(self, client, session):
        session.get.return_value = make_response({
            "success": True,
            "data": {"items": [{"value": 1.0}]},
        })

        with pytest.raises(UpstreamUnavailable):
            client.get_history("wif-address", 0, 60)

    def test_get_market_data(self, client, session):
        session.get.return_value = make_response({
            "success": True,
            "data": {
                "price": 2.4,
                "liquidity": 1_000_000,
                "total_supply": 999_000_000,
                "circulating_supply": 998_000_000,
                "market_cap": 2_397_600_000,
            },
        })

        market = client.get_market_data("wif-address")

        assert market.supply == 999_000_000
        assert market.circulating_supply == 998_000_000
        assert market.market_cap == 2_397_600_000
        assert market.liquidity == 1_000_000

    def test_get_top_holders(self, client, session):
        session.get.return_value = make_response({
            "success": True,
            "data": {"items": [
                {"owner": "holder-1", "ui_amount": 1000.0},
                {"owner": "holder-2", "ui_amount": "500"},
                {"ui_amount": 1.0},
            ]},
        })

        holders = client.get_top_holders("wif-address", limit=3)

        assert [(h.owner, h.amount) for h in holders] == [("holder-1", 1000.0), ("holder-2", 500.0)]
        assert session.get.call_args.kwargs["params"]["limit"] == 3

    def test_get_metadata_and_volume(self, client, session):
        session.get.side_effect = [
            make_response({"success": True, "data": {
                "name": "dogwifhat", "symbol": "WIF", "decimals": 6, "logo_uri": "https://img/wif.png",
            }}),
            make_response({"success": True, "data": {"volumeUSD": 12345.6, "priceChangePercent": 1.5}}),
        ]

        metadata = client.get_metadata("wif-address")
        volume = client.get_volume_24h("wif-address")

        assert metadata.name == "dogwifhat"
        assert metadata.decimals == 6
        assert volume.volume_24h_usd == 12345.6
        assert volume.price_change_percent == 1.5

    @pytest.mark.parametrize("bad_item", [None, "holder-3", 42])
    def test_get_top_holders_malformed_item(self, client, session, bad_item):
        session.get.return_value = make_response({
            "success": True,
            "data": {"items": [{"owner": "holder-1", "ui_amount": 1000.0}, bad_item]},
        })

        with pytest.raises(UpstreamUnavailable):
            client.get_top_holders("wif-address")

    @pytest.mark.parametrize("update_time", [9e11, 1e300])
    def test_get_price_out_of_range_timestamp(self, client, session, update_time):
        session.get.return_value = make_response({
            "success": True,
            "data": {"value": 2.0, "updateUnixTime": update_time},
        })

        with pytest.raises(UpstreamUnavailable) as exc_info:
            client.get_price("wif-address")

        assert exc_info.value.endpoint == "/defi/price"

    def test_get_history_out_of_range_timestamp(self, client, session):
        session.get.return_value = make_response({
            "success": True,
            "data": {"items": [{"unixTime": 9e11, "value": 1.0}]},
        })

        with pytest.raises(UpstreamUnavailable):
            client.get_history("wif-address", 0, 60)
