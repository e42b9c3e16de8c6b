"""Shared fixtures: temporary databases, stores and a fake price provider."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Set

import pytest

from core import UpstreamUnavailable
from core.models import PricePoint, TokenQuote
from db import AlertStore, PriceHistoryStore, SQLiteDatabase
from services import EventBroadcaster

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

TOKENS = {
    "WIF": "wif-address",
    "BONK": "bonk-address",
}


class FakeProvider:
    """Stands in for BirdeyeClient with scripted responses."""

    def __init__(self):
        self.prices: Dict[str, float] = {}
        self.series: Dict[str, List[PricePoint]] = {}
        self.failing: Set[str] = set()
        self.price_calls: List[str] = []
        self.history_calls: List[tuple] = []

    def get_price(self, address: str) -> TokenQuote:
        self.price_calls.append(address)
        if address in self.failing:
            raise UpstreamUnavailable(f"provider down for {address}")
        return TokenQuote(address=address, price=self.prices[address], price_change_24h=5.0)

    def get_history(self, address, time_from, time_to, interval="1m") -> List[PricePoint]:
        self.history_calls.append((address, time_from, time_to, interval))
        if address in self.failing:
            raise UpstreamUnavailable(f"provider down for {address}")
        return list(self.series.get(address, []))


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield SQLiteDatabase(Path(tmpdir) / "test.db")


@pytest.fixture
def history_store(temp_db):
    return PriceHistoryStore(temp_db)


@pytest.fixture
def alert_store(temp_db):
    return AlertStore(temp_db)


@pytest.fixture
def broadcaster():
    return EventBroadcaster()


@pytest.fixture
def provider():
    return FakeProvider()
