"""
Domain Models
The SINGLE SOURCE OF TRUTH for price data formats.

Provider payloads and database rows are converted into these types at the
edge. Timestamps inside the system are always timezone-aware UTC.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


# =============================================================================
# Time Helpers
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(ts: datetime) -> datetime:
    """Normalize to aware UTC. Naive datetimes are taken to be UTC already."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def from_unix(seconds: float) -> datetime:
    """Unix timestamp (seconds or milliseconds) → aware UTC datetime"""
    if seconds > 1e12:
        seconds = seconds / 1000
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _parse_timestamp(v):
    if isinstance(v, datetime):
        return to_utc(v)
    if isinstance(v, str):
        return to_utc(datetime.fromisoformat(v.replace('Z', '+00:00')))
    if isinstance(v, (int, float)):
        return from_unix(v)
    return v


class CamelModel(BaseModel):
    """Base for models serialized to clients with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# PriceSample: The Stored Data Contract
# =============================================================================

class PriceSample(BaseModel):
    """
    One persisted price observation.

    At most one sample exists per (symbol, timestamp).
    """
    symbol: str = Field(..., min_length=1, max_length=20)
    price: float = Field(..., gt=0)
    timestamp: datetime

    @field_validator('symbol', mode='before')
    @classmethod
    def uppercase_symbol(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Provider Types
# =============================================================================

class PricePoint(BaseModel):
    """One item of a provider historical series"""
    timestamp: datetime
    value: float

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)


class TokenQuote(CamelModel):
    """Current price with the provider's 24h change"""
    address: str
    price: float
    price_change_24h: Optional[float] = None
    updated_at: Optional[datetime] = None


class MarketData(CamelModel):
    price: Optional[float] = None
    liquidity: Optional[float] = None
    supply: Optional[float] = None
    circulating_supply: Optional[float] = None
    market_cap: Optional[float] = None


class Holder(CamelModel):
    owner: str
    amount: float
    share_percent: Optional[float] = None


class TokenMetadata(CamelModel):
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    logo_uri: Optional[str] = None


class VolumeData(CamelModel):
    volume_24h_usd: Optional[float] = None
    price_change_percent: Optional[float] = None


# =============================================================================
# Derived Values
# =============================================================================

def percent_change(start: float, end: float) -> Optional[float]:
    """
    Percent move from start to end.

    Returns None when start is zero (the change is undefined).
    """
    if not start:
        return None
    return (end - start) / start * 100


def series_change(samples: List[PriceSample]) -> Optional[float]:
    """Percent change from the first to the last sample of a series"""
    if len(samples) < 2:
        return None
    return percent_change(samples[0].price, samples[-1].price)
