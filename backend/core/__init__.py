"""
Core Module
Configuration, domain models and the error taxonomy.

Exports:
    Models: PriceSample, PricePoint, TokenQuote, MarketData, Holder,
            TokenMetadata, VolumeData
    Config: Settings, get_settings
    Errors: MonitorError, UpstreamUnavailable, NotFound, ValidationError,
            StoreFailure
"""

from .models import (
    PriceSample,
    PricePoint,
    TokenQuote,
    MarketData,
    Holder,
    TokenMetadata,
    VolumeData,
    percent_change,
    series_change,
    utcnow,
    to_utc,
    from_unix,
)

from .config import Settings, get_settings
from .errors import (
    MonitorError,
    UpstreamUnavailable,
    NotFound,
    ValidationError,
    StoreFailure,
)
from .logs import configure_logging

__all__ = [
    # Models
    "PriceSample",
    "PricePoint",
    "TokenQuote",
    "MarketData",
    "Holder",
    "TokenMetadata",
    "VolumeData",
    "percent_change",
    "series_change",
    "utcnow",
    "to_utc",
    "from_unix",
    # Config
    "Settings",
    "get_settings",
    # Errors
    "MonitorError",
    "UpstreamUnavailable",
    "NotFound",
    "ValidationError",
    "StoreFailure",
    # Logging
    "configure_logging",
]
