"""
Configuration
All runtime settings in one place.

Values come from the environment (a `.env` file in the project root is
loaded first). Everything has a sane default except the Birdeye API key.

Usage:
    from core.config import get_settings

    settings = get_settings()
    address = settings.address_for("WIF")
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_PATH = _PROJECT_ROOT / ".env"
if _ENV_PATH.exists():
    load_dotenv(_ENV_PATH)


# =============================================================================
# Monitored Tokens
# =============================================================================

DEFAULT_TOKENS: Dict[str, str] = {
    "WIF": "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",
    "BONK": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
}


def parse_tokens(raw: Optional[str]) -> Dict[str, str]:
    """
    Parse a `SYMBOL=address,SYMBOL=address` mapping.

    Empty or missing input falls back to DEFAULT_TOKENS.
    """
    if not raw or not raw.strip():
        return dict(DEFAULT_TOKENS)

    tokens = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        if "=" not in pair:
            raise ValueError(f"Invalid token mapping entry: {pair!r} (expected SYMBOL=address)")
        symbol, address = pair.split("=", 1)
        symbol, address = symbol.strip().upper(), address.strip()
        if not symbol or not address:
            raise ValueError(f"Invalid token mapping entry: {pair!r}")
        tokens[symbol] = address
    return tokens


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Settings
# =============================================================================

@dataclass
class Settings:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # Provider
    # -------------------------------------------------------------------------
    birdeye_api_key: str = ""
    birdeye_base_url: str = "https://public-api.birdeye.so"
    birdeye_chain: str = "solana"
    provider_timeout_sec: float = 10.0

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    database_path: str = "data/prices.db"

    # -------------------------------------------------------------------------
    # Scheduling (seconds)
    # -------------------------------------------------------------------------
    monitor_interval_sec: float = 60.0
    history_interval_sec: float = 60.0
    history_backfill_hours: int = 24
    monitor_autostart: bool = True

    # -------------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------------
    port: int = 3000
    log_level: str = "INFO"

    tokens: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TOKENS))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            birdeye_api_key=os.getenv("BIRDEYE_API_KEY", ""),
            birdeye_base_url=os.getenv("BIRDEYE_BASE_URL", cls.birdeye_base_url),
            birdeye_chain=os.getenv("BIRDEYE_CHAIN", cls.birdeye_chain),
            provider_timeout_sec=float(os.getenv("PROVIDER_TIMEOUT_SEC", cls.provider_timeout_sec)),
            database_path=os.getenv("DATABASE_PATH", cls.database_path),
            monitor_interval_sec=float(os.getenv("MONITOR_INTERVAL_SEC", cls.monitor_interval_sec)),
            history_interval_sec=float(os.getenv("HISTORY_INTERVAL_SEC", cls.history_interval_sec)),
            history_backfill_hours=int(os.getenv("HISTORY_BACKFILL_HOURS", cls.history_backfill_hours)),
            monitor_autostart=_env_bool("MONITOR_AUTOSTART", cls.monitor_autostart),
            port=int(os.getenv("PORT", cls.port)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            tokens=parse_tokens(os.getenv("MONITORED_TOKENS")),
        )

    @property
    def symbols(self):
        return list(self.tokens.keys())

    def is_supported(self, symbol: str) -> bool:
        return symbol.upper() in self.tokens

    def address_for(self, symbol: str) -> Optional[str]:
        """Chain address for a symbol, or None if it is not monitored."""
        return self.tokens.get(symbol.upper())


# =============================================================================
# Singleton
# =============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings singleton"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
