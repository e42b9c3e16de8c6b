"""
Birdeye API Client

Single responsibility: communicate with the Birdeye REST API.

Every call is one HTTP request with a bounded timeout and no retry. Any
failure (transport error, non-2xx status, `success: false`, malformed
payload) surfaces as UpstreamUnavailable. Callers decide what to skip.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from core.config import Settings, get_settings
from core.errors import UpstreamUnavailable
from core.models import (
    Holder,
    MarketData,
    PricePoint,
    TokenMetadata,
    TokenQuote,
    VolumeData,
    from_unix,
)

logger = logging.getLogger(__name__)

# Raised while turning a payload into models (pydantic errors are ValueErrors)
_PARSE_ERRORS = (KeyError, TypeError, ValueError, OverflowError, OSError)


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class BirdeyeClient:
    """
    Synchronous client for the Birdeye public API.

    Handles:
    - Current price and 24h change
    - Historical price series
    - Market data, metadata, 24h volume
    - Top holders
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        chain: str = None,
        timeout: float = None,
        session: requests.Session = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.birdeye_api_key
        self.base_url = (base_url or settings.birdeye_base_url).rstrip('/')
        self.chain = chain or settings.birdeye_chain
        self.timeout = timeout or settings.provider_timeout_sec
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "BirdeyeClient":
        return cls(
            api_key=settings.birdeye_api_key,
            base_url=settings.birdeye_base_url,
            chain=settings.birdeye_chain,
            timeout=settings.provider_timeout_sec,
        )

    def close(self):
        self.session.close()

    def _get(self, endpoint: str, params: dict) -> Any:
        """
        GET an endpoint and return the `data` member of the envelope.

        Raises:
            UpstreamUnavailable: on any failure
        """
        url = f"{self.base_url}{endpoint}"
        headers = {
            "X-API-KEY": self.api_key,
            "x-chain": self.chain,
            "accept": "application/json",
        }

        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Birdeye timeout on {endpoint} after {self.timeout}s")
            raise UpstreamUnavailable(f"Timeout calling {endpoint}", endpoint=endpoint) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Birdeye request error on {endpoint}: {e}")
            raise UpstreamUnavailable(f"Request to {endpoint} failed: {e}", endpoint=endpoint) from e

        if resp.status_code != 200:
            logger.warning(f"Birdeye API error {resp.status_code} on {endpoint}: {resp.text[:200]}")
            raise UpstreamUnavailable(
                f"{endpoint} returned HTTP {resp.status_code}",
                endpoint=endpoint,
                status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"{endpoint} returned invalid JSON", endpoint=endpoint) from e

        if not isinstance(body, dict) or not body.get("success") or body.get("data") is None:
            raise UpstreamUnavailable(f"Unexpected response structure from {endpoint}", endpoint=endpoint)

        return body["data"]

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    def get_price(self, address: str) -> TokenQuote:
        """
        Current price of a token.

        Endpoint: GET /defi/price
        """
        data = self._get("/defi/price", {"address": address})

        price = _as_float(data.get("value")) if isinstance(data, dict) else None
        if price is None:
            raise UpstreamUnavailable("Price missing from /defi/price response", endpoint="/defi/price")

        updated = data.get("updateUnixTime")
        try:
            return TokenQuote(
                address=address,
                price=price,
                price_change_24h=_as_float(data.get("priceChange24h")),
                updated_at=from_unix(updated) if isinstance(updated, (int, float)) else None,
            )
        except _PARSE_ERRORS as e:
            raise UpstreamUnavailable(f"Malformed price data from /defi/price: {e}", endpoint="/defi/price") from e

    def get_history(
        self,
        address: str,
        time_from: int,
        time_to: int,
        interval: str = "1m",
    ) -> List[PricePoint]:
        """
        Historical price series, ascending by time.

        Endpoint: GET /defi/history_price

        Args:
            address: Token address
            time_from: Unix seconds (inclusive)
            time_to: Unix seconds (inclusive)
            interval: Bucket size (1m, 5m, 1H, ...)
        """
        endpoint = "/defi/history_price"
        data = self._get(endpoint, {
            "address": address,
            "address_type": "token",
            "type": interval,
            "time_from": int(time_from),
            "time_to": int(time_to),
        })

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise UpstreamUnavailable(f"Items missing from {endpoint} response", endpoint=endpoint)

        points = []
        for item in items:
            try:
                points.append(PricePoint(timestamp=item["unixTime"], value=float(item["value"])))
            except _PARSE_ERRORS as e:
                raise UpstreamUnavailable(f"Malformed history item from {endpoint}: {item!r}", endpoint=endpoint) from e

        points.sort(key=lambda p: p.timestamp)
        return points

    def get_market_data(self, address: str) -> MarketData:
        """
        Liquidity, supply and market cap.

        Endpoint: GET /defi/v3/token/market-data
        """
        data = self._get("/defi/v3/token/market-data", {"address": address})
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Malformed market data", endpoint="/defi/v3/token/market-data")

        try:
            return MarketData(
                price=_as_float(data.get("price")),
                liquidity=_as_float(data.get("liquidity")),
                supply=_as_float(data.get("total_supply", data.get("supply"))),
                circulating_supply=_as_float(data.get("circulating_supply")),
                market_cap=_as_float(data.get("market_cap", data.get("marketcap"))),
            )
        except _PARSE_ERRORS as e:
            raise UpstreamUnavailable(f"Malformed market data: {e}", endpoint="/defi/v3/token/market-data") from e

    def get_top_holders(self, address: str, limit: int = 10) -> List[Holder]:
        """
        Largest holders of a token.

        Endpoint: GET /defi/v3/token/holder
        """
        endpoint = "/defi/v3/token/holder"
        data = self._get(endpoint, {"address": address, "offset": 0, "limit": limit})

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise UpstreamUnavailable(f"Items missing from {endpoint} response", endpoint=endpoint)

        holders = []
        for item in items:
            if not isinstance(item, dict):
                raise UpstreamUnavailable(f"Malformed holder item from {endpoint}: {item!r}", endpoint=endpoint)
            owner = item.get("owner")
            amount = _as_float(item.get("ui_amount", item.get("uiAmount")))
            if owner is None or amount is None:
                continue
            try:
                holders.append(Holder(owner=owner, amount=amount))
            except _PARSE_ERRORS as e:
                raise UpstreamUnavailable(f"Malformed holder item from {endpoint}: {item!r}", endpoint=endpoint) from e
        return holders

    def get_metadata(self, address: str) -> TokenMetadata:
        """
        Name, symbol, decimals, logo.

        Endpoint: GET /defi/v3/token/meta-data/single
        """
        data = self._get("/defi/v3/token/meta-data/single", {"address": address})
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Malformed token metadata", endpoint="/defi/v3/token/meta-data/single")

        decimals = data.get("decimals")
        try:
            return TokenMetadata(
                name=data.get("name"),
                symbol=data.get("symbol"),
                decimals=int(decimals) if isinstance(decimals, (int, float)) else None,
                logo_uri=data.get("logo_uri", data.get("logoURI")),
            )
        except _PARSE_ERRORS as e:
            raise UpstreamUnavailable(f"Malformed token metadata: {e}", endpoint="/defi/v3/token/meta-data/single") from e

    def get_volume_24h(self, address: str) -> VolumeData:
        """
        24-hour volume and price change.

        Endpoint: GET /defi/price_volume/single
        """
        data = self._get("/defi/price_volume/single", {"address": address, "type": "24h"})
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Malformed volume data", endpoint="/defi/price_volume/single")

        try:
            return VolumeData(
                volume_24h_usd=_as_float(data.get("volumeUSD")),
                price_change_percent=_as_float(data.get("priceChangePercent")),
            )
        except _PARSE_ERRORS as e:
            raise UpstreamUnavailable(f"Malformed volume data: {e}", endpoint="/defi/price_volume/single") from e


# Singleton
_client: Optional[BirdeyeClient] = None


def get_birdeye_client() -> BirdeyeClient:
    """Get or create the provider client singleton"""
    global _client
    if _client is None:
        _client = BirdeyeClient.from_settings(get_settings())
    return _client
