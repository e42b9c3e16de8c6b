"""
Tokens API
Current price, stored history and market statistics per monitored token.

Endpoints:
    GET /tokens                    → Monitored symbols
    GET /tokens/{symbol}           → Current price + 24h change
    GET /tokens/{symbol}/history   → Stored price series + overall change
    GET /tokens/{symbol}/stats     → Price, market cap, supply, liquidity, holders
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core import NotFound, Settings, UpstreamUnavailable, from_unix, get_settings, utcnow
from core.models import series_change
from db import PriceHistoryStore, get_history_store
from providers import BirdeyeClient, get_birdeye_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["Tokens"])


def _resolve(symbol: str, settings: Settings) -> str:
    address = settings.address_for(symbol)
    if not address:
        raise NotFound(f"Token not found: {symbol}")
    return address


@router.get("")
async def list_tokens(settings: Settings = Depends(get_settings)):
    return {
        "count": len(settings.tokens),
        "tokens": [{"symbol": s, "address": a} for s, a in settings.tokens.items()],
    }


@router.get("/{symbol}")
async def get_current_price(
    symbol: str,
    settings: Settings = Depends(get_settings),
    client: BirdeyeClient = Depends(get_birdeye_client),
    history: PriceHistoryStore = Depends(get_history_store),
):
    """
    Current price and 24h change.

    The 24h change comes from the provider; if it does not report one, it
    is computed from stored history.
    """
    symbol = symbol.upper()
    address = _resolve(symbol, settings)

    quote = await asyncio.to_thread(client.get_price, address)

    change_24h = quote.price_change_24h
    if change_24h is None:
        change_24h = series_change(history.query_recent(symbol, 1440))

    return {
        "symbol": symbol,
        "address": address,
        "currentPrice": quote.price,
        "change24h": f"{change_24h:.2f}%" if change_24h is not None else None,
        "updatedAt": quote.updated_at.isoformat() if quote.updated_at else None,
    }


@router.get("/{symbol}/history")
async def get_price_history(
    symbol: str,
    time_from: Optional[int] = Query(default=None, description="Unix seconds"),
    time_to: Optional[int] = Query(default=None, description="Unix seconds"),
    timeframe: int = Query(default=60, ge=1, description="Minutes, used when time_from is omitted"),
    settings: Settings = Depends(get_settings),
    history: PriceHistoryStore = Depends(get_history_store),
):
    """Stored price series, oldest first, with summary statistics"""
    symbol = symbol.upper()
    _resolve(symbol, settings)

    end = from_unix(time_to) if time_to is not None else utcnow()
    start = from_unix(time_from) if time_from is not None else end - timedelta(minutes=timeframe)

    df = history.query_df(symbol, start, end)

    summary = {"count": int(len(df)), "priceChange": None, "high": None, "low": None}
    if not df.empty:
        first, last = float(df['price'].iloc[0]), float(df['price'].iloc[-1])
        summary.update(
            priceChange=f"{(last - first) / first * 100:.2f}" if len(df) > 1 else None,
            high=float(df['price'].max()),
            low=float(df['price'].min()),
        )

    return {
        "symbol": symbol,
        "timeFrom": start.isoformat(),
        "timeTo": end.isoformat(),
        **summary,
        "prices": [
            {"timestamp": ts.isoformat(), "price": float(price)}
            for ts, price in zip(df['timestamp'], df['price'])
        ],
    }


@router.get("/{symbol}/stats")
async def get_token_stats(
    symbol: str,
    holders: int = Query(default=10, ge=1, le=100),
    settings: Settings = Depends(get_settings),
    client: BirdeyeClient = Depends(get_birdeye_client),
):
    """Market data, metadata, 24h volume and top holders"""
    symbol = symbol.upper()
    address = _resolve(symbol, settings)

    market = await asyncio.to_thread(client.get_market_data, address)
    top_holders = await asyncio.to_thread(client.get_top_holders, address, holders)

    # Optional extras
    metadata = volume = None
    try:
        metadata = await asyncio.to_thread(client.get_metadata, address)
    except UpstreamUnavailable as e:
        logger.warning(f"No metadata for {symbol}: {e}")
    try:
        volume = await asyncio.to_thread(client.get_volume_24h, address)
    except UpstreamUnavailable as e:
        logger.warning(f"No 24h volume for {symbol}: {e}")

    if market.supply:
        for holder in top_holders:
            holder.share_percent = round(holder.amount / market.supply * 100, 4)

    return {
        "symbol": symbol,
        "address": address,
        "price": market.price,
        "marketCap": market.market_cap,
        "supply": market.supply,
        "circulatingSupply": market.circulating_supply,
        "liquidity": market.liquidity,
        "volume24h": volume.volume_24h_usd if volume else None,
        "metadata": metadata.to_dict() if metadata else None,
        "topHolders": [h.to_dict() for h in top_holders],
    }
