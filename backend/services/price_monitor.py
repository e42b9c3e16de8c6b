"""
Price Monitor Service
Polls Birdeye for the monitored tokens, records price history and runs
alert evaluation.

Two independent periodic tasks plus a one-time initializer:
    history-ingestion  → backfill 24h once, then store the latest 1m point
    live-monitoring    → fetch current price, publish priceUpdate, evaluate alerts

Usage:
    from services import get_price_monitor

    monitor = get_price_monitor()
    monitor.start()          # inside a running event loop
    monitor.stop()           # current ticks finish, no new ticks start
    await monitor.wait_closed()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from alerts import AlertEvaluator
from core.config import get_settings
from core.errors import MonitorError
from core.models import percent_change, utcnow

from .broadcaster import PRICE_UPDATE_EVENT, EventBroadcaster, get_broadcaster

logger = logging.getLogger(__name__)


@dataclass
class MonitorStats:
    """Price monitor statistics"""
    is_running: bool = False
    symbols: List[str] = field(default_factory=list)
    monitor_ticks: int = 0
    history_ticks: int = 0
    price_updates: int = 0
    samples_stored: int = 0
    alerts_triggered: int = 0
    alerts_expired: int = 0
    errors: int = 0
    last_monitor_tick: Optional[datetime] = None
    last_history_tick: Optional[datetime] = None
    started_at: Optional[datetime] = None
    initialized: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "symbols": self.symbols,
            "monitor_ticks": self.monitor_ticks,
            "history_ticks": self.history_ticks,
            "price_updates": self.price_updates,
            "samples_stored": self.samples_stored,
            "alerts_triggered": self.alerts_triggered,
            "alerts_expired": self.alerts_expired,
            "errors": self.errors,
            "last_monitor_tick": self.last_monitor_tick.isoformat() if self.last_monitor_tick else None,
            "last_history_tick": self.last_history_tick.isoformat() if self.last_history_tick else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "uptime_seconds": (utcnow() - self.started_at).total_seconds() if self.started_at else 0,
            "history_initialized": self.initialized,
        }


class PriceMonitor:
    """
    Timer-driven price poller.

    Symbols are processed one after another inside a tick. A failure for
    one symbol is logged and the tick moves on to the next symbol.
    """

    def __init__(
        self,
        client,
        history_store,
        evaluator: AlertEvaluator,
        broadcaster: EventBroadcaster = None,
        tokens: Dict[str, str] = None,
        monitor_interval: float = None,
        history_interval: float = None,
        backfill_hours: int = None,
    ):
        settings = get_settings()
        self._client = client
        self._history = history_store
        self._evaluator = evaluator
        self._broadcaster = broadcaster or get_broadcaster()
        self._tokens = dict(tokens if tokens is not None else settings.tokens)
        self.monitor_interval = monitor_interval or settings.monitor_interval_sec
        self.history_interval = history_interval or settings.history_interval_sec
        self.backfill_hours = backfill_hours or settings.history_backfill_hours

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []
        self._monitor_lock = asyncio.Lock()
        self._history_lock = asyncio.Lock()
        self._last_prices: Dict[str, float] = {}
        self._stats = MonitorStats(symbols=list(self._tokens))

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    @property
    def symbols(self) -> List[str]:
        return list(self._tokens)

    @property
    def last_prices(self) -> Dict[str, float]:
        return dict(self._last_prices)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> Dict[str, Any]:
        """
        Start both periodic tasks. Must be called from a running event loop.

        Returns:
            Status dict
        """
        if self._running:
            return {"status": "already_running", "symbols": self.symbols}

        if not self._tokens:
            return {"status": "error", "message": "No symbols configured"}

        self._running = True
        self._stop_event = asyncio.Event()
        self._stats.is_running = True
        self._stats.started_at = utcnow()

        stop_event = self._stop_event
        # Tasks from a previous run may still be winding down
        self._tasks = [t for t in self._tasks if not t.done()]
        self._tasks.extend([
            asyncio.create_task(self._run_history_loop(stop_event), name="history-ingestion"),
            asyncio.create_task(self._run_monitor_loop(stop_event), name="live-monitoring"),
        ])

        logger.info(f"Price monitoring started for {', '.join(self.symbols)}")
        return {"status": "started", "symbols": self.symbols}

    def stop(self) -> Dict[str, Any]:
        """Stop scheduling ticks. In-flight ticks run to completion."""
        if not self._running:
            return {"status": "not_running"}

        self._running = False
        self._stats.is_running = False
        if self._stop_event is not None:
            self._stop_event.set()

        logger.info("Price monitoring stopped")
        return {
            "status": "stopped",
            "monitor_ticks": self._stats.monitor_ticks,
            "history_ticks": self._stats.history_ticks,
        }

    async def wait_closed(self) -> None:
        """Wait for the periodic tasks to exit after stop()"""
        tasks, self._tasks = self._tasks, []
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _sleep(self, stop_event: asyncio.Event, seconds: float) -> bool:
        """Sleep until the next tick. Returns False once stop was requested."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _run_history_loop(self, stop_event: asyncio.Event):
        try:
            await self.initialize_history()
        except Exception as e:
            self._stats.errors += 1
            logger.exception(f"Error initializing price history: {e}")

        while await self._sleep(stop_event, self.history_interval):
            try:
                await self.ingest_history_tick()
            except Exception as e:
                self._stats.errors += 1
                logger.exception(f"Error in history ingestion cycle: {e}")

    async def _run_monitor_loop(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            try:
                await self.monitor_prices_tick()
            except Exception as e:
                self._stats.errors += 1
                logger.exception(f"Error in price monitoring cycle: {e}")
            if not await self._sleep(stop_event, self.monitor_interval):
                break

    # =========================================================================
    # History Ingestion
    # =========================================================================

    async def initialize_history(self, now: datetime = None) -> Dict[str, int]:
        """
        Backfill the trailing window for every symbol.

        Returns:
            symbol → rows upserted (symbols that failed are absent)
        """
        now = now or utcnow()
        time_to = int(now.timestamp())
        time_from = int((now - timedelta(hours=self.backfill_hours)).timestamp())

        stored = {}
        for symbol, address in self._tokens.items():
            try:
                points = await asyncio.to_thread(
                    self._client.get_history, address, time_from, time_to, "1m"
                )
                stored[symbol] = self._history.upsert_many(symbol, points)
                self._stats.samples_stored += stored[symbol]
            except MonitorError as e:
                self._stats.errors += 1
                logger.error(f"Error initializing historical data for {symbol}: {e}")
                continue
            except Exception as e:
                self._stats.errors += 1
                logger.exception(f"Unexpected error initializing historical data for {symbol}: {e}")
                continue

        self._stats.initialized = True
        logger.info(f"Historical data initialized: {stored}")
        return stored

    async def ingest_history_tick(self, now: datetime = None) -> Dict[str, datetime]:
        """
        Store the latest point of the last interval for every symbol.

        Points are upserted, so a bucket already written by the backfill or
        a previous tick is overwritten rather than rejected.

        Returns:
            symbol → timestamp of the stored point
        """
        async with self._history_lock:
            now = now or utcnow()
            time_to = int(now.timestamp())
            time_from = time_to - int(self.history_interval)

            stored = {}
            for symbol, address in self._tokens.items():
                try:
                    points = await asyncio.to_thread(
                        self._client.get_history, address, time_from, time_to, "1m"
                    )
                    if not points:
                        continue
                    latest = points[-1]
                    self._history.upsert(symbol, latest.value, latest.timestamp)
                    stored[symbol] = latest.timestamp
                    self._stats.samples_stored += 1
                except MonitorError as e:
                    self._stats.errors += 1
                    logger.error(f"Error updating price history for {symbol}: {e}")
                    continue
                except Exception as e:
                    self._stats.errors += 1
                    logger.exception(f"Unexpected error updating price history for {symbol}: {e}")
                    continue

            self._stats.history_ticks += 1
            self._stats.last_history_tick = now
            return stored

    # =========================================================================
    # Live Monitoring
    # =========================================================================

    async def monitor_prices_tick(self) -> Dict[str, Dict[str, Any]]:
        """
        One live-monitoring pass over every symbol.

        Returns:
            symbol → published priceUpdate payload (first sightings and
            failed symbols are absent)
        """
        async with self._monitor_lock:
            updates = {}
            for symbol, address in self._tokens.items():
                update = await self.check_price_movement(symbol, address)
                if update is not None:
                    updates[symbol] = update

            self._stats.monitor_ticks += 1
            self._stats.last_monitor_tick = utcnow()
            return updates

    async def check_price_movement(self, symbol: str, address: str) -> Optional[Dict[str, Any]]:
        try:
            quote = await asyncio.to_thread(self._client.get_price, address)
        except MonitorError as e:
            self._stats.errors += 1
            logger.warning(f"Error checking price movement for {symbol}: {e}")
            return None
        except Exception as e:
            self._stats.errors += 1
            logger.exception(f"Unexpected error checking price movement for {symbol}: {e}")
            return None

        price = quote.price
        last_price = self._last_prices.get(symbol)
        update = None

        try:
            change = percent_change(last_price, price) if last_price else None
            if change is not None:
                now = utcnow()
                logger.info(f"{symbol}: ${price:.6f} ({change:+.2f}%)")

                update = {
                    "symbol": symbol,
                    "price": price,
                    "timestamp": now.isoformat(),
                    "priceChange": change,
                }
                self._broadcaster.publish(PRICE_UPDATE_EVENT, update)
                self._stats.price_updates += 1

                result = self._evaluator.evaluate(symbol, price, now)
                self._stats.alerts_triggered += len(result.triggered)
                self._stats.alerts_expired += len(result.expired)
                if not result.ok:
                    self._stats.errors += len(result.failures)
                    logger.error(f"Alert evaluation for {symbol} had {len(result.failures)} failure(s)")
        except MonitorError as e:
            self._stats.errors += 1
            logger.error(f"Alert evaluation failed for {symbol}: {e}")
        except Exception as e:
            self._stats.errors += 1
            logger.exception(f"Unexpected error evaluating alerts for {symbol}: {e}")
        finally:
            self._last_prices[symbol] = price

        return update


# Singleton
_price_monitor: Optional[PriceMonitor] = None


def get_price_monitor() -> PriceMonitor:
    """Get or create price monitor singleton"""
    global _price_monitor
    if _price_monitor is None:
        from db import get_alert_store, get_history_store
        from providers import get_birdeye_client

        broadcaster = get_broadcaster()
        history = get_history_store()
        evaluator = AlertEvaluator(get_alert_store(), history, publish=broadcaster.publish)
        _price_monitor = PriceMonitor(
            get_birdeye_client(),
            history,
            evaluator,
            broadcaster=broadcaster,
        )
    return _price_monitor
