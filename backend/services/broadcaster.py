"""
Event Broadcaster
In-process publish/subscribe for push notifications.

Events:
    priceUpdate → {symbol, price, timestamp, priceChange}
    alert       → {id, symbol, priceChange, timeframe, threshold,
                   startPrice, currentPrice, timestamp, status}

Usage:
    from services import get_broadcaster

    broadcaster = get_broadcaster()
    queue = broadcaster.subscribe()
    message = await queue.get()        # {"event": "alert", "data": {...}}
    broadcaster.unsubscribe(queue)
"""

import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PRICE_UPDATE_EVENT = "priceUpdate"

EventCallback = Callable[[str, Dict[str, Any]], None]


class EventBroadcaster:
    def __init__(self, history_size: int = 100, queue_size: int = 1000):
        self._subscribers: List[asyncio.Queue] = []
        self._callbacks: List[EventCallback] = []
        self._history: deque = deque(maxlen=history_size)
        self._queue_size = queue_size
        self._stats = {
            "published": 0,
            "dropped": 0,
            "start_time": datetime.now(),
        }

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def on_event(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, payload: Dict[str, Any]) -> int:
        """
        Fan an event out to every subscriber.

        A subscriber whose queue is full misses this message.

        Returns:
            Number of subscriber queues the message was delivered to
        """
        message = {"event": event, "data": payload}
        self._history.append(message)
        self._stats["published"] += 1

        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                self._stats["dropped"] += 1

        for callback in self._callbacks:
            try:
                callback(event, payload)
            except Exception as e:
                logger.warning(f"Event callback failed for {event}: {e}")

        return delivered

    def get_history(self, limit: int = 50, event: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recent events first"""
        history = [m for m in self._history if event is None or m["event"] == event]
        history.reverse()
        return history[:limit]

    def clear_history(self) -> None:
        self._history.clear()

    def stats(self) -> Dict[str, Any]:
        uptime = (datetime.now() - self._stats["start_time"]).total_seconds()
        return {
            "published": self._stats["published"],
            "dropped": self._stats["dropped"],
            "subscribers": len(self._subscribers),
            "history_size": len(self._history),
            "uptime_seconds": round(uptime, 2),
        }


_broadcaster: Optional[EventBroadcaster] = None


def get_broadcaster() -> EventBroadcaster:
    """Get or create broadcaster singleton"""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = EventBroadcaster()
    return _broadcaster
