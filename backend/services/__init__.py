"""
Services
Long-running components: the event broadcaster and the price monitor.
"""

from .broadcaster import PRICE_UPDATE_EVENT, EventBroadcaster, get_broadcaster
from .price_monitor import MonitorStats, PriceMonitor, get_price_monitor

__all__ = [
    "PRICE_UPDATE_EVENT",
    "EventBroadcaster",
    "get_broadcaster",
    "MonitorStats",
    "PriceMonitor",
    "get_price_monitor",
]
