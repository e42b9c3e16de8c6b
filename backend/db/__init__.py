"""
Database Layer
Persistence for price history and alerts.
"""

from .sqlite import SQLiteDatabase, get_database
from .history import PriceHistoryStore, get_history_store
from .alerts import AlertStore, get_alert_store

__all__ = [
    "SQLiteDatabase",
    "get_database",
    "PriceHistoryStore",
    "get_history_store",
    "AlertStore",
    "get_alert_store",
]
