"""
SQLite Database
Connection handling and schema.

Responsibilities:
- Create the database file and schema
- Hand out short-lived connections
- Translate sqlite3 errors into StoreFailure

NOT responsible for:
- Query semantics (see history.py / alerts.py)
- Validation (done upstream)
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from core.config import get_settings
from core.errors import StoreFailure
from core.models import to_utc

logger = logging.getLogger(__name__)


SCHEMA = """
    CREATE TABLE IF NOT EXISTS price_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token TEXT NOT NULL,
        price REAL NOT NULL,
        timestamp TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(token, timestamp)
    );

    CREATE INDEX IF NOT EXISTS idx_price_history_token_ts
    ON price_history(token, timestamp);

    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL,
        threshold_percent REAL NOT NULL,
        timeframe_minutes INTEGER NOT NULL,
        active INTEGER NOT NULL DEFAULT 1,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        triggered_at TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_alerts_symbol_status
    ON alerts(symbol, status);
"""


def to_db_timestamp(ts: datetime) -> str:
    """
    Fixed-width UTC ISO string.

    Always carries microseconds so lexical order equals time order.
    """
    return to_utc(ts).isoformat(timespec="microseconds")


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


class SQLiteDatabase:
    """
    SQLite persistence for price history and alerts.

    Tables:
        - price_history: one row per (token, timestamp)
        - alerts: threshold alerts and their state
    """

    REQUIRED_TABLES = ["price_history", "alerts"]

    def __init__(self, db_path: str = "data/prices.db"):
        self.db_path = str(db_path)
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self):
        """Create data directory"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _init_schema(self):
        with self.connect() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, roll back on error.

        Raises:
            StoreFailure: wrapping any sqlite3.Error
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
        except sqlite3.Error as e:
            raise StoreFailure(f"Cannot open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise StoreFailure(f"Database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_tables(self) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            ).fetchall()
        return [row["name"] for row in rows]

    def get_stats(self) -> dict:
        """Get storage statistics"""
        with self.connect() as conn:
            sample_count = conn.execute("SELECT COUNT(*) FROM price_history").fetchone()[0]
            alert_count = conn.execute("SELECT COUNT(*) FROM alerts").fetchone()[0]
            pending_count = conn.execute(
                "SELECT COUNT(*) FROM alerts WHERE status = 'pending'"
            ).fetchone()[0]

        return {
            "price_samples": sample_count,
            "alerts": alert_count,
            "pending_alerts": pending_count,
            "db_path": self.db_path,
        }


# =============================================================================
# Singleton
# =============================================================================

_database: Optional[SQLiteDatabase] = None


def get_database() -> SQLiteDatabase:
    """Get singleton database instance"""
    global _database
    if _database is None:
        _database = SQLiteDatabase(get_settings().database_path)
    return _database
