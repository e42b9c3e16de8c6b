"""
Price History Store
Append/query interface over time-stamped price samples.

Uniqueness is (token, timestamp). `upsert` makes repeated ingestion of
overlapping ranges idempotent; `append` is a plain insert and fails on a
duplicate key.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import pandas as pd
import pydantic

from core.errors import ValidationError
from core.models import PricePoint, PriceSample, utcnow

from .sqlite import SQLiteDatabase, from_db_timestamp, get_database, to_db_timestamp

_UPSERT_SQL = """
    INSERT INTO price_history (token, price, timestamp)
    VALUES (?, ?, ?)
    ON CONFLICT(token, timestamp) DO UPDATE SET price = excluded.price
"""


def _make_sample(symbol: str, price: float, timestamp: datetime) -> PriceSample:
    try:
        return PriceSample(symbol=symbol, price=price, timestamp=timestamp)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid price sample for {symbol}: {e.errors()[0]['msg']}") from e


def _row_to_sample(row) -> PriceSample:
    return PriceSample(
        symbol=row["token"],
        price=row["price"],
        timestamp=from_db_timestamp(row["timestamp"]),
    )


class PriceHistoryStore:
    def __init__(self, database: SQLiteDatabase = None):
        self.db = database or get_database()

    # =========================================================================
    # Write Operations
    # =========================================================================

    def append(self, symbol: str, price: float, timestamp: datetime) -> PriceSample:
        """
        Insert a new sample. A duplicate (symbol, timestamp) raises StoreFailure.

        The scheduler writes through upsert() instead, so a minute bucket
        fetched twice does not fail the tick.
        """
        sample = _make_sample(symbol, price, timestamp)
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO price_history (token, price, timestamp) VALUES (?, ?, ?)",
                [sample.symbol, sample.price, to_db_timestamp(sample.timestamp)],
            )
        return sample

    def upsert(self, symbol: str, price: float, timestamp: datetime) -> PriceSample:
        """Insert, or overwrite the price of the existing sample at this timestamp."""
        sample = _make_sample(symbol, price, timestamp)
        with self.db.connect() as conn:
            conn.execute(
                _UPSERT_SQL,
                [sample.symbol, sample.price, to_db_timestamp(sample.timestamp)],
            )
        return sample

    def upsert_many(self, symbol: str, points: Iterable[PricePoint]) -> int:
        """Upsert a provider series in a single transaction. Returns rows written."""
        samples = [
            PriceSample(symbol=symbol, price=p.value, timestamp=p.timestamp)
            for p in points
            if p.value > 0
        ]
        if not samples:
            return 0

        with self.db.connect() as conn:
            conn.executemany(
                _UPSERT_SQL,
                [(s.symbol, s.price, to_db_timestamp(s.timestamp)) for s in samples],
            )
        return len(samples)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def query(
        self,
        symbol: str,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
    ) -> List[PriceSample]:
        """Samples in [from_time, to_time], oldest first. Either bound may be omitted."""
        sql = "SELECT token, price, timestamp FROM price_history WHERE token = ?"
        params = [symbol.upper()]
        if from_time is not None:
            sql += " AND timestamp >= ?"
            params.append(to_db_timestamp(from_time))
        if to_time is not None:
            sql += " AND timestamp <= ?"
            params.append(to_db_timestamp(to_time))
        sql += " ORDER BY timestamp ASC"

        with self.db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_sample(row) for row in rows]

    def query_recent(self, symbol: str, minutes: int, now: datetime = None) -> List[PriceSample]:
        """Samples from the most recent N minutes"""
        now = now or utcnow()
        return self.query(symbol, now - timedelta(minutes=minutes), now)

    def earliest_since(self, symbol: str, since: datetime) -> Optional[PriceSample]:
        """First sample at or after `since`, or None if there is none"""
        with self.db.connect() as conn:
            row = conn.execute(
                """SELECT token, price, timestamp FROM price_history
                   WHERE token = ? AND timestamp >= ?
                   ORDER BY timestamp ASC LIMIT 1""",
                [symbol.upper(), to_db_timestamp(since)],
            ).fetchone()
        return _row_to_sample(row) if row else None

    def latest(self, symbol: str) -> Optional[PriceSample]:
        with self.db.connect() as conn:
            row = conn.execute(
                """SELECT token, price, timestamp FROM price_history
                   WHERE token = ?
                   ORDER BY timestamp DESC LIMIT 1""",
                [symbol.upper()],
            ).fetchone()
        return _row_to_sample(row) if row else None

    def count(self, symbol: str = None) -> int:
        with self.db.connect() as conn:
            if symbol:
                return conn.execute(
                    "SELECT COUNT(*) FROM price_history WHERE token = ?", [symbol.upper()]
                ).fetchone()[0]
            return conn.execute("SELECT COUNT(*) FROM price_history").fetchone()[0]

    def query_df(
        self,
        symbol: str,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
    ) -> pd.DataFrame:
        """Read samples as a DataFrame with `timestamp` and `price` columns"""
        samples = self.query(symbol, from_time, to_time)
        df = pd.DataFrame(
            [(s.timestamp, s.price) for s in samples],
            columns=["timestamp", "price"],
        )
        if not df.empty:
            df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
            df = df.sort_values('timestamp').reset_index(drop=True)
        return df


_history_store: Optional[PriceHistoryStore] = None


def get_history_store() -> PriceHistoryStore:
    global _history_store
    if _history_store is None:
        _history_store = PriceHistoryStore()
    return _history_store

