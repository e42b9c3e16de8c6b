"""
Alert Store
CRUD and status transitions over alert records.

Transitions are compare-and-set on `status = 'pending'`, so an alert can
leave the pending state at most once even if two evaluations race.
"""

from datetime import datetime
from typing import List, Optional

from alerts.models import Alert, AlertStatus
from core.errors import ValidationError
from core.models import utcnow

from .sqlite import SQLiteDatabase, from_db_timestamp, get_database, to_db_timestamp

_COLUMNS = """id, symbol, threshold_percent, timeframe_minutes, active, status,
              created_at, updated_at, triggered_at"""


def _row_to_alert(row) -> Alert:
    return Alert(
        id=row["id"],
        symbol=row["symbol"],
        threshold_percent=row["threshold_percent"],
        timeframe_minutes=row["timeframe_minutes"],
        active=bool(row["active"]),
        status=AlertStatus(row["status"]),
        created_at=from_db_timestamp(row["created_at"]),
        updated_at=from_db_timestamp(row["updated_at"]),
        triggered_at=from_db_timestamp(row["triggered_at"]),
    )


class AlertStore:
    def __init__(self, database: SQLiteDatabase = None):
        self.db = database or get_database()

    # =========================================================================
    # Create / Read
    # =========================================================================

    def create(
        self,
        symbol: str,
        threshold_percent: float,
        timeframe_minutes: int,
        now: datetime = None,
    ) -> Alert:
        """
        Create a pending alert.

        Raises:
            ValidationError: threshold <= 0, timeframe < 1 or empty symbol
        """
        if not symbol or not symbol.strip():
            raise ValidationError("symbol is required", fields=["symbol"])
        if threshold_percent is None or threshold_percent <= 0:
            raise ValidationError("thresholdPercent must be greater than 0", fields=["thresholdPercent"])
        if timeframe_minutes is None or int(timeframe_minutes) != timeframe_minutes or timeframe_minutes < 1:
            raise ValidationError("timeframeMinutes must be an integer >= 1", fields=["timeframeMinutes"])

        symbol = symbol.strip().upper()
        created = to_db_timestamp(now or utcnow())
        with self.db.connect() as conn:
            cursor = conn.execute(
                """INSERT INTO alerts
                   (symbol, threshold_percent, timeframe_minutes, active, status,
                    created_at, updated_at, triggered_at)
                   VALUES (?, ?, ?, 1, ?, ?, ?, NULL)""",
                [symbol, float(threshold_percent), int(timeframe_minutes),
                 AlertStatus.PENDING.value, created, created],
            )
            alert_id = cursor.lastrowid
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM alerts WHERE id = ?", [alert_id]
            ).fetchone()
        return _row_to_alert(row)

    def get(self, alert_id: int) -> Optional[Alert]:
        with self.db.connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM alerts WHERE id = ?", [alert_id]
            ).fetchone()
        return _row_to_alert(row) if row else None

    def find_active(self, symbol: str) -> List[Alert]:
        """Pending alerts for a symbol, oldest first"""
        with self.db.connect() as conn:
            rows = conn.execute(
                f"""SELECT {_COLUMNS} FROM alerts
                    WHERE symbol = ? AND status = ?
                    ORDER BY created_at ASC, id ASC""",
                [symbol.upper(), AlertStatus.PENDING.value],
            ).fetchall()
        return [_row_to_alert(row) for row in rows]

    def list(self, active: Optional[bool] = None) -> List[Alert]:
        """
        All alerts, optionally filtered by the active flag.

        Order: pending first, then newest created first, ties by insertion order.
        """
        sql = f"SELECT {_COLUMNS} FROM alerts"
        params = []
        if active is not None:
            sql += " WHERE active = ?"
            params.append(1 if active else 0)
        sql += """ ORDER BY CASE WHEN status = 'pending' THEN 0 ELSE 1 END,
                   created_at DESC, id ASC"""

        with self.db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_alert(row) for row in rows]

    # =========================================================================
    # Transitions
    # =========================================================================

    def mark_triggered(self, alert_id: int, triggered_at: datetime) -> bool:
        """pending → triggered. Returns False if the alert was not pending."""
        ts = to_db_timestamp(triggered_at)
        with self.db.connect() as conn:
            cursor = conn.execute(
                """UPDATE alerts
                   SET status = ?, active = 0, triggered_at = ?, updated_at = ?
                   WHERE id = ? AND status = ?""",
                [AlertStatus.TRIGGERED.value, ts, ts, alert_id, AlertStatus.PENDING.value],
            )
            return cursor.rowcount == 1

    def mark_expired(self, alert_id: int, now: datetime = None) -> bool:
        """pending → expired. Returns False if the alert was not pending."""
        ts = to_db_timestamp(now or utcnow())
        with self.db.connect() as conn:
            cursor = conn.execute(
                """UPDATE alerts
                   SET status = ?, active = 0, updated_at = ?
                   WHERE id = ? AND status = ?""",
                [AlertStatus.EXPIRED.value, ts, alert_id, AlertStatus.PENDING.value],
            )
            return cursor.rowcount == 1

_alert_store: Optional[AlertStore] = None


def get_alert_store() -> AlertStore:
    global _alert_store
    if _alert_store is None:
        _alert_store = AlertStore()
    return _alert_store
