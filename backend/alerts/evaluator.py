import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from core.errors import StoreFailure
from core.models import percent_change, to_utc, utcnow

from .models import Alert, EvaluationFailure, EvaluationResult, alert_event_payload

if TYPE_CHECKING:
    from db.alerts import AlertStore
    from db.history import PriceHistoryStore

logger = logging.getLogger(__name__)

ALERT_EVENT = "alert"

Publisher = Callable[[str, Dict[str, Any]], Any]


class AlertEvaluator:
    """
    Checks active alerts for one symbol against the stored price history.

    Per alert:
        1. expired (now > created_at + timeframe)  → mark expired
        2. no sample since now - timeframe         → skip
        3. window start price is zero              → skip
        4. |change| >= threshold                   → mark triggered, publish
        5. otherwise                               → stays pending

    Expiry is checked first: an alert past its timeframe is expired even if
    the window also shows a qualifying move.
    """

    def __init__(
        self,
        alert_store: "AlertStore",
        history_store: "PriceHistoryStore",
        publish: Optional[Publisher] = None,
    ):
        self._alerts = alert_store
        self._history = history_store
        self._publish = publish
        self._stats = {
            "evaluations": 0,
            "triggers": 0,
            "expirations": 0,
            "skipped": 0,
            "failures": 0,
        }

    def evaluate(self, symbol: str, current_price: float, now: datetime = None) -> EvaluationResult:
        """
        Run one evaluation pass for a symbol.

        Raises:
            StoreFailure: if the active alerts cannot be loaded
        """
        now = to_utc(now) if now else utcnow()
        symbol = symbol.upper()
        result = EvaluationResult(symbol=symbol)
        self._stats["evaluations"] += 1

        active = self._alerts.find_active(symbol)
        for alert in active:
            try:
                self._evaluate_alert(alert, current_price, now, result)
            except StoreFailure as e:
                logger.error(f"Alert {alert.id} ({symbol}) evaluation failed: {e}")
                result.failures.append(EvaluationFailure(alert_id=alert.id, error=str(e)))
                self._stats["failures"] += 1

        return result

    def _evaluate_alert(
        self,
        alert: Alert,
        current_price: float,
        now: datetime,
        result: EvaluationResult,
    ) -> None:
        timeframe = timedelta(minutes=alert.timeframe_minutes)

        if now > alert.created_at + timeframe:
            if self._alerts.mark_expired(alert.id, now):
                logger.info(f"Alert {alert.id} ({alert.symbol}) expired after {alert.timeframe_minutes}m")
                result.expired.append(alert.id)
                self._stats["expirations"] += 1
            return

        start = self._history.earliest_since(alert.symbol, now - timeframe)
        if start is None:
            result.skipped.append(alert.id)
            self._stats["skipped"] += 1
            return

        change = percent_change(start.price, current_price)
        if change is None:
            logger.warning(f"Alert {alert.id} ({alert.symbol}) skipped: window start price is zero")
            result.skipped.append(alert.id)
            self._stats["skipped"] += 1
            return

        if abs(change) < alert.threshold_percent:
            return

        if not self._alerts.mark_triggered(alert.id, now):
            # Another pass already moved it out of pending
            return

        logger.info(
            f"Alert {alert.id} triggered: {alert.symbol} moved {change:+.2f}% "
            f"in {alert.timeframe_minutes}m (threshold {alert.threshold_percent}%)"
        )
        result.triggered.append(alert.id)
        self._stats["triggers"] += 1

        if self._publish is not None:
            payload = alert_event_payload(alert, change, start.price, current_price, now)
            self._publish(ALERT_EVENT, payload)

    def stats(self) -> Dict[str, Any]:
        return dict(self._stats)
