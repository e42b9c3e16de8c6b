"""
Alert System
One-shot percentage-move alerts evaluated against stored price history.

Structure:
    alerts/
    ├── models.py     → Alert, AlertStatus, CreateAlertRequest, EvaluationResult
    └── evaluator.py  → AlertEvaluator (state transitions + alert events)

Storage lives in db/alerts.py (AlertStore).

Usage:
    from alerts import AlertEvaluator
    from db import get_alert_store, get_history_store
    from services import get_broadcaster

    evaluator = AlertEvaluator(
        get_alert_store(),
        get_history_store(),
        publish=get_broadcaster().publish,
    )

    # Called by the price monitor once per symbol per tick
    result = evaluator.evaluate("WIF", 2.41)
    result.triggered   # ids of alerts that fired this pass
"""

from .models import (
    Alert,
    AlertStatus,
    CreateAlertRequest,
    EvaluationFailure,
    EvaluationResult,
    alert_event_payload,
)

from .evaluator import (
    ALERT_EVENT,
    AlertEvaluator,
)

__all__ = [
    # Models
    "Alert",
    "AlertStatus",
    "CreateAlertRequest",
    "EvaluationFailure",
    "EvaluationResult",
    "alert_event_payload",
    # Evaluator
    "ALERT_EVENT",
    "AlertEvaluator",
]
