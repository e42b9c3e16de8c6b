"""
Alerts API
Create and list percentage-move alerts.

Endpoints:
    POST /alerts            → Create alert
    GET  /alerts            → List alerts (?active=true|false)
    GET  /alerts/{id}       → Get alert by ID
"""

import logging
from typing import Any, Dict, Optional

import pydantic
from fastapi import APIRouter, Body, Depends, Query

from alerts import CreateAlertRequest
from core import NotFound, Settings, ValidationError, get_settings
from db import AlertStore, get_alert_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


def parse_create_request(payload: Any) -> CreateAlertRequest:
    """
    Validate an alert-creation body.

    Raises:
        ValidationError: missing or invalid fields
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return CreateAlertRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        missing = any(err["type"] == "missing" for err in e.errors())
        message = "Missing required fields" if missing else "Invalid alert parameters"
        raise ValidationError(message, fields=fields) from e


@router.post("")
async def create_alert(
    payload: Dict[str, Any] = Body(
        ...,
        examples=[{"symbol": "WIF", "thresholdPercent": 5, "timeframeMinutes": 60}],
    ),
    settings: Settings = Depends(get_settings),
    store: AlertStore = Depends(get_alert_store),
):
    """
    Create a one-shot alert.

    Fires once when the token moves at least `thresholdPercent` within the
    trailing `timeframeMinutes`, and expires after `timeframeMinutes`.
    """
    request = parse_create_request(payload)

    if not settings.is_supported(request.symbol):
        raise NotFound("Token not supported")

    alert = store.create(request.symbol, request.threshold_percent, request.timeframe_minutes)
    logger.info(
        f"Alert {alert.id} created: {alert.symbol} ±{alert.threshold_percent}% "
        f"within {alert.timeframe_minutes}m"
    )
    return alert.to_dict()


@router.get("")
async def list_alerts(
    active: Optional[bool] = Query(default=None, description="Filter by active status"),
    store: AlertStore = Depends(get_alert_store),
):
    return [a.to_dict() for a in store.list(active=active)]


@router.get("/{alert_id}")
async def get_alert(alert_id: int, store: AlertStore = Depends(get_alert_store)):
    alert = store.get(alert_id)
    if alert is None:
        raise NotFound(f"Alert not found: {alert_id}")
    return alert.to_dict()
