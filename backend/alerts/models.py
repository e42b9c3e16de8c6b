"""
Alert Models
Data structures for threshold alerts and the events they emit.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from core.models import CamelModel, to_utc


class AlertStatus(str, Enum):
    """
    Alert lifecycle.

    pending → triggered
    pending → expired
    Both targets are terminal.
    """
    PENDING = "pending"
    TRIGGERED = "triggered"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not AlertStatus.PENDING


class Alert(CamelModel):
    """
    A one-shot percentage-move alert.

    Example:
        "Alert me when WIF moves 5% within 60 minutes"

    Invariants:
        active is True  ⇔ status is pending
        triggered_at is set ⇔ status is triggered
    """
    id: int
    symbol: str
    threshold_percent: float = Field(..., gt=0)
    timeframe_minutes: int = Field(..., ge=1)
    active: bool = True
    status: AlertStatus = AlertStatus.PENDING
    created_at: datetime
    updated_at: datetime
    triggered_at: Optional[datetime] = None

    @field_validator('created_at', 'updated_at', 'triggered_at', mode='after')
    @classmethod
    def normalize_utc(cls, v):
        return to_utc(v) if v is not None else v

    @model_validator(mode='after')
    def check_state(self):
        if self.active != (self.status is AlertStatus.PENDING):
            raise ValueError(f"active={self.active} inconsistent with status={self.status.value}")
        if (self.triggered_at is not None) != (self.status is AlertStatus.TRIGGERED):
            raise ValueError(f"triggered_at inconsistent with status={self.status.value}")
        return self


class CreateAlertRequest(CamelModel):
    """Request body for creating an alert"""
    symbol: str = Field(..., min_length=1)
    threshold_percent: float = Field(..., gt=0)
    timeframe_minutes: int = Field(..., ge=1)

    @field_validator('symbol', mode='before')
    @classmethod
    def uppercase_symbol(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class EvaluationFailure(CamelModel):
    alert_id: int
    error: str


class EvaluationResult(CamelModel):
    """Outcome of one evaluation pass for one symbol"""
    symbol: str
    triggered: List[int] = Field(default_factory=list)
    expired: List[int] = Field(default_factory=list)
    skipped: List[int] = Field(default_factory=list)
    failures: List[EvaluationFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def alert_event_payload(
    alert: Alert,
    percent_change: float,
    start_price: float,
    current_price: float,
    timestamp: datetime,
) -> Dict[str, Any]:
    """Payload of the `alert` push event"""
    return {
        "id": alert.id,
        "symbol": alert.symbol,
        "priceChange": f"{percent_change:.2f}",
        "timeframe": alert.timeframe_minutes,
        "threshold": alert.threshold_percent,
        "startPrice": start_price,
        "currentPrice": current_price,
        "timestamp": to_utc(timestamp).isoformat(),
        "status": AlertStatus.TRIGGERED.value,
    }
