# app/schemas/alert.py
from pydantic import AliasChoices, Field
from datetime import datetime
from typing import Any, Optional
from app.schemas.base import ApiModel


class AlertCreate(ApiModel):
    # Field terminals have shipped all three spellings
    terminal_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("terminalId", "terminalID", "terminal_id"))
    sent_through: Optional[str] = None
    location: Optional[Any] = None      # JSON string or object


class AlertOut(ApiModel):
    id: str
    terminal_id: str
    alert_type: Optional[str]
    sent_through: str
    status: str
    location: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]


class AlertCreated(ApiModel):
    message: str
    alert: AlertOut


class AlertStatusAction(ApiModel):
    action: str                         # waitlist | dispatch


class AlertStatusChanged(ApiModel):
    message: str
    alert: AlertOut
