"""
Pydantic schemas for the call ledger.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from powerqueue.calls.models import CallOutcome


class CallLogRecord(BaseModel):
    """Immutable call log snapshot."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    contact_id: str
    outcome: CallOutcome
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v


class LogOutcomeRequest(BaseModel):
    contact_id: str = Field(..., min_length=1)
    outcome: CallOutcome
