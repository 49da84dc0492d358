"""
SQLAlchemy models for the call ledger.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from powerqueue.shared.database import Base


class CallOutcome(str, Enum):
    """Outcome recorded for a single dial attempt."""

    NO_ANSWER = "no_answer"
    LEFT_VOICEMAIL = "left_voicemail"
    CONVERSATION = "conversation"
    DO_NOT_CALL = "do_not_call"

    @property
    def label(self) -> str:
        return _OUTCOME_LABELS[self]


_OUTCOME_LABELS = {
    CallOutcome.NO_ANSWER: "No answer",
    CallOutcome.LEFT_VOICEMAIL: "Left VM",
    CallOutcome.CONVERSATION: "Conversation",
    CallOutcome.DO_NOT_CALL: "DNC",
}


class CallLogEntry(Base):
    """Append-only call log row. Never updated; deleted only with its contact."""

    __tablename__ = "call_logs"

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=lambda: uuid4().hex,
    )
    operator_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    outcome: Mapped[CallOutcome] = mapped_column(
        SQLEnum(CallOutcome, name="call_outcome"),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<CallLogEntry(id={self.id}, contact={self.contact_id}, outcome={self.outcome})>"
