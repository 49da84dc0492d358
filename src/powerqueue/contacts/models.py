"""
SQLAlchemy models for contacts.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from powerqueue.shared.database import Base


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Contact(Base):
    """A lead tracked for outbound calling, partitioned by operator."""

    __tablename__ = "contacts"
    __table_args__ = (
        Index("ix_contacts_operator_order", "operator_id", "order_key"),
    )

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=_new_id,
    )
    operator_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    phone: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    organization: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    region: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
    )
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    do_not_call: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    order_key: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, phone={self.phone}, dnc={self.do_not_call})>"
