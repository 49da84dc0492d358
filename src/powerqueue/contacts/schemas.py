"""
Pydantic schemas for contacts.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from powerqueue.contacts.phone import normalize_phone


def _strip(v: object) -> object:
    return v.strip() if isinstance(v, str) else v


def _as_utc(v: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; timestamps are always stored in UTC.
    return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v


class ContactCreate(BaseModel):
    """Schema for the add-lead form."""

    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Any human-entered format; stored normalized",
    )
    organization: str = Field(..., min_length=1, max_length=255)
    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Role title; drives the call window",
    )
    email: EmailStr | None = Field(default=None)
    region: str | None = Field(
        default=None,
        description="Two-letter region code, e.g. CA",
    )
    timezone: str | None = Field(
        default=None,
        description="IANA zone; derived from region when absent",
    )
    notes: str = Field(default="")

    @field_validator("name", "organization", "title", "notes", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)

    @field_validator("email", "timezone", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        v = _strip(v)
        return v or None

    @field_validator("phone")
    @classmethod
    def normalize(cls, v: str) -> str:
        normalized = normalize_phone(v)
        if not normalized:
            raise ValueError("Phone number must contain digits")
        return normalized

    @field_validator("region", mode="before")
    @classmethod
    def validate_region(cls, v: object) -> object:
        v = _strip(v)
        if not v:
            return None
        if not isinstance(v, str) or len(v) != 2 or not v.isalpha():
            raise ValueError("Region must be a two-letter code")
        return v.upper()


_REQUIRED_ON_RECORD = ("name", "phone", "organization", "title")


class ContactUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    email: EmailStr | None = None
    organization: str | None = Field(default=None, min_length=1, max_length=255)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    region: str | None = None
    timezone: str | None = None
    notes: str | None = None

    @field_validator("name", "organization", "title", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)

    @field_validator("phone")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        if v is None:
            return None
        normalized = normalize_phone(v)
        if not normalized:
            raise ValueError("Phone number must contain digits")
        return normalized

    @field_validator("region", mode="before")
    @classmethod
    def validate_region(cls, v: object) -> object:
        v = _strip(v)
        if not v:
            return None
        if not isinstance(v, str) or len(v) != 2 or not v.isalpha():
            raise ValueError("Region must be a two-letter code")
        return v.upper()

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "ContactUpdate":
        cleared = sorted(f for f in _REQUIRED_ON_RECORD if f in self.model_fields_set and getattr(self, f) is None)
        if cleared:
            raise ValueError(f"Cannot clear required field(s): {', '.join(cleared)}")
        return self

    def changes(self) -> dict[str, object]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class ContactRecord(BaseModel):
    """Immutable contact snapshot as delivered by the document store."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    phone: str
    email: str = ""
    organization: str = ""
    title: str = ""
    region: str | None = None
    timezone: str
    do_not_call: bool = False
    notes: str = ""
    order_key: float
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class ReorderRequest(BaseModel):
    """Neighbor keys around the drop position (None at either end)."""

    prev_key: float | None = None
    next_key: float | None = None


class MoveRequest(BaseModel):
    new_index: int = Field(..., ge=0)
