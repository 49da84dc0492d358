"""
Response schemas for the HTTP API.

Request bodies reuse the domain schemas (ContactCreate, ContactUpdate,
ReorderRequest, MoveRequest, LogOutcomeRequest).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from powerqueue.calls.block import BlockState, BlockSummary, CallBlockSession
from powerqueue.calls.ledger import LogResult
from powerqueue.calls.models import CallOutcome
from powerqueue.calls.stats import CallStats
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.queue.engine import QueueGroup, QueueItem
from powerqueue.queue.ordering import ReorderPlan
from powerqueue.shared.notifications import Notification, NotificationLevel


class WindowResponse(BaseModel):
    start: int
    end: int


class QueueItemResponse(BaseModel):
    contact: ContactRecord
    window: WindowResponse
    local_hour: int
    local_time: str
    in_window: bool
    score: float
    display_phone: str

    @classmethod
    def from_item(cls, item: QueueItem) -> "QueueItemResponse":
        return cls(
            contact=item.contact,
            window=WindowResponse(start=item.window.start, end=item.window.end),
            local_hour=item.local_hour,
            local_time=item.local_time_label,
            in_window=item.in_window,
            score=item.score,
            display_phone=item.display_phone,
        )


class QueueGroupResponse(BaseModel):
    key: str
    count: int
    items: list[QueueItemResponse]

    @classmethod
    def from_group(cls, group: QueueGroup) -> "QueueGroupResponse":
        return cls(
            key=group.key,
            count=len(group.items),
            items=[QueueItemResponse.from_item(i) for i in group.items],
        )


class QueueResponse(BaseModel):
    total: int
    sort: str
    group_by: str
    groups: list[QueueGroupResponse]


class ContactCreatedResponse(BaseModel):
    id: str


class DncResponse(BaseModel):
    id: str
    do_not_call: bool


class NotesRequest(BaseModel):
    notes: str = Field(default="", max_length=10_000)


class DeleteContactResponse(BaseModel):
    id: str
    call_logs_deleted: int


class ReorderResponse(BaseModel):
    id: str
    order_key: float
    rebalanced: bool
    writes: int

    @classmethod
    def from_plan(cls, plan: ReorderPlan) -> "ReorderResponse":
        return cls(
            id=plan.contact_id,
            order_key=plan.new_key,
            rebalanced=plan.rebalanced,
            writes=len(plan.updates),
        )


class DialNextResponse(BaseModel):
    contact_id: str | None = None
    name: str | None = None
    uri: str | None = None


class LogOutcomeResponse(BaseModel):
    id: str
    contact_id: str
    outcome: CallOutcome
    label: str
    timestamp: datetime
    flagged_dnc: bool
    flag_failed: bool

    @classmethod
    def from_result(cls, result: LogResult) -> "LogOutcomeResponse":
        return cls(
            id=result.entry_id,
            contact_id=result.contact_id,
            outcome=result.outcome,
            label=result.outcome.label,
            timestamp=result.timestamp,
            flagged_dnc=result.flagged_dnc,
            flag_failed=result.flag_failed,
        )


class StatsResponse(BaseModel):
    total: int
    no_answer: int
    left_voicemail: int
    conversations: int
    do_not_call: int
    conversation_rate: float
    conversation_rate_percent: int

    @classmethod
    def from_stats(cls, stats: CallStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            no_answer=stats.no_answer,
            left_voicemail=stats.left_voicemail,
            conversations=stats.conversations,
            do_not_call=stats.do_not_call,
            conversation_rate=stats.conversation_rate,
            conversation_rate_percent=stats.conversation_rate_percent,
        )


class BlockStatusResponse(BaseModel):
    state: BlockState
    started_at: datetime | None
    calls_logged: int
    elapsed_ms: int
    elapsed: str
    calls_per_hour: int

    @classmethod
    def from_session(cls, block: CallBlockSession) -> "BlockStatusResponse":
        return cls(
            state=block.state,
            started_at=block.started_at,
            calls_logged=block.calls_logged,
            elapsed_ms=block.elapsed_ms,
            elapsed=block.elapsed_label,
            calls_per_hour=block.calls_per_hour,
        )


class BlockSummaryResponse(BaseModel):
    calls_logged: int
    elapsed_ms: int
    calls_per_hour: int

    @classmethod
    def from_summary(cls, summary: BlockSummary) -> "BlockSummaryResponse":
        return cls(
            calls_logged=summary.calls_logged,
            elapsed_ms=summary.elapsed_ms,
            calls_per_hour=summary.calls_per_hour,
        )


class NotificationResponse(BaseModel):
    message: str
    level: NotificationLevel
    action: str | None
    created_at: datetime

    @classmethod
    def from_notification(cls, n: Notification) -> "NotificationResponse":
        return cls(message=n.message, level=n.level, action=n.action, created_at=n.created_at)
