"""
API router for the Leads listing and contact mutations.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status

from powerqueue.api.deps import DialerDep
from powerqueue.api.schemas import (
    ContactCreatedResponse,
    DeleteContactResponse,
    DncResponse,
    NotesRequest,
    QueueGroupResponse,
    QueueResponse,
    ReorderResponse,
)
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.contacts.schemas import ContactCreate, ContactUpdate, MoveRequest, ReorderRequest
from powerqueue.queue.engine import GroupBy, SortMode

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.get(
    "",
    response_model=QueueResponse,
    summary="List all leads",
    description="Every contact in manual order, DNC and off-window included.",
)
async def list_leads(
    dialer: DialerDep,
    group_by: Annotated[GroupBy, Query()] = GroupBy.NONE,
    search: Annotated[str, Query(max_length=200)] = "",
) -> QueueResponse:
    groups = dialer.leads(group_by=group_by, search=search)
    return QueueResponse(
        total=sum(len(g.items) for g in groups),
        sort=SortMode.MANUAL.value,
        group_by=group_by.value,
        groups=[QueueGroupResponse.from_group(g) for g in groups],
    )


@router.post(
    "",
    response_model=ContactCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a lead",
)
async def create_contact(request: ContactCreate, dialer: DialerDep) -> ContactCreatedResponse:
    contact_id = await dialer.add_contact(request)
    return ContactCreatedResponse(id=contact_id)


@router.patch("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_contact(contact_id: str, request: ContactUpdate, dialer: DialerDep) -> None:
    await dialer.update_contact(contact_id, request)


@router.put("/{contact_id}/notes", status_code=status.HTTP_204_NO_CONTENT)
async def update_notes(contact_id: str, request: NotesRequest, dialer: DialerDep) -> None:
    await dialer.update_notes(contact_id, request.notes)


@router.post("/{contact_id}/dnc", response_model=DncResponse)
async def toggle_dnc(contact_id: str, dialer: DialerDep) -> DncResponse:
    value = await dialer.toggle_dnc(contact_id)
    return DncResponse(id=contact_id, do_not_call=value)


@router.delete(
    "/{contact_id}",
    response_model=DeleteContactResponse,
    summary="Delete a lead and its call history",
)
async def delete_contact(contact_id: str, dialer: DialerDep) -> DeleteContactResponse:
    removed = await dialer.delete_contact(contact_id)
    return DeleteContactResponse(id=contact_id, call_logs_deleted=removed)


@router.post("/{contact_id}/reorder", response_model=ReorderResponse)
async def reorder_contact(
    contact_id: str,
    request: ReorderRequest,
    dialer: DialerDep,
) -> ReorderResponse:
    """Place a contact between the neighbor keys around its drop position."""
    plan = await dialer.reorder(contact_id, request.prev_key, request.next_key)
    return ReorderResponse.from_plan(plan)


@router.post("/{contact_id}/move", response_model=ReorderResponse)
async def move_contact(contact_id: str, request: MoveRequest, dialer: DialerDep) -> ReorderResponse:
    plan = await dialer.move(contact_id, request.new_index)
    return ReorderResponse.from_plan(plan)


@router.get("/{contact_id}/calls", response_model=list[CallLogRecord])
async def contact_history(contact_id: str, dialer: DialerDep) -> list[CallLogRecord]:
    return await dialer.history(contact_id)
