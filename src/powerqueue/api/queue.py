"""
API router for the call queue.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from powerqueue.api.deps import DialerDep
from powerqueue.api.schemas import DialNextResponse, QueueGroupResponse, QueueResponse
from powerqueue.queue.engine import GroupBy, SortMode

router = APIRouter(prefix="/api/queue", tags=["queue"])


@router.get(
    "",
    response_model=QueueResponse,
    summary="Current call queue",
    description="Supplied filters replace the operator's current ones and persist.",
)
async def get_queue(
    dialer: DialerDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    region: Annotated[str | None, Query(max_length=2)] = None,
    hide_dnc: Annotated[bool | None, Query()] = None,
    in_window_only: Annotated[bool | None, Query()] = None,
    sort: Annotated[SortMode | None, Query()] = None,
    group_by: Annotated[GroupBy | None, Query()] = None,
) -> QueueResponse:
    changes = {
        "search": search,
        "hide_dnc": hide_dnc,
        "in_window_only": in_window_only,
        "sort": sort,
        "group_by": group_by,
    }
    if region is not None:
        changes["region"] = region
    filters = dialer.set_filters(**{k: v for k, v in changes.items() if v is not None or k == "region"})
    groups = dialer.grouped_queue()
    return QueueResponse(
        total=sum(len(g.items) for g in groups),
        sort=filters.sort.value,
        group_by=filters.group_by.value,
        groups=[QueueGroupResponse.from_group(g) for g in groups],
    )


@router.post("/dial-next", response_model=DialNextResponse)
async def dial_next(dialer: DialerDep) -> DialNextResponse:
    """Dial URI for the head of the queue; empty response when the queue is empty."""
    target = dialer.dial_next()
    if target is None:
        return DialNextResponse()
    return DialNextResponse(contact_id=target.contact.id, name=target.contact.name, uri=target.uri)
