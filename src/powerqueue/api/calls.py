"""
API router for logging call outcomes and reading stats.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status

from powerqueue.api.deps import DialerDep
from powerqueue.api.schemas import LogOutcomeResponse, StatsResponse
from powerqueue.calls.schemas import LogOutcomeRequest

router = APIRouter(prefix="/api/calls", tags=["calls"])


@router.post("", response_model=LogOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def log_outcome(request: LogOutcomeRequest, dialer: DialerDep) -> LogOutcomeResponse:
    result = await dialer.log_outcome(request.contact_id, request.outcome)
    return LogOutcomeResponse.from_result(result)


@router.get("/stats", response_model=StatsResponse)
async def call_stats(
    dialer: DialerDep,
    contact_id: Annotated[str | None, Query()] = None,
) -> StatsResponse:
    return StatsResponse.from_stats(dialer.stats(contact_id))
