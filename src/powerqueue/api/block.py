"""
API router for the call block timer.
"""

from fastapi import APIRouter

from powerqueue.api.deps import DialerDep
from powerqueue.api.schemas import BlockStatusResponse, BlockSummaryResponse

router = APIRouter(prefix="/api/block", tags=["block"])


@router.get("", response_model=BlockStatusResponse)
async def block_status(dialer: DialerDep) -> BlockStatusResponse:
    return BlockStatusResponse.from_session(dialer.block)


@router.post("/start", response_model=BlockStatusResponse)
async def start_block(dialer: DialerDep) -> BlockStatusResponse:
    dialer.start_block()
    return BlockStatusResponse.from_session(dialer.block)


@router.post("/end", response_model=BlockSummaryResponse)
async def end_block(dialer: DialerDep) -> BlockSummaryResponse:
    return BlockSummaryResponse.from_summary(dialer.end_block())
