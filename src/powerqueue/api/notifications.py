"""
API router exposing the operator's recent notifications.
"""

from fastapi import APIRouter

from powerqueue.api.deps import DialerDep
from powerqueue.api.schemas import NotificationResponse

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def recent_notifications(dialer: DialerDep) -> list[NotificationResponse]:
    """Newest last."""
    return [NotificationResponse.from_notification(n) for n in dialer.notifications.recent]
