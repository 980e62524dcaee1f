from fastapi import APIRouter, Depends
import logging

from practicum.core.exceptions import PracticumError
from practicum.dependencies import get_notification_center
from practicum.routers.errors import to_http_exception
from practicum.schemas.notification import NotificationSummary, StreamStatus, StreamType
from practicum.services.notification.center import NotificationCenter

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/notifications",
    tags=["notifications"]
)

@router.get("/{viewer_id}", response_model=NotificationSummary)
async def get_summary(center: NotificationCenter = Depends(get_notification_center)):
    """전체 stream 새로고침 후 unread 합계 반환"""
    return await center.refresh_all()

@router.get("/{viewer_id}/{stream}", response_model=StreamStatus)
async def get_stream(stream: StreamType, center: NotificationCenter = Depends(get_notification_center)):
    try:
        return await center.refresh(stream)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{viewer_id}/{stream}/read/{item_id}", response_model=StreamStatus)
async def mark_as_read(
    stream: StreamType,
    item_id: str,
    center: NotificationCenter = Depends(get_notification_center)
):
    try:
        return await center.mark_as_read(stream, item_id)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{viewer_id}/{stream}/read-all", response_model=StreamStatus)
async def mark_all_as_read(stream: StreamType, center: NotificationCenter = Depends(get_notification_center)):
    try:
        return await center.mark_all_as_read(stream)
    except PracticumError as e:
        raise to_http_exception(e)
