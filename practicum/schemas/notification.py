from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from .base import CamelModel


class StreamType(str, Enum):
    ANNOUNCEMENT = "announcement"
    TEMPLATE = "template"
    COMMENT = "comment"
    REPORT_VIEW = "report_view"
    # instructor side
    REQUIREMENT = "requirement"
    REPORT = "report"


class NotifiableItem(BaseModel):
    """알림 대상 항목 (id + 생성 시각)"""
    id: str
    created_at: Optional[datetime] = None
    title: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class ReadState(CamelModel):
    """viewer/stream 별로 저장되는 읽음 상태 레코드"""
    read_ids: List[str] = Field(default_factory=list)
    last_checked_at: Optional[datetime] = None


class NotificationView(BaseModel):
    item: NotifiableItem
    unread: bool


class StreamStatus(BaseModel):
    stream: StreamType
    unread_count: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    items: List[NotificationView] = Field(default_factory=list)


class NotificationSummary(BaseModel):
    viewer_id: str
    streams: Dict[StreamType, StreamStatus] = Field(default_factory=dict)

    @computed_field
    @property
    def total_unread(self) -> int:
        return sum(status.unread_count for status in self.streams.values())

    @property
    def errors(self) -> Dict[StreamType, str]:
        return {stream: status.error for stream, status in self.streams.items() if status.error}
