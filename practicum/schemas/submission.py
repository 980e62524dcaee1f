from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, computed_field, field_validator

from .base import CamelModel, TimeStampedBase


class SubmissionKind(str, Enum):
    REQUIREMENT = "requirement"
    REPORT = "report"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    IN_PROGRESS = "in-progress"
    APPROVED = "approved"
    REJECTED = "rejected"


# reports use "draft" for what requirements call "pending"
STATUS_ALIASES = {
    "draft": SubmissionStatus.PENDING,
    "in_progress": SubmissionStatus.IN_PROGRESS,
}


class FileMetadata(CamelModel):
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class Submission(TimeStampedBase):
    """Requirement 또는 Report 제출물"""
    id: str
    student_id: str
    template_id: Optional[str] = None
    practicum_id: Optional[str] = None
    title: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    due_date: Optional[datetime] = None
    submitted_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    deleted_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return STATUS_ALIASES.get(value, value)
        return value

    @property
    def owner_id(self) -> str:
        return self.student_id

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def file(self) -> FileMetadata:
        return FileMetadata(file_url=self.file_url, file_name=self.file_name, file_size=self.file_size)


class ApproveRequest(CamelModel):
    feedback: Optional[str] = None
    rating: Optional[int] = None


class RejectRequest(CamelModel):
    reason: str


class AssignRequest(CamelModel):
    template_id: str
    student_id: str
    practicum_id: Optional[str] = None
    due_date: Optional[datetime] = None


class DueDateRequest(CamelModel):
    """due date 설정 요청 (submission_id 가 없으면 템플릿에서 먼저 배정)"""
    student_id: str
    template_id: Optional[str] = None
    submission_id: Optional[str] = None
    due_date: Optional[datetime] = None


class ReportFields(CamelModel):
    """report 제출 시 함께 보내는 선택 필드"""
    title: Optional[str] = None
    content: Optional[str] = None
    week_number: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    hours_logged: Optional[float] = None
    activities: Optional[str] = None
    learnings: Optional[str] = None
    challenges: Optional[str] = None


class RequirementTemplate(TimeStampedBase):
    id: str
    title: Optional[str] = None
    is_active: bool = True


class RequirementComment(TimeStampedBase):
    id: str
    requirement_id: str
    user_id: Optional[str] = None
    content: str = ""
    is_private: bool = False


class CommentRequest(CamelModel):
    content: str
    is_private: bool = False


class ProgressSummary(BaseModel):
    student_id: str
    approved: int
    total: int

    @computed_field
    @property
    def ratio(self) -> float:
        return self.approved / self.total if self.total else 0.0
