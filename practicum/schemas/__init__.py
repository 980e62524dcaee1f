from .base import CamelModel, TimeStampedBase
from .submission import (
    SubmissionKind,
    SubmissionStatus,
    FileMetadata,
    Submission,
    ApproveRequest,
    RejectRequest,
    AssignRequest,
    DueDateRequest,
    ReportFields,
    RequirementTemplate,
    RequirementComment,
    CommentRequest,
    ProgressSummary,
)
from .notification import (
    StreamType,
    NotifiableItem,
    ReadState,
    NotificationView,
    StreamStatus,
    NotificationSummary,
)

__all__ = [
    "CamelModel",
    "TimeStampedBase",
    "SubmissionKind",
    "SubmissionStatus",
    "FileMetadata",
    "Submission",
    "ApproveRequest",
    "RejectRequest",
    "AssignRequest",
    "DueDateRequest",
    "ReportFields",
    "RequirementTemplate",
    "RequirementComment",
    "CommentRequest",
    "ProgressSummary",
    "StreamType",
    "NotifiableItem",
    "ReadState",
    "NotificationView",
    "StreamStatus",
    "NotificationSummary",
]
