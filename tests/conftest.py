import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from practicum.core.cache import QueryCache
from practicum.core.events import InvalidationBus
from practicum.core.exceptions import InvalidStateError, NetworkError, NotFoundError
from practicum.core.store import MemoryKeyValueStore
from practicum.schemas.submission import (
    AssignRequest,
    FileMetadata,
    RequirementComment,
    RequirementTemplate,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from practicum.services.review import workflow
from practicum.services.review.review_service import ReviewService
from practicum.services.review.workflow import Action

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


class FakeBackend:
    """In-memory stand-in for the REST backend; enforces the same transitions."""

    def __init__(self):
        self.submissions: Dict[Tuple[SubmissionKind, str], Submission] = {}
        self.templates: List[RequirementTemplate] = []
        self.calls: List[Tuple[str, tuple]] = []
        self.failures: Dict[str, Exception] = {}
        self.announcements: List[dict] = []
        self.template_items: List[dict] = []
        self.comments: List[dict] = []
        self.report_views: List[dict] = []
        self.submitted: Dict[SubmissionKind, List[dict]] = {SubmissionKind.REQUIREMENT: [], SubmissionKind.REPORT: []}
        self.students_by_teacher: Dict[str, List[str]] = {}
        self.requirement_comments: Dict[str, List[RequirementComment]] = {}
        self._ids = itertools.count(1)

    def add(self, kind: SubmissionKind, **fields) -> Submission:
        fields.setdefault("id", f"sub-{next(self._ids)}")
        fields.setdefault("student_id", "student-1")
        submission = Submission(**fields)
        self.submissions[(kind, submission.id)] = submission
        return submission

    def _record(self, name: str, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def mutations(self) -> List[str]:
        return [name for name, _ in self.calls if not name.startswith(("get_", "list_"))]

    def _get(self, kind, submission_id) -> Submission:
        try:
            return self.submissions[(kind, submission_id)]
        except KeyError:
            raise NotFoundError(f"{kind.value} {submission_id} not found")

    async def get_submission(self, kind, submission_id):
        self._record("get_submission", kind, submission_id)
        return self._get(kind, submission_id)

    async def list_submissions(self, kind, *, status=None, student_id=None, template_id=None, page=1, limit=None, include_pending=False):
        self._record("list_submissions", kind, status, student_id, template_id)
        result = [s for (k, _), s in self.submissions.items() if k is kind]
        if status:
            result = [s for s in result if s.status.value == status]
        if student_id:
            result = [s for s in result if s.student_id == student_id]
        if template_id:
            result = [s for s in result if s.template_id == template_id]
        return result

    async def approve(self, kind, submission_id, feedback=None, rating=None):
        self._record("approve", kind, submission_id, feedback)
        updated = workflow.apply_transition(self._get(kind, submission_id), Action.APPROVE, feedback=feedback, rating=rating)
        self.submissions[(kind, submission_id)] = updated
        return updated

    async def reject(self, kind, submission_id, reason):
        self._record("reject", kind, submission_id, reason)
        updated = workflow.apply_transition(self._get(kind, submission_id), Action.REJECT, feedback=reason)
        self.submissions[(kind, submission_id)] = updated
        return updated

    async def create_from_template(self, kind, request: AssignRequest):
        self._record("create_from_template", kind, request.student_id, request.template_id, request.due_date)
        for (k, _), s in self.submissions.items():
            if k is kind and s.student_id == request.student_id and s.template_id == request.template_id:
                raise InvalidStateError("Requirement already exists for this template")
        created = workflow.assign(f"sub-{next(self._ids)}", request.student_id, request.template_id, request.due_date)
        self.submissions[(kind, created.id)] = created
        return created

    async def update_due_date(self, kind, submission_id, due_date):
        self._record("update_due_date", kind, submission_id, due_date)
        updated = self._get(kind, submission_id).model_copy(update={"due_date": due_date})
        self.submissions[(kind, submission_id)] = updated
        return updated

    async def submit(self, kind, submission_id, file_path=None, fields=None, content_type="application/octet-stream"):
        self._record("submit", kind, submission_id, file_path)
        current = self._get(kind, submission_id)
        action = workflow.upload_action(current)
        file = FileMetadata(file_url=f"/uploads/{file_path}", file_name=file_path, file_size=10) if file_path else None
        updated = workflow.apply_transition(current, action, file=file)
        self.submissions[(kind, submission_id)] = updated
        return updated

    async def list_templates(self, status="active"):
        self._record("list_templates", status)
        return [t for t in self.templates if t.is_active]

    async def list_requirement_comments(self, requirement_id):
        self._record("list_requirement_comments", requirement_id)
        return list(self.requirement_comments.get(requirement_id, []))

    async def create_requirement_comment(self, requirement_id, content, is_private=False):
        self._record("create_requirement_comment", requirement_id, content)
        comment = RequirementComment(
            id=f"c-{next(self._ids)}", requirement_id=requirement_id, content=content, is_private=is_private
        )
        self.requirement_comments.setdefault(requirement_id, []).append(comment)
        return comment

    async def list_announcements(self, user_id, limit=None):
        self._record("list_announcements", user_id)
        return list(self.announcements)

    async def list_template_items(self):
        self._record("list_template_items")
        return list(self.template_items)

    async def list_student_comments(self, student_id, last_check_time=None):
        self._record("list_student_comments", student_id, last_check_time)
        return list(self.comments)

    async def list_report_views(self, student_id, last_check_time=None):
        self._record("list_report_views", student_id, last_check_time)
        return list(self.report_views)

    async def list_submitted_raw(self, kind):
        self._record("list_submitted_raw", kind)
        return list(self.submitted[kind])

    async def list_student_ids_by_teacher(self, instructor_id):
        self._record("list_student_ids_by_teacher", instructor_id)
        return list(self.students_by_teacher.get(instructor_id, []))


class RecordingBus(InvalidationBus):
    def __init__(self):
        super().__init__()
        self.published: List[Tuple[str, Optional[str]]] = []

    async def publish(self, collection, entity_id=None):
        self.published.append((collection, entity_id))
        await super().publish(collection, entity_id)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def review_service(backend, bus):
    return ReviewService(backend, bus, cache=QueryCache(bus))


@pytest.fixture
def offline_error():
    return NetworkError("Backend unavailable: connection refused")


@pytest.fixture
def submitted(backend):
    return backend.add(
        SubmissionKind.REQUIREMENT,
        id="req-1",
        template_id="tpl-1",
        status=SubmissionStatus.SUBMITTED,
        submitted_date=T0,
    )
