import logging
from datetime import datetime
from typing import Iterable, List, Optional

from practicum.core import events
from practicum.core.cache import QueryCache
from practicum.core.exceptions import InvalidStateError, ValidationError
from practicum.schemas.submission import (
    AssignRequest,
    DueDateRequest,
    ProgressSummary,
    ReportFields,
    RequirementComment,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from practicum.services.base_service import BaseService
from practicum.services.review import progress, workflow
from practicum.services.review.workflow import Action

logger = logging.getLogger(__name__)

COLLECTIONS = {
    SubmissionKind.REQUIREMENT: events.REQUIREMENTS,
    SubmissionKind.REPORT: events.REPORTS,
}


class ReviewService(BaseService):
    """Review workflow commands.

    Nothing is mutated locally: every command checks the authoritative status,
    calls the backend and, on success, publishes an invalidation so read-side
    caches re-fetch. A command that fails on an illegal status publishes the
    invalidation too, since the caller's view was stale.
    """

    def __init__(self, *args, cache: Optional[QueryCache] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.cache = cache or QueryCache(self.bus)

    async def _resync(self, kind: SubmissionKind, submission_id: Optional[str] = None) -> None:
        logger.info(f"Resyncing {kind.value} after invalid transition ({submission_id})")
        await self._invalidate(COLLECTIONS[kind], submission_id)

    async def _load(self, kind: SubmissionKind, submission_id: str) -> Submission:
        return await self.backend.get_submission(kind, submission_id)

    async def _guard(self, kind: SubmissionKind, submission: Submission, action: Action) -> None:
        try:
            workflow.ensure_transition(submission, action)
        except InvalidStateError:
            await self._resync(kind, submission.id)
            raise

    def _verify(self, submission: Submission) -> Submission:
        for problem in workflow.check_invariants(submission):
            logger.warning(f"Submission {submission.id}: {problem}")
        return submission

    async def _committed(self, kind: SubmissionKind, submission: Submission, verb: str) -> Submission:
        self._verify(submission)
        await self._invalidate(COLLECTIONS[kind], submission.id)
        logger.info(f"{kind.value} {submission.id} {verb} -> {submission.status.value}")
        return submission

    # --- read side -------------------------------------------------------

    async def list_submissions(
        self,
        kind: SubmissionKind,
        status: Optional[str] = None,
        student_id: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> List[Submission]:
        filters = {"status": status, "studentId": student_id, "templateId": template_id}
        return await self.cache.get_or_fetch(
            COLLECTIONS[kind],
            filters,
            lambda: self.backend.list_submissions(
                kind, status=status, student_id=student_id, template_id=template_id, include_pending=True
            ),
        )

    async def list_reviewable(self, kind: SubmissionKind, student_ids: Optional[Iterable[str]] = None) -> List[Submission]:
        submissions = await self.list_submissions(kind)
        if student_ids is not None:
            allowed = set(student_ids)
            submissions = [s for s in submissions if s.student_id in allowed]
        return progress.reviewable(submissions)

    async def find_assignment(self, kind: SubmissionKind, student_id: str, template_id: str) -> Optional[Submission]:
        """(student, template) 쌍에 대한 기존 제출물 조회 (캐시 미사용)"""
        submissions = await self.backend.list_submissions(
            kind, student_id=student_id, template_id=template_id, include_pending=True
        )
        for submission in submissions:
            if submission.template_id == template_id and submission.student_id == student_id and not submission.is_deleted:
                return submission
        return None

    async def completion(self, student_id: str) -> ProgressSummary:
        submissions = await self.list_submissions(SubmissionKind.REQUIREMENT, student_id=student_id)
        templates = await self.cache.get_or_fetch(
            events.REQUIREMENT_TEMPLATES,
            {"status": "active"},
            lambda: self.backend.list_templates(status="active"),
        )
        return progress.completion(student_id, submissions, templates)

    # --- commands --------------------------------------------------------

    async def approve(
        self,
        kind: SubmissionKind,
        submission_id: str,
        feedback: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> Submission:
        current = await self._load(kind, submission_id)
        await self._guard(kind, current, Action.APPROVE)
        try:
            updated = await self.backend.approve(kind, submission_id, feedback=feedback, rating=rating)
        except InvalidStateError:
            await self._resync(kind, submission_id)
            raise
        return await self._committed(kind, updated, "approved")

    async def reject(self, kind: SubmissionKind, submission_id: str, reason: Optional[str]) -> Submission:
        reason = workflow.validate_reason(reason)
        current = await self._load(kind, submission_id)
        await self._guard(kind, current, Action.REJECT)
        try:
            updated = await self.backend.reject(kind, submission_id, reason)
        except InvalidStateError:
            await self._resync(kind, submission_id)
            raise
        return await self._committed(kind, updated, "rejected")

    async def assign_from_template(self, kind: SubmissionKind, request: AssignRequest) -> Submission:
        if not request.template_id or not request.student_id:
            raise ValidationError("templateId and studentId are required", code="ASSIGNMENT_FIELDS_REQUIRED")

        existing = await self.find_assignment(kind, request.student_id, request.template_id)
        if existing is not None:
            if existing.status is SubmissionStatus.PENDING:
                return existing
            await self._resync(kind, existing.id)
            raise InvalidStateError(
                f"Template {request.template_id} is already {existing.status.value} for student {request.student_id}"
            )

        created = await self.backend.create_from_template(kind, request)
        return await self._committed(kind, created, "assigned")

    async def set_due_date(self, kind: SubmissionKind, submission_id: str, due_date: Optional[datetime]) -> Submission:
        current = await self._load(kind, submission_id)
        if current.is_deleted:
            raise InvalidStateError(f"Submission {submission_id} has been deleted")
        updated = await self.backend.update_due_date(kind, submission_id, due_date)
        return await self._committed(kind, updated, "rescheduled")

    async def ensure_assigned_then_set_due_date(self, kind: SubmissionKind, request: DueDateRequest) -> Submission:
        """Set a due date, assigning the template first when nothing exists yet.

        Creation carries the due date in the same backend call, so the caller
        either sees a new submission with its date or nothing at all.
        """
        if request.submission_id:
            return await self.set_due_date(kind, request.submission_id, request.due_date)
        if not request.template_id or not request.student_id:
            raise ValidationError("templateId and studentId are required", code="ASSIGNMENT_FIELDS_REQUIRED")

        existing = await self.find_assignment(kind, request.student_id, request.template_id)
        if existing is not None:
            return await self.set_due_date(kind, existing.id, request.due_date)

        assignment = AssignRequest(
            template_id=request.template_id,
            student_id=request.student_id,
            due_date=request.due_date,
        )
        try:
            created = await self.backend.create_from_template(kind, assignment)
        except InvalidStateError:
            # someone else assigned it in the meantime
            existing = await self.find_assignment(kind, request.student_id, request.template_id)
            if existing is None:
                raise
            return await self.set_due_date(kind, existing.id, request.due_date)
        return await self._committed(kind, created, "assigned with due date")

    async def list_comments(self, requirement_id: str) -> List[RequirementComment]:
        return await self.cache.get_or_fetch(
            events.REQUIREMENT_COMMENTS,
            {"requirementId": requirement_id},
            lambda: self.backend.list_requirement_comments(requirement_id),
        )

    async def add_comment(self, requirement_id: str, content: str, is_private: bool = False) -> RequirementComment:
        if not content or not content.strip():
            raise ValidationError("Comment content is required", code="COMMENT_REQUIRED")
        comment = await self.backend.create_requirement_comment(requirement_id, content.strip(), is_private=is_private)
        await self._invalidate(events.REQUIREMENT_COMMENTS, requirement_id)
        logger.info(f"Comment {comment.id} added to requirement {requirement_id}")
        return comment

    async def upload(
        self,
        kind: SubmissionKind,
        submission_id: str,
        file_path: Optional[str] = None,
        fields: Optional[ReportFields] = None,
        content_type: str = "application/octet-stream",
    ) -> Submission:
        if kind is SubmissionKind.REQUIREMENT and not file_path:
            raise ValidationError("A file is required to submit a requirement", code="FILE_REQUIRED")
        current = await self._load(kind, submission_id)
        try:
            action = workflow.upload_action(current)
        except InvalidStateError:
            await self._resync(kind, submission_id)
            raise
        updated = await self.backend.submit(kind, submission_id, file_path=file_path, fields=fields, content_type=content_type)
        return await self._committed(kind, updated, action.value)
