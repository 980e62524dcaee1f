"""Submission review state machine.

States: pending -> submitted -> approved | rejected, with approved/rejected
returning to submitted on re-upload. ``in-progress`` is reviewable like
``submitted``. Everything here is pure: functions inspect a Submission and
either raise or return a new copy, they never mutate their input.

    | action               | actor      | from                   | to        |
    |----------------------|------------|------------------------|-----------|
    | assign-from-template | instructor | (none) / pending       | pending   |
    | upload               | student    | pending                | submitted |
    | approve              | instructor | submitted, in-progress | approved  |
    | reject               | instructor | submitted, in-progress | rejected  |
    | re-upload            | student    | approved, rejected     | submitted |
"""

from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, NamedTuple, Optional

from practicum.core.exceptions import InvalidStateError, ValidationError
from practicum.schemas.submission import FileMetadata, Submission, SubmissionStatus
from practicum.utils.time import utcnow


class Action(str, Enum):
    ASSIGN = "assign-from-template"
    UPLOAD = "upload"
    APPROVE = "approve"
    REJECT = "reject"
    REUPLOAD = "re-upload"


class Actor(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"


class Transition(NamedTuple):
    actor: Actor
    sources: FrozenSet[SubmissionStatus]
    target: SubmissionStatus


REVIEWABLE = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.IN_PROGRESS})
RESUBMITTABLE = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})

TRANSITIONS = {
    Action.ASSIGN: Transition(Actor.INSTRUCTOR, frozenset({SubmissionStatus.PENDING}), SubmissionStatus.PENDING),
    Action.UPLOAD: Transition(Actor.STUDENT, frozenset({SubmissionStatus.PENDING}), SubmissionStatus.SUBMITTED),
    Action.APPROVE: Transition(Actor.INSTRUCTOR, REVIEWABLE, SubmissionStatus.APPROVED),
    Action.REJECT: Transition(Actor.INSTRUCTOR, REVIEWABLE, SubmissionStatus.REJECTED),
    Action.REUPLOAD: Transition(Actor.STUDENT, RESUBMITTABLE, SubmissionStatus.SUBMITTED),
}


def is_reviewable(submission: Submission) -> bool:
    return submission.status in REVIEWABLE and not submission.is_deleted


def can_apply(submission: Submission, action: Action, actor: Optional[Actor] = None) -> bool:
    transition = TRANSITIONS[action]
    if actor is not None and actor != transition.actor:
        return False
    if submission.is_deleted:
        return False
    return submission.status in transition.sources


def available_actions(submission: Submission, actor: Actor) -> List[Action]:
    """UI gating: actions the given actor may start from the current status"""
    return [
        action for action in TRANSITIONS
        if action is not Action.ASSIGN and can_apply(submission, action, actor)
    ]


def ensure_transition(submission: Submission, action: Action) -> Transition:
    transition = TRANSITIONS[action]
    if submission.is_deleted:
        raise InvalidStateError(f"Submission {submission.id} has been deleted")
    if submission.status not in transition.sources:
        allowed = ", ".join(sorted(s.value for s in transition.sources))
        raise InvalidStateError(
            f"Cannot {action.value} submission {submission.id} in status "
            f"'{submission.status.value}' (allowed from: {allowed})"
        )
    return transition


def validate_reason(reason: Optional[str]) -> str:
    if reason is None or not reason.strip():
        raise ValidationError("A rejection reason is required", code="REASON_REQUIRED")
    return reason.strip()


def upload_action(submission: Submission) -> Action:
    """pending 이면 최초 업로드, approved/rejected 이면 재업로드"""
    action = Action.REUPLOAD if submission.status in RESUBMITTABLE else Action.UPLOAD
    ensure_transition(submission, action)
    return action


def assign(
    submission_id: str,
    student_id: str,
    template_id: str,
    due_date: Optional[datetime] = None,
    title: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Submission:
    now = now or utcnow()
    return Submission(
        id=submission_id,
        student_id=student_id,
        template_id=template_id,
        title=title,
        status=SubmissionStatus.PENDING,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )


def apply_transition(
    submission: Submission,
    action: Action,
    *,
    feedback: Optional[str] = None,
    rating: Optional[int] = None,
    file: Optional[FileMetadata] = None,
    reviewer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Submission:
    """Return a copy of ``submission`` with ``action`` applied.

    Raises InvalidStateError / ValidationError without touching the input.
    """
    if action is Action.REJECT:
        feedback = validate_reason(feedback)
    transition = ensure_transition(submission, action)
    now = now or utcnow()
    update = {"status": transition.target, "updated_at": now}

    if action is Action.APPROVE:
        note = feedback.strip() if feedback and feedback.strip() else None
        update.update(approved_date=now, approved_by=reviewer_id, feedback=note, rating=rating)
    elif action is Action.REJECT:
        update.update(approved_date=None, approved_by=None, feedback=feedback)
    elif action in (Action.UPLOAD, Action.REUPLOAD):
        update.update(submitted_date=now, approved_date=None, approved_by=None)
        if file is not None:
            update.update(file_url=file.file_url, file_name=file.file_name, file_size=file.file_size)

    return submission.model_copy(update=update)


def check_invariants(submission: Submission) -> List[str]:
    """approvedDate <=> approved, rejected => feedback"""
    problems = []
    approved = submission.status is SubmissionStatus.APPROVED
    if approved and submission.approved_date is None:
        problems.append("approved submission has no approvedDate")
    if not approved and submission.approved_date is not None:
        problems.append(f"{submission.status.value} submission carries an approvedDate")
    if submission.status is SubmissionStatus.REJECTED and not (submission.feedback or "").strip():
        problems.append("rejected submission has no feedback")
    return problems
