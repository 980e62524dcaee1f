import pytest

from conftest import T0, at
from practicum.core import events
from practicum.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from practicum.schemas.submission import (
    AssignRequest,
    DueDateRequest,
    SubmissionKind,
    SubmissionStatus,
)
from practicum.services.review import workflow

REQ = SubmissionKind.REQUIREMENT


async def test_reject_with_empty_reason_is_validation_error(review_service, backend, submitted):
    with pytest.raises(ValidationError):
        await review_service.reject(REQ, submitted.id, "")
    assert backend.submissions[(REQ, submitted.id)].status is SubmissionStatus.SUBMITTED
    assert backend.mutations() == []


async def test_reject_with_reason(review_service, backend, bus, submitted):
    rejected = await review_service.reject(REQ, submitted.id, "Missing signature")
    assert rejected.status is SubmissionStatus.REJECTED
    assert rejected.feedback == "Missing signature"
    assert rejected.approved_date is None
    assert (events.REQUIREMENTS, submitted.id) in bus.published


async def test_approve_already_approved_fails_and_resyncs(review_service, backend, bus):
    approved = backend.add(REQ, id="req-2", status=SubmissionStatus.APPROVED, approved_date=T0)
    with pytest.raises(InvalidStateError):
        await review_service.approve(REQ, approved.id)
    assert backend.submissions[(REQ, "req-2")] == approved
    assert "approve" not in backend.mutations()
    assert bus.published == [(events.REQUIREMENTS, "req-2")]


async def test_server_side_conflict_resyncs(review_service, backend, bus, submitted):
    backend.failures["approve"] = InvalidStateError("Requirement already reviewed")
    with pytest.raises(InvalidStateError):
        await review_service.approve(REQ, submitted.id)
    assert bus.published == [(events.REQUIREMENTS, submitted.id)]


async def test_approve_report_with_rating(review_service, backend):
    report = backend.add(SubmissionKind.REPORT, id="rep-1", status=SubmissionStatus.IN_PROGRESS)
    approved = await review_service.approve(SubmissionKind.REPORT, report.id, feedback="Nice", rating=5)
    assert approved.status is SubmissionStatus.APPROVED
    assert approved.rating == 5
    assert workflow.check_invariants(approved) == []


async def test_approve_missing_submission(review_service):
    with pytest.raises(NotFoundError):
        await review_service.approve(REQ, "nope")


async def test_mutation_invalidates_cached_lists(review_service, backend, submitted):
    first = await review_service.list_submissions(REQ)
    assert [s.status for s in first] == [SubmissionStatus.SUBMITTED]
    await review_service.list_submissions(REQ)
    assert [name for name, _ in backend.calls].count("list_submissions") == 1

    await review_service.approve(REQ, submitted.id)
    refreshed = await review_service.list_submissions(REQ)
    assert [s.status for s in refreshed] == [SubmissionStatus.APPROVED]
    assert [name for name, _ in backend.calls].count("list_submissions") == 2


async def test_list_reviewable_filters_students(review_service, backend, submitted):
    backend.add(REQ, id="req-3", student_id="student-2", status=SubmissionStatus.IN_PROGRESS)
    backend.add(REQ, id="req-4", status=SubmissionStatus.PENDING)
    all_reviewable = await review_service.list_reviewable(REQ)
    assert {s.id for s in all_reviewable} == {"req-1", "req-3"}
    mine = await review_service.list_reviewable(REQ, ["student-2"])
    assert [s.id for s in mine] == ["req-3"]


async def test_assign_from_template_creates_pending(review_service, backend, bus):
    created = await review_service.assign_from_template(
        REQ, AssignRequest(template_id="tpl-1", student_id="student-1", due_date=at(60))
    )
    assert created.status is SubmissionStatus.PENDING
    assert created.due_date == at(60)
    assert bus.published == [(events.REQUIREMENTS, created.id)]


async def test_assign_twice_returns_existing_pending(review_service, backend):
    first = await review_service.assign_from_template(REQ, AssignRequest(template_id="tpl-1", student_id="student-1"))
    second = await review_service.assign_from_template(REQ, AssignRequest(template_id="tpl-1", student_id="student-1"))
    assert first.id == second.id
    assert backend.mutations() == ["create_from_template"]


async def test_assign_over_reviewed_submission_fails(review_service, bus, submitted):
    with pytest.raises(InvalidStateError):
        await review_service.assign_from_template(REQ, AssignRequest(template_id="tpl-1", student_id="student-1"))
    assert bus.published == [(events.REQUIREMENTS, submitted.id)]


async def test_due_date_without_submission_assigns_in_one_call(review_service, backend):
    result = await review_service.ensure_assigned_then_set_due_date(
        REQ, DueDateRequest(student_id="student-1", template_id="tpl-7", due_date=at(120))
    )
    assert result.template_id == "tpl-7"
    assert result.due_date == at(120)
    assert backend.mutations() == ["create_from_template"]


async def test_due_date_on_existing_assignment_updates(review_service, backend, submitted):
    result = await review_service.ensure_assigned_then_set_due_date(
        REQ, DueDateRequest(student_id="student-1", template_id="tpl-1", due_date=at(30))
    )
    assert result.id == submitted.id
    assert result.due_date == at(30)
    assert result.status is SubmissionStatus.SUBMITTED
    assert backend.mutations() == ["update_due_date"]


async def test_due_date_when_creation_fails_leaves_nothing(review_service, backend, offline_error):
    backend.failures["create_from_template"] = offline_error
    with pytest.raises(type(offline_error)):
        await review_service.ensure_assigned_then_set_due_date(
            REQ, DueDateRequest(student_id="student-1", template_id="tpl-7", due_date=at(120))
        )
    assert backend.submissions == {}
    assert "update_due_date" not in backend.mutations()


async def test_due_date_after_concurrent_assignment(review_service, backend, monkeypatch):
    original_find = review_service.find_assignment
    calls = {"n": 0}

    async def racing_find(kind, student_id, template_id):
        calls["n"] += 1
        if calls["n"] == 1:
            # another session assigns the template right after our lookup
            backend.add(REQ, id="req-race", student_id=student_id, template_id=template_id)
            return None
        return await original_find(kind, student_id, template_id)

    monkeypatch.setattr(review_service, "find_assignment", racing_find)
    result = await review_service.ensure_assigned_then_set_due_date(
        REQ, DueDateRequest(student_id="student-1", template_id="tpl-1", due_date=at(10))
    )
    assert result.id == "req-race"
    assert result.due_date == at(10)


async def test_due_date_on_deleted_submission(review_service, backend):
    backend.add(REQ, id="req-del", template_id="tpl-1", deleted_at=T0)
    with pytest.raises(InvalidStateError):
        await review_service.set_due_date(REQ, "req-del", at(5))


async def test_due_date_requires_template(review_service):
    with pytest.raises(ValidationError):
        await review_service.ensure_assigned_then_set_due_date(REQ, DueDateRequest(student_id="student-1"))


async def test_upload_requires_file_for_requirements(review_service, backend):
    backend.add(REQ, id="req-5")
    with pytest.raises(ValidationError):
        await review_service.upload(REQ, "req-5")


async def test_reupload_after_rejection(review_service, backend, submitted):
    await review_service.reject(REQ, submitted.id, "Blurry scan")
    resubmitted = await review_service.upload(REQ, submitted.id, file_path="scan-v2.pdf")
    assert resubmitted.status is SubmissionStatus.SUBMITTED
    assert resubmitted.file_name == "scan-v2.pdf"
    assert resubmitted.approved_date is None


async def test_upload_while_submitted_is_invalid(review_service, backend, bus, submitted):
    with pytest.raises(InvalidStateError):
        await review_service.upload(REQ, submitted.id, file_path="again.pdf")
    assert "submit" not in backend.mutations()
    assert bus.published == [(events.REQUIREMENTS, submitted.id)]


async def test_add_comment_refreshes_cached_comments(review_service, backend, bus):
    assert await review_service.list_comments("req-1") == []
    comment = await review_service.add_comment("req-1", "  Please re-scan page 2 ")
    assert comment.content == "Please re-scan page 2"
    assert (events.REQUIREMENT_COMMENTS, "req-1") in bus.published
    assert [c.id for c in await review_service.list_comments("req-1")] == [comment.id]


async def test_blank_comment_is_rejected(review_service, backend):
    with pytest.raises(ValidationError):
        await review_service.add_comment("req-1", "   ")
    assert backend.mutations() == []
