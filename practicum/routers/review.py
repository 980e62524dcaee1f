from fastapi import APIRouter, Depends, File, Form, UploadFile
from typing import List, Optional
import logging

from practicum.core.config import settings
from practicum.core.exceptions import PracticumError
from practicum.dependencies import get_review_service
from practicum.routers.errors import to_http_exception
from practicum.schemas.submission import (
    ApproveRequest,
    AssignRequest,
    CommentRequest,
    DueDateRequest,
    ProgressSummary,
    RejectRequest,
    ReportFields,
    RequirementComment,
    Submission,
    SubmissionKind,
)
from practicum.services.review.review_service import ReviewService
from practicum.utils.file_utils import remove_file, save_uploaded_file

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/review",
    tags=["review"]
)

@router.get("/{kind}", response_model=List[Submission])
async def list_submissions(
    kind: SubmissionKind,
    status: Optional[str] = None,
    student_id: Optional[str] = None,
    reviewable_only: bool = False,
    review_service: ReviewService = Depends(get_review_service)
):
    """제출물 목록 조회"""
    try:
        if reviewable_only:
            return await review_service.list_reviewable(kind, [student_id] if student_id else None)
        return await review_service.list_submissions(kind, status=status, student_id=student_id)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{kind}/{submission_id}/approve", response_model=Submission)
async def approve_submission(
    kind: SubmissionKind,
    submission_id: str,
    body: ApproveRequest,
    review_service: ReviewService = Depends(get_review_service)
):
    """제출물 승인"""
    try:
        return await review_service.approve(kind, submission_id, feedback=body.feedback, rating=body.rating)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{kind}/{submission_id}/reject", response_model=Submission)
async def reject_submission(
    kind: SubmissionKind,
    submission_id: str,
    body: RejectRequest,
    review_service: ReviewService = Depends(get_review_service)
):
    """제출물 반려 (사유 필수)"""
    try:
        return await review_service.reject(kind, submission_id, body.reason)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{kind}/assign", response_model=Submission)
async def assign_from_template(
    kind: SubmissionKind,
    body: AssignRequest,
    review_service: ReviewService = Depends(get_review_service)
):
    try:
        return await review_service.assign_from_template(kind, body)
    except PracticumError as e:
        raise to_http_exception(e)

@router.put("/{kind}/due-date", response_model=Submission)
async def set_due_date(
    kind: SubmissionKind,
    body: DueDateRequest,
    review_service: ReviewService = Depends(get_review_service)
):
    """due date 설정 (필요 시 템플릿 배정 포함)"""
    try:
        return await review_service.ensure_assigned_then_set_due_date(kind, body)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/{kind}/{submission_id}/submit", response_model=Submission)
async def submit_submission(
    kind: SubmissionKind,
    submission_id: str,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    week_number: Optional[int] = Form(None),
    hours_logged: Optional[float] = Form(None),
    review_service: ReviewService = Depends(get_review_service)
):
    """파일 업로드 / 재업로드"""
    saved_path = None
    try:
        if file is not None:
            saved_path = await save_uploaded_file(file, submission_id, settings.UPLOAD_DIR)
        fields = None
        if kind is SubmissionKind.REPORT:
            fields = ReportFields(title=title, content=content, week_number=week_number, hours_logged=hours_logged)
        return await review_service.upload(
            kind,
            submission_id,
            file_path=str(saved_path) if saved_path else None,
            fields=fields,
            content_type=file.content_type if file is not None and file.content_type else "application/octet-stream",
        )
    except PracticumError as e:
        raise to_http_exception(e)
    finally:
        if saved_path is not None:
            remove_file(saved_path)

@router.get("/requirement/progress/{student_id}", response_model=ProgressSummary)
async def get_progress(
    student_id: str,
    review_service: ReviewService = Depends(get_review_service)
):
    """승인 / 활성 템플릿 수"""
    try:
        return await review_service.completion(student_id)
    except PracticumError as e:
        raise to_http_exception(e)

@router.get("/requirement/{requirement_id}/comments", response_model=List[RequirementComment])
async def list_comments(
    requirement_id: str,
    review_service: ReviewService = Depends(get_review_service)
):
    try:
        return await review_service.list_comments(requirement_id)
    except PracticumError as e:
        raise to_http_exception(e)

@router.post("/requirement/{requirement_id}/comments", response_model=RequirementComment)
async def add_comment(
    requirement_id: str,
    body: CommentRequest,
    review_service: ReviewService = Depends(get_review_service)
):
    """요구사항 코멘트 작성 (학생 코멘트 알림 갱신)"""
    try:
        return await review_service.add_comment(requirement_id, body.content, is_private=body.is_private)
    except PracticumError as e:
        raise to_http_exception(e)
