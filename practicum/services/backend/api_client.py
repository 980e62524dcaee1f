import asyncio
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiofiles
import aiohttp

from practicum.core.config import Settings, settings as default_settings
from practicum.core.exceptions import (
    InvalidStateError,
    NetworkError,
    NotFoundError,
    PracticumError,
    ServerError,
    ValidationError,
)
from practicum.schemas.submission import (
    AssignRequest,
    ReportFields,
    RequirementComment,
    RequirementTemplate,
    Submission,
    SubmissionKind,
)
from practicum.utils.time import isoformat

logger = logging.getLogger(__name__)

ENDPOINTS = {
    SubmissionKind.REQUIREMENT: "/requirements",
    SubmissionKind.REPORT: "/reports",
}
LIST_KEYS = {
    SubmissionKind.REQUIREMENT: "requirements",
    SubmissionKind.REPORT: "reports",
}
ANNOUNCEMENTS = "/announcement/"
TEMPLATES = "/requirement-template/"


def _error_from_response(status: int, body: Any) -> PracticumError:
    """백엔드 오류 envelope {message, code} 를 예외로 변환"""
    message = f"Backend error {status}"
    code = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or message
        code = body.get("code")
    elif body:
        message = str(body)

    if status in (400, 422):
        return ValidationError(message, code)
    if status == 404:
        return NotFoundError(message, code)
    if status == 409:
        return InvalidStateError(message, code)
    return ServerError(message, code, status=status)


def _unwrap_list(payload: Any, key: str) -> List[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if key in payload:
            return payload[key] or []
        nested = payload.get("data")
        if isinstance(nested, dict):
            return nested.get(key) or []
        if isinstance(nested, list):
            return nested
    return []


def _total_pages(payload: Any) -> Optional[int]:
    if isinstance(payload, dict) and isinstance(payload.get("pagination"), dict):
        return payload["pagination"].get("totalPages")
    return None


class BackendClient:
    """REST backend 호출 래퍼 (aiohttp)"""

    def __init__(self, settings: Optional[Settings] = None, base_url: Optional[str] = None):
        self.settings = settings or default_settings
        self.base_url = (base_url or self.settings.BACKEND_API_URL).rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=self.settings.BACKEND_TIMEOUT_SECONDS)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.BACKEND_AUTH_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.BACKEND_AUTH_TOKEN}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[aiohttp.FormData] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            params = {k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in params.items() if v is not None}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout, headers=self._headers()) as session:
                async with session.request(method, url, params=params, json=json, data=data) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = await response.text()
                    if response.status >= 400:
                        error = _error_from_response(response.status, body)
                        logger.error(f"{method} {path} failed: {response.status} {error.message}")
                        raise error
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {path} unreachable: {e}")
            raise NetworkError(f"Backend unavailable: {e}")
        except aiohttp.ClientError as e:
            logger.error(f"{method} {path} client error: {e}")
            raise NetworkError(str(e))

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def _list_all(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> List[dict]:
        """모든 페이지를 순서대로 조회해 합친다"""
        limit = self.settings.REVIEW_LIST_LIMIT
        collected: List[dict] = []
        page = 1
        while True:
            payload = await self._request("GET", path, params={**(params or {}), "page": page, "limit": limit})
            batch = _unwrap_list(payload, key)
            collected.extend(batch)
            total_pages = _total_pages(payload)
            if not batch or (total_pages is not None and page >= total_pages):
                break
            if total_pages is None and len(batch) < limit:
                break
            page += 1
        return collected

    # --- submissions -----------------------------------------------------

    async def list_submissions(
        self,
        kind: SubmissionKind,
        *,
        status: Optional[str] = None,
        student_id: Optional[str] = None,
        template_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        include_pending: bool = False,
    ) -> List[Submission]:
        params = {
            "page": page,
            "limit": limit or self.settings.REVIEW_LIST_LIMIT,
            "status": status if status and status != "all" else None,
            "studentId": student_id,
            "templateId": template_id,
            "includePending": True if include_pending else None,
        }
        payload = await self._request("GET", ENDPOINTS[kind], params=params)
        return [Submission.model_validate(item) for item in _unwrap_list(payload, LIST_KEYS[kind])]

    async def get_submission(self, kind: SubmissionKind, submission_id: str) -> Submission:
        payload = await self._request("GET", f"{ENDPOINTS[kind]}/{submission_id}")
        return Submission.model_validate(payload)

    async def approve(
        self,
        kind: SubmissionKind,
        submission_id: str,
        feedback: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> Submission:
        body: Dict[str, Any] = {"feedback": feedback}
        if kind is SubmissionKind.REPORT:
            body["rating"] = rating
        payload = await self._request("PUT", f"{ENDPOINTS[kind]}/{submission_id}/approve", json=body)
        return Submission.model_validate(payload)

    async def reject(self, kind: SubmissionKind, submission_id: str, reason: str) -> Submission:
        payload = await self._request("PUT", f"{ENDPOINTS[kind]}/{submission_id}/reject", json={"reason": reason})
        return Submission.model_validate(payload)

    async def create_from_template(self, kind: SubmissionKind, request: AssignRequest) -> Submission:
        body = {
            "templateId": request.template_id,
            "studentId": request.student_id,
            "practicumId": request.practicum_id,
            "dueDate": isoformat(request.due_date),
        }
        payload = await self._request("POST", f"{ENDPOINTS[kind]}/from-template", json=body)
        return Submission.model_validate(payload)

    async def update_due_date(self, kind: SubmissionKind, submission_id: str, due_date: Optional[datetime]) -> Submission:
        payload = await self._request(
            "PUT",
            f"{ENDPOINTS[kind]}/{submission_id}/due-date",
            json={"dueDate": isoformat(due_date)},
        )
        return Submission.model_validate(payload)

    async def submit(
        self,
        kind: SubmissionKind,
        submission_id: str,
        file_path: Optional[str] = None,
        fields: Optional[ReportFields] = None,
        content_type: str = "application/octet-stream",
    ) -> Submission:
        """파일(+ report 필드) multipart 업로드"""
        form = aiohttp.FormData()
        if fields is not None:
            for key, value in fields.model_dump(by_alias=True, exclude_none=True).items():
                form.add_field(key, str(value))
        if file_path:
            async with aiofiles.open(file_path, 'rb') as f:
                content = await f.read()
            form.add_field(
                "submissionFile",
                content,
                filename=os.path.basename(file_path),
                content_type=content_type,
            )
        payload = await self._request("POST", f"{ENDPOINTS[kind]}/{submission_id}/submit", data=form)
        return Submission.model_validate(payload)

    # --- templates / comments -------------------------------------------

    async def list_templates(self, status: str = "active") -> List[RequirementTemplate]:
        items = await self._list_all(TEMPLATES, "requirementTemplates", {"status": status})
        return [RequirementTemplate.model_validate(item) for item in items]

    async def list_requirement_comments(self, requirement_id: str) -> List[RequirementComment]:
        payload = await self._request("GET", f"/requirements/{requirement_id}/comments")
        return [RequirementComment.model_validate(item) for item in _unwrap_list(payload, "comments")]

    async def create_requirement_comment(self, requirement_id: str, content: str, is_private: bool = False) -> RequirementComment:
        payload = await self._request(
            "POST",
            f"/requirements/{requirement_id}/comments",
            json={"content": content, "isPrivate": is_private},
        )
        return RequirementComment.model_validate(payload)

    # --- notification sources (raw JSON) ---------------------------------

    async def list_announcements(self, user_id: str, limit: Optional[int] = None) -> List[dict]:
        params = {
            "status": "Published",
            "userId": user_id,
            "page": 1,
            "limit": limit or self.settings.NOTIFICATION_PAGE_LIMIT,
        }
        payload = await self._request("GET", ANNOUNCEMENTS, params=params)
        return _unwrap_list(payload, "announcements")

    async def list_template_items(self) -> List[dict]:
        return await self._list_all(TEMPLATES, "requirementTemplates", {"status": "active"})

    async def list_student_comments(self, student_id: str, last_check_time: Optional[datetime] = None) -> List[dict]:
        payload = await self._request(
            "GET",
            f"/requirements/comments/student/{student_id}",
            params={"lastCheckTime": isoformat(last_check_time)},
        )
        return _unwrap_list(payload, "comments")

    async def list_report_views(self, student_id: str, last_check_time: Optional[datetime] = None) -> List[dict]:
        payload = await self._request(
            "GET",
            f"/reports/student/{student_id}/views",
            params={"lastCheckTime": isoformat(last_check_time)},
        )
        return _unwrap_list(payload, "views")

    async def list_submitted_raw(self, kind: SubmissionKind) -> List[dict]:
        payload = await self._request(
            "GET",
            ENDPOINTS[kind],
            params={"page": 1, "limit": self.settings.REVIEW_LIST_LIMIT, "status": "submitted"},
        )
        return _unwrap_list(payload, LIST_KEYS[kind])

    async def list_student_ids_by_teacher(self, instructor_id: str) -> List[str]:
        payload = await self._request(
            "GET",
            f"/student/teacher/{instructor_id}",
            params={"page": 1, "limit": self.settings.REVIEW_LIST_LIMIT},
        )
        return [s["id"] for s in _unwrap_list(payload, "students") if "id" in s]
