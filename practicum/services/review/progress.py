from collections import defaultdict
from typing import Dict, Iterable, List

from practicum.schemas.submission import (
    ProgressSummary,
    RequirementTemplate,
    Submission,
    SubmissionStatus,
)
from practicum.services.review.workflow import is_reviewable


def reviewable(submissions: Iterable[Submission]) -> List[Submission]:
    return [s for s in submissions if is_reviewable(s)]


def active_template_count(templates: Iterable[RequirementTemplate]) -> int:
    return sum(1 for t in templates if t.is_active)


def _approved_count(submissions: Iterable[Submission]) -> int:
    # 같은 템플릿의 승인 건은 한 번만 센다
    seen_templates = set()
    count = 0
    for submission in submissions:
        if submission.is_deleted or submission.status is not SubmissionStatus.APPROVED:
            continue
        if submission.template_id:
            if submission.template_id in seen_templates:
                continue
            seen_templates.add(submission.template_id)
        count += 1
    return count


def completion(student_id: str, submissions: Iterable[Submission], templates: Iterable[RequirementTemplate]) -> ProgressSummary:
    """Approved over active templates.

    The denominator is the number of active templates, so requirements a student
    never submitted still count against completion. The numerator is capped at
    the denominator for when templates were retired after approval.
    """
    total = active_template_count(templates)
    owned = [s for s in submissions if s.student_id == student_id]
    approved = min(_approved_count(owned), total)
    return ProgressSummary(student_id=student_id, approved=approved, total=total)


def completion_by_student(
    student_ids: Iterable[str],
    submissions: Iterable[Submission],
    templates: Iterable[RequirementTemplate],
) -> Dict[str, ProgressSummary]:
    templates = list(templates)
    grouped: Dict[str, List[Submission]] = defaultdict(list)
    for submission in submissions:
        grouped[submission.student_id].append(submission)
    return {
        student_id: completion(student_id, grouped.get(student_id, []), templates)
        for student_id in student_ids
    }
