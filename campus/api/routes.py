"""
Assessment and Gradebook Routes

Thin transport wrappers over the attempt and gradebook services. The
acting user comes from the identity header; all rules live in the
services.
"""

import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from campus.api.container import Container
from campus.api.dependencies import get_actor_id, get_container
from campus.api.responses import APIResponse
from campus.api.schemas import (
    AnswerPayload,
    AssessmentPayload,
    DraftConfirmation,
    DraftRequest,
    GradePayload,
    RegradePayload,
    WeightsPayload,
)
from campus.assessments.drafts import AssessmentDraft
from campus.assessments.models import Assessment, Attempt
from campus.common.error_handling import NotFoundError
from campus.common.logger import app_logger
from campus.common.serialization import serialize
from campus.gradebook.formatting import format_percent

logger = app_logger.getChild("api.routes")

router = APIRouter()

ANSWER_KEY_FIELDS = ("correct_index", "correct_answer", "reference_answer")


async def attempt_view(container: Container, attempt: Attempt, actor_id: str) -> Dict[str, Any]:
    """Attempt as seen by the actor; students never see the answer key."""
    data = attempt.to_dict()
    if not await container.authorization.is_staff(actor_id, attempt.course_id):
        for question in data["selection"]:
            for key in ANSWER_KEY_FIELDS:
                question.pop(key, None)
    data["points_possible"] = attempt.points_possible()
    return data


#------------------------------------------------------------------------------
# Assessments
#------------------------------------------------------------------------------

@router.post("/assessments", status_code=status.HTTP_201_CREATED, tags=["assessments"])
async def save_assessment(
    payload: AssessmentPayload,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Create or replace an assessment definition (staff only)."""
    data = payload.model_dump(mode="json")
    data["id"] = data.get("id") or str(uuid.uuid4())
    assessment = await container.attempts.save_assessment(Assessment.from_dict(data), actor_id=actor_id)
    return APIResponse.success(assessment.to_dict(), "Assessment saved")


@router.post("/assessments/{assessment_id}/publish", tags=["assessments"])
async def publish_assessment(
    assessment_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    assessment = await container.attempts.publish_assessment(assessment_id, actor_id)
    return APIResponse.success(assessment.to_dict(), "Assessment published")


@router.post("/assessments/{assessment_id}/close", tags=["assessments"])
async def close_assessment(
    assessment_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    assessment = await container.attempts.close_assessment(assessment_id, actor_id)
    return APIResponse.success(assessment.to_dict(), "Assessment closed")


@router.get("/assessments/{assessment_id}/points", tags=["assessments"])
async def assessment_points(
    assessment_id: str,
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Points possible shown before an attempt."""
    points = await container.attempts.assessment_points(assessment_id)
    return APIResponse.success({"assessment_id": assessment_id, "points": points})


#------------------------------------------------------------------------------
# Attempts
#------------------------------------------------------------------------------

@router.post("/assessments/{assessment_id}/attempts", status_code=status.HTTP_201_CREATED, tags=["attempts"])
async def start_attempt(
    assessment_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Start an attempt for the acting user, or resume the one in progress."""
    attempt = await container.attempts.start_attempt(assessment_id, actor_id)
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Attempt started")


@router.put("/attempts/{attempt_id}/answers/{question_id}", tags=["attempts"])
async def record_answer(
    attempt_id: str,
    question_id: str,
    payload: AnswerPayload,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    attempt = await container.attempts.record_answer(attempt_id, question_id, payload.value, actor_id)
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Answer saved")


@router.post("/attempts/{attempt_id}/submit", tags=["attempts"])
async def submit_attempt(
    attempt_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    attempt = await container.attempts.submit_attempt(attempt_id, actor_id)
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Attempt submitted")


@router.post("/attempts/{attempt_id}/grade", tags=["attempts"])
async def grade_attempt(
    attempt_id: str,
    payload: GradePayload,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Grade and release an attempt (staff only)."""
    attempt = await container.attempts.grade_attempt(attempt_id, payload.score, payload.feedback, actor_id)
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Grade released")


@router.post("/attempts/{attempt_id}/regrade", tags=["attempts"])
async def regrade_attempt(
    attempt_id: str,
    payload: RegradePayload,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    attempt = await container.attempts.regrade_attempt(
        attempt_id, actor_id, score=payload.score, feedback=payload.feedback
    )
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Attempt re-graded")


@router.get("/attempts/{attempt_id}", tags=["attempts"])
async def get_attempt(
    attempt_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    session = await container.attempts.get_session(attempt_id)
    attempt = await container.attempts.get_attempt(attempt_id, actor_id)
    data = await attempt_view(container, attempt, actor_id)
    data["remaining_seconds"] = session.remaining_seconds()
    return APIResponse.success(data)


#------------------------------------------------------------------------------
# Gradebook
#------------------------------------------------------------------------------

@router.get("/courses/{course_id}/students/{student_id}/grade", tags=["gradebook"])
async def course_grade(
    course_id: str,
    student_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """A student's current course grade (the student or course staff)."""
    result = await container.gradebook.course_grade(student_id, course_id, actor_id=actor_id)
    data = result.to_dict()
    data["display"] = format_percent(result.overall_percent, container.gradebook.config.display_precision)
    return APIResponse.success(data)


@router.put("/courses/{course_id}/weights", tags=["gradebook"])
async def save_weights(
    course_id: str,
    payload: WeightsPayload,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """Replace the course's category weights, entered as percentages."""
    weights = await container.gradebook.save_category_weights(course_id, payload.weights, actor_id=actor_id)
    return APIResponse.success([w.to_dict() for w in weights], "Weights saved")


@router.get("/courses/{course_id}/statistics", tags=["gradebook"])
async def item_statistics(
    course_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    summaries = await container.gradebook.item_statistics(course_id, actor_id=actor_id)
    return APIResponse.success(serialize(summaries))


#------------------------------------------------------------------------------
# Draft review
#------------------------------------------------------------------------------

def _reviewer(container: Container):
    if container.reviewer is None:
        raise NotFoundError("Content suggestions are not enabled")
    return container.reviewer


@router.post("/courses/{course_id}/drafts", status_code=status.HTTP_201_CREATED, tags=["drafts"])
async def propose_assessment(
    course_id: str,
    payload: DraftRequest,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    draft = await _reviewer(container).propose_assessment(course_id, payload.topic, actor_id)
    return APIResponse.success(draft.to_dict(), "Draft ready for review")


@router.post("/attempts/{attempt_id}/drafts", status_code=status.HTTP_201_CREATED, tags=["drafts"])
async def propose_score(
    attempt_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    draft = await _reviewer(container).propose_score(attempt_id, actor_id)
    return APIResponse.success(draft.to_dict(), "Draft ready for review")


@router.post("/drafts/{draft_id}/confirm", tags=["drafts"])
async def confirm_draft(
    draft_id: str,
    payload: DraftConfirmation,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    reviewer = _reviewer(container)
    draft = reviewer.get_draft(draft_id)
    if draft is None:
        raise NotFoundError(f"Draft with ID {draft_id} not found", details={"draft_id": draft_id})

    if isinstance(draft, AssessmentDraft):
        assessment = await reviewer.confirm_assessment(draft_id, actor_id, payload.edits)
        return APIResponse.success(assessment.to_dict(), "Assessment saved")

    attempt = await reviewer.confirm_score(draft_id, actor_id, payload.score, payload.feedback)
    return APIResponse.success(await attempt_view(container, attempt, actor_id), "Grade released")


@router.post("/drafts/{draft_id}/reject", tags=["drafts"])
async def reject_draft(
    draft_id: str,
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id)
) -> Dict[str, Any]:
    await _reviewer(container).reject(draft_id, actor_id)
    return APIResponse.success({"draft_id": draft_id}, "Draft rejected")
