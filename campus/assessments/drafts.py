"""
Draft Review

Suggested assessments and scores are held as drafts until a staff member
confirms, edits or rejects them. A draft never changes an attempt or a
grade by itself; confirmation goes through the attempt service like any
other staff action.
"""

import dataclasses
import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from campus.assessments.models import (
    Assessment,
    AssessmentStatus,
    AttemptState,
    Question,
    question_from_dict,
)
from campus.assessments.service import AttemptService
from campus.assessments.validation import validate_assessment
from campus.collaborators.suggestions import ContentSuggester, coerce_payload
from campus.common.config import get_config
from campus.common.error_handling import (
    AssessmentValidationError,
    AttemptStateError,
    CampusError,
    DraftStateError,
    NotFoundError,
    ValidationError,
)
from campus.common.logger import app_logger
from campus.common.serialization import SerializableMixin

logger = app_logger.getChild("assessments.drafts")

ASSESSMENT_FIELDS = frozenset(f.name for f in dataclasses.fields(Assessment))


class DraftStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass
class AssessmentDraft(SerializableMixin):
    """A suggested assessment awaiting review."""

    __serializable_fields__ = [
        "id", "course_id", "requested_by", "title", "description", "questions", "status"
    ]

    id: str
    course_id: str
    requested_by: str
    title: str = ""
    description: str = ""
    questions: List[Question] = field(default_factory=list)
    status: DraftStatus = DraftStatus.PENDING


@dataclass
class ScoreDraft(SerializableMixin):
    """A suggested score and feedback for an attempt awaiting review."""

    __serializable_fields__ = ["id", "attempt_id", "requested_by", "score", "feedback", "status"]

    id: str
    attempt_id: str
    requested_by: str
    score: Optional[float] = None
    feedback: str = ""
    status: DraftStatus = DraftStatus.PENDING


def normalize_assessment_draft(payload: Any) -> Dict[str, Any]:
    """
    Coerce an untrusted assessment suggestion into a known shape.

    A non-string title or description becomes "", a non-list question set
    becomes [], and questions that cannot be built are dropped.

    Returns:
        Dict with ``title``, ``description`` and ``questions`` (records)
    """
    data = coerce_payload(payload)
    title = data.get("title")
    description = data.get("description")
    raw_questions = data.get("questions")

    questions: List[Question] = []
    for position, raw in enumerate(raw_questions if isinstance(raw_questions, list) else []):
        if not isinstance(raw, dict):
            continue
        raw = dict(raw)
        raw.setdefault("id", f"q{position + 1}")
        try:
            questions.append(question_from_dict(raw))
        except (CampusError, TypeError, ValueError) as e:
            logger.info(f"Dropped suggested question {position + 1}: {e}")

    return {
        "title": title if isinstance(title, str) else "",
        "description": description if isinstance(description, str) else "",
        "questions": questions,
    }


def normalize_score_draft(payload: Any) -> Dict[str, Any]:
    """Coerce an untrusted score suggestion; a non-numeric score becomes None."""
    data = coerce_payload(payload)
    score = data.get("score")
    feedback = data.get("feedback")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        score = None
    return {
        "score": None if score is None else float(score),
        "feedback": feedback if isinstance(feedback, str) else "",
    }


class DraftReviewer:
    """Holds pending drafts and applies confirmed ones."""

    def __init__(self, suggester: ContentSuggester, attempts: AttemptService):
        self.suggester = suggester
        self.attempts = attempts
        self._assessment_drafts: Dict[str, AssessmentDraft] = {}
        self._score_drafts: Dict[str, ScoreDraft] = {}

    async def propose_assessment(self, course_id: str, topic: str, actor_id: str) -> AssessmentDraft:
        """Ask the suggester for an assessment and hold it for review."""
        await self.attempts.require_staff(actor_id, course_id, "draft assessments")
        try:
            normalized = normalize_assessment_draft(
                await self.suggester.suggest_assessment(course_id, topic)
            )
        except ValueError as e:
            raise ValidationError(f"Suggestion could not be read: {e}", cause=e)

        draft = AssessmentDraft(
            id=str(uuid.uuid4()),
            course_id=course_id,
            requested_by=actor_id,
            **normalized
        )
        self._assessment_drafts[draft.id] = draft
        logger.info(f"Assessment draft {draft.id} ready with {len(draft.questions)} questions")
        return draft

    async def propose_score(self, attempt_id: str, actor_id: str) -> ScoreDraft:
        """Ask the suggester for a score on an attempt awaiting review."""
        session = await self.attempts.get_session(attempt_id)
        attempt = session.attempt
        await self.attempts.require_staff(actor_id, attempt.course_id, "grade attempts")
        if attempt.state != AttemptState.PENDING_MANUAL_REVIEW:
            raise AttemptStateError(attempt_id, attempt.state.value, "suggest a score for")
        try:
            normalized = normalize_score_draft(await self.suggester.suggest_score(attempt))
        except ValueError as e:
            raise ValidationError(f"Suggestion could not be read: {e}", cause=e)

        draft = ScoreDraft(id=str(uuid.uuid4()), attempt_id=attempt_id, requested_by=actor_id, **normalized)
        self._score_drafts[draft.id] = draft
        return draft

    async def confirm_assessment(
        self,
        draft_id: str,
        actor_id: str,
        edits: Optional[Dict[str, Any]] = None
    ) -> Assessment:
        """
        Turn a reviewed draft into a saved (unpublished) assessment.

        ``edits`` may override any Assessment field, including questions
        given as dicts. The saved assessment is always a draft.

        Raises:
            DraftStateError: If the draft was already confirmed or rejected
            AssessmentValidationError: If an edit names an unknown field or
                the result is not a valid assessment
        """
        draft = self._pending(self._assessment_drafts, draft_id)
        edits = dict(edits or {})
        unknown = sorted(set(edits) - ASSESSMENT_FIELDS)
        if unknown:
            raise AssessmentValidationError({key: f"Unknown assessment field: {key}" for key in unknown})
        if "questions" in edits:
            try:
                edits["questions"] = [
                    q if isinstance(q, Question) else question_from_dict(q) for q in edits["questions"]
                ]
            except (AttributeError, TypeError, ValueError) as e:
                raise AssessmentValidationError({"questions": f"Questions could not be read: {e}"})

        defaults = get_config().assessment
        fields = {
            "id": str(uuid.uuid4()),
            "course_id": draft.course_id,
            "title": draft.title,
            "description": draft.description,
            "questions": list(draft.questions),
            "time_limit_minutes": defaults.default_time_limit_minutes,
            "attempts_allowed": defaults.default_attempts,
            "category": defaults.default_category,
        }
        fields.update(edits)
        fields["status"] = AssessmentStatus.DRAFT

        try:
            assessment = Assessment(**fields)
            validate_assessment(assessment)
        except (TypeError, ValueError) as e:
            raise AssessmentValidationError({"edits": f"Edits could not be applied: {e}"})

        assessment = await self.attempts.save_assessment(assessment, actor_id=actor_id)
        draft.status = DraftStatus.CONFIRMED
        logger.info(f"Draft {draft_id} confirmed as assessment {assessment.id}")
        return assessment

    async def confirm_score(
        self,
        draft_id: str,
        actor_id: str,
        score: Optional[float] = None,
        feedback: Optional[str] = None
    ):
        """
        Grade the attempt with the draft's (or the reviewer's edited) score.

        Raises:
            DraftStateError: If the draft was already confirmed or rejected
            ValidationError: If no score is available
        """
        draft = self._pending(self._score_drafts, draft_id)
        final_score = score if score is not None else draft.score
        if final_score is None:
            raise ValidationError("A score is required", errors={"score": "A score is required"})
        final_feedback = feedback if feedback is not None else draft.feedback

        attempt = await self.attempts.grade_attempt(draft.attempt_id, final_score, final_feedback, actor_id)
        draft.status = DraftStatus.CONFIRMED
        return attempt

    async def reject(self, draft_id: str, actor_id: str) -> None:
        """
        Discard a pending draft. Staff of the draft's course only.

        Raises:
            NotFoundError: If there is no such draft
            AuthorizationError: If the actor is not course staff
            DraftStateError: If the draft was already confirmed or rejected
        """
        draft = self._find(draft_id)
        if isinstance(draft, AssessmentDraft):
            course_id = draft.course_id
        else:
            course_id = (await self.attempts.get_session(draft.attempt_id)).attempt.course_id
        await self.attempts.require_staff(actor_id, course_id, "reject drafts")

        if draft.status != DraftStatus.PENDING:
            raise DraftStateError(draft_id, draft.status.value)
        draft.status = DraftStatus.REJECTED
        logger.info(f"Draft {draft_id} rejected")

    def get_draft(self, draft_id: str):
        return self._assessment_drafts.get(draft_id) or self._score_drafts.get(draft_id)

    def _find(self, draft_id: str):
        draft = self.get_draft(draft_id)
        if draft is None:
            raise NotFoundError(f"Draft with ID {draft_id} not found", details={"draft_id": draft_id})
        return draft

    def _pending(self, drafts: Dict[str, Any], draft_id: str):
        draft = drafts.get(draft_id)
        if draft is None:
            raise NotFoundError(f"Draft with ID {draft_id} not found", details={"draft_id": draft_id})
        if draft.status != DraftStatus.PENDING:
            raise DraftStateError(draft_id, draft.status.value)
        return draft
