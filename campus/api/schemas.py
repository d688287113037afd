"""Request models for the HTTP API."""

import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from campus.assessments.models import QuestionType
from campus.common.config import get_config


def _default_time_limit() -> int:
    return get_config().assessment.default_time_limit_minutes


def _default_attempts() -> int:
    return get_config().assessment.default_attempts


def _default_category() -> str:
    return get_config().assessment.default_category


class QuestionPayload(BaseModel):
    """One question; which answer-key field applies depends on ``type``."""
    id: str
    type: QuestionType
    prompt: str = ""
    points: float = 1.0
    options: List[str] = Field(default_factory=list)
    correct_index: Optional[int] = None
    correct_answer: Optional[Union[bool, str]] = None
    reference_answer: Optional[str] = None


class AssessmentPayload(BaseModel):
    id: Optional[str] = None
    course_id: str
    title: str
    description: str = ""
    due_at: Optional[datetime.datetime] = None
    time_limit_minutes: Optional[int] = Field(default_factory=_default_time_limit)
    attempts_allowed: Optional[int] = Field(default_factory=_default_attempts)
    randomize_order: bool = False
    pool_enabled: bool = False
    pool_size: int = 0
    category: str = Field(default_factory=_default_category)
    questions: List[QuestionPayload] = Field(default_factory=list)


class AnswerPayload(BaseModel):
    """An answer value: an option index, "True"/"False", or text."""
    value: Any = None


class GradePayload(BaseModel):
    score: float
    feedback: Optional[str] = None


class RegradePayload(BaseModel):
    score: Optional[float] = None
    feedback: Optional[str] = None


class WeightsPayload(BaseModel):
    """Category weights in percent; an empty mapping means unweighted."""
    weights: Dict[str, float] = Field(default_factory=dict)


class DraftRequest(BaseModel):
    topic: str


class DraftConfirmation(BaseModel):
    edits: Optional[Dict[str, Any]] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
