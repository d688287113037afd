"""
Assessment Models

This module defines the core records of the assessment engine: typed
question records per question type, the answer union accepted from
students, assessments and attempts.
"""

import copy
import enum
import datetime
from typing import Any, ClassVar, Dict, List, Optional, Type, Union
from dataclasses import dataclass, field

from campus.common.error_handling import AnswerValidationError, QuestionValidationError
from campus.common.serialization import SerializableMixin, parse_datetime, serialize


class QuestionType(enum.Enum):
    """Question types supported by the engine."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class TrueFalse(enum.Enum):
    """Values of a true/false question, compared as exact strings."""
    TRUE = "True"
    FALSE = "False"

    @classmethod
    def from_raw(cls, value: Any) -> 'TrueFalse':
        """
        Convert a raw payload value into a TrueFalse member.

        Python booleans map to their member; strings must be exactly
        "True" or "False".

        Raises:
            ValueError: If the value is neither
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE
        if isinstance(value, str):
            return cls(value)
        raise ValueError(f"Not a true/false value: {value!r}")


class AssessmentStatus(enum.Enum):
    """Lifecycle status of an assessment."""
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


class AttemptState(enum.Enum):
    """States of the attempt state machine."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    TIMED_OUT = "timed_out"
    AUTO_GRADED = "auto_graded"
    PENDING_MANUAL_REVIEW = "pending_manual_review"
    RELEASED = "released"


#------------------------------------------------------------------------------
# Questions
#------------------------------------------------------------------------------

@dataclass
class Question(SerializableMixin):
    """
    Base class for all question records.

    Each concrete type declares its own answer key; ``points`` is the
    full credit awarded for a correct answer.
    """

    __serializable_fields__ = ["id", "prompt", "points"]
    question_type: ClassVar[QuestionType]

    id: str
    prompt: str
    points: float = 1.0

    @property
    def auto_gradable(self) -> bool:
        """Whether the scoring engine can grade this question without a human."""
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert the question to a dictionary, tagged with its type."""
        result = {"type": self.question_type.value}
        result.update(super().to_dict())
        return result


@dataclass
class MultipleChoiceQuestion(Question):
    """A question answered by picking one option by zero-based index."""

    __serializable_fields__ = ["id", "prompt", "points", "options", "correct_index"]
    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE

    options: List[str] = field(default_factory=list)
    correct_index: int = 0

    @property
    def auto_gradable(self) -> bool:
        return True


@dataclass
class TrueFalseQuestion(Question):
    """A question whose answer is exactly "True" or "False"."""

    __serializable_fields__ = ["id", "prompt", "points", "correct_answer"]
    question_type: ClassVar[QuestionType] = QuestionType.TRUE_FALSE

    correct_answer: Optional[TrueFalse] = None

    def __post_init__(self):
        if self.correct_answer is not None and not isinstance(self.correct_answer, TrueFalse):
            try:
                self.correct_answer = TrueFalse.from_raw(self.correct_answer)
            except ValueError:
                raise QuestionValidationError(
                    self.id, {"correct_answer": "Correct answer must be \"True\" or \"False\""}
                )

    @property
    def auto_gradable(self) -> bool:
        return True


@dataclass
class ShortAnswerQuestion(Question):
    """A free-text question; always needs a human grader."""

    __serializable_fields__ = ["id", "prompt", "points", "reference_answer"]
    question_type: ClassVar[QuestionType] = QuestionType.SHORT_ANSWER

    reference_answer: Optional[str] = None


QUESTION_CLASSES: Dict[QuestionType, Type[Question]] = {
    QuestionType.MULTIPLE_CHOICE: MultipleChoiceQuestion,
    QuestionType.TRUE_FALSE: TrueFalseQuestion,
    QuestionType.SHORT_ANSWER: ShortAnswerQuestion,
}


def question_from_dict(data: Dict[str, Any]) -> Question:
    """
    Build a typed question record from a dictionary.

    Args:
        data: Question data with a ``type`` key

    Returns:
        The concrete question record

    Raises:
        QuestionValidationError: If the type is unknown
    """
    question_id = str(data.get("id", ""))
    try:
        question_type = QuestionType(data.get("type"))
    except ValueError:
        raise QuestionValidationError(
            question_id, {"type": f"Unknown question type: {data.get('type')!r}"}
        )

    cls = QUESTION_CLASSES[question_type]
    kwargs = {
        "id": question_id,
        "prompt": data.get("prompt") or "",
        "points": float(data.get("points", 1.0)),
    }
    if question_type == QuestionType.MULTIPLE_CHOICE:
        kwargs["options"] = [str(option) for option in data.get("options") or []]
        kwargs["correct_index"] = data.get("correct_index", 0)
    elif question_type == QuestionType.TRUE_FALSE:
        kwargs["correct_answer"] = data.get("correct_answer")
    else:
        kwargs["reference_answer"] = data.get("reference_answer")
    return cls(**kwargs)


#------------------------------------------------------------------------------
# Answers
#------------------------------------------------------------------------------

@dataclass(frozen=True)
class ChoiceAnswer:
    """Selected option index for a multiple-choice question."""
    index: int


@dataclass(frozen=True)
class BooleanAnswer:
    """Selected value for a true/false question."""
    value: TrueFalse


@dataclass(frozen=True)
class TextAnswer:
    """Free text for a short-answer question."""
    text: str


Answer = Union[ChoiceAnswer, BooleanAnswer, TextAnswer]


def answer_to_dict(answer: Answer) -> Dict[str, Any]:
    """Convert an answer to a tagged dictionary."""
    if isinstance(answer, ChoiceAnswer):
        return {"kind": "choice", "index": answer.index}
    if isinstance(answer, BooleanAnswer):
        return {"kind": "boolean", "value": answer.value.value}
    return {"kind": "text", "text": answer.text}


def answer_from_dict(data: Dict[str, Any]) -> Answer:
    """Rebuild an answer from its tagged dictionary."""
    kind = data.get("kind")
    if kind == "choice":
        return ChoiceAnswer(int(data["index"]))
    if kind == "boolean":
        return BooleanAnswer(TrueFalse(data["value"]))
    if kind == "text":
        return TextAnswer(str(data["text"]))
    raise ValueError(f"Unknown answer kind: {kind!r}")


def parse_answer(question: Question, raw: Any) -> Answer:
    """
    Validate a raw answer payload against the question's declared type.

    Args:
        question: The question being answered
        raw: The submitted value (an Answer, or a plain JSON value)

    Returns:
        The typed answer

    Raises:
        AnswerValidationError: If the payload does not fit the question
    """
    if isinstance(question, MultipleChoiceQuestion):
        if isinstance(raw, ChoiceAnswer):
            index = raw.index
        elif isinstance(raw, int) and not isinstance(raw, bool):
            index = raw
        elif isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
            index = int(raw.strip())
        else:
            raise AnswerValidationError(
                question.id, f"Question {question.id} expects an option index"
            )
        if not 0 <= index < len(question.options):
            raise AnswerValidationError(
                question.id,
                f"Option {index} is out of range for question {question.id}"
            )
        return ChoiceAnswer(index)

    if isinstance(question, TrueFalseQuestion):
        if isinstance(raw, BooleanAnswer):
            return raw
        try:
            return BooleanAnswer(TrueFalse.from_raw(raw))
        except ValueError:
            raise AnswerValidationError(
                question.id, f"Question {question.id} expects \"True\" or \"False\""
            )

    if isinstance(raw, TextAnswer):
        return raw
    if not isinstance(raw, str):
        raise AnswerValidationError(question.id, f"Question {question.id} expects text")
    return TextAnswer(raw)


#------------------------------------------------------------------------------
# Assessments and attempts
#------------------------------------------------------------------------------

@dataclass
class Assessment(SerializableMixin):
    """An instructor-authored quiz composed of questions."""

    __serializable_fields__ = [
        "id", "course_id", "title", "description", "status", "due_at",
        "time_limit_minutes", "attempts_allowed", "randomize_order",
        "pool_enabled", "pool_size", "category", "questions"
    ]

    id: str
    course_id: str
    title: str
    description: str = ""
    status: AssessmentStatus = AssessmentStatus.DRAFT
    due_at: Optional[datetime.datetime] = None
    time_limit_minutes: Optional[int] = None
    attempts_allowed: Optional[int] = None
    randomize_order: bool = False
    pool_enabled: bool = False
    pool_size: int = 0
    category: str = "quiz"
    questions: List[Question] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = AssessmentStatus(self.status)
        self.due_at = parse_datetime(self.due_at)

    @property
    def is_published(self) -> bool:
        return self.status == AssessmentStatus.PUBLISHED

    @property
    def has_time_limit(self) -> bool:
        return bool(self.time_limit_minutes)

    def total_points(self) -> float:
        """Sum of points over the whole bank."""
        return sum(question.points for question in self.questions)

    def expected_points(self) -> float:
        """Points shown to students before an attempt; see pool_selector.expected_points."""
        from campus.assessments.pool_selector import expected_points
        return expected_points(self.questions, self.pool_enabled, self.pool_size)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assessment':
        """
        Create an assessment from dictionary data.

        Args:
            data: Dictionary containing assessment data

        Returns:
            New assessment instance
        """
        return cls(
            id=str(data["id"]),
            course_id=str(data["course_id"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=data.get("status", AssessmentStatus.DRAFT.value),
            due_at=data.get("due_at"),
            time_limit_minutes=data.get("time_limit_minutes"),
            attempts_allowed=data.get("attempts_allowed"),
            randomize_order=bool(data.get("randomize_order", False)),
            pool_enabled=bool(data.get("pool_enabled", False)),
            pool_size=int(data.get("pool_size") or 0),
            category=data.get("category") or "quiz",
            questions=[question_from_dict(q) for q in data.get("questions") or []],
        )


FINISHED_STATES = frozenset({
    AttemptState.SUBMITTED,
    AttemptState.TIMED_OUT,
    AttemptState.AUTO_GRADED,
    AttemptState.PENDING_MANUAL_REVIEW,
    AttemptState.RELEASED,
})


@dataclass
class Attempt:
    """
    One student's pass at an assessment.

    ``selection`` is a frozen copy of the questions drawn at start; later
    edits to the bank never reach it.
    """

    id: str
    assessment_id: str
    course_id: str
    student_id: str
    attempt_number: int
    selection: List[Question] = field(default_factory=list)
    answers: Dict[str, Answer] = field(default_factory=dict)
    state: AttemptState = AttemptState.NOT_STARTED
    auto_score: float = 0.0
    score: Optional[float] = None
    needs_manual_review: bool = False
    timed_out: bool = False
    released: bool = False
    feedback: Optional[str] = None
    started_at: Optional[datetime.datetime] = None
    submitted_at: Optional[datetime.datetime] = None
    deadline_at: Optional[datetime.datetime] = None
    graded_by: Optional[str] = None
    graded_at: Optional[datetime.datetime] = None
    title: str = ""
    category: str = "quiz"
    version: int = 0

    @property
    def is_finished(self) -> bool:
        """Whether the attempt has left the in-progress state."""
        return self.state in FINISHED_STATES

    def points_possible(self) -> float:
        return sum(question.points for question in self.selection)

    def copy(self) -> 'Attempt':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the attempt to a dictionary."""
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "attempt_number": self.attempt_number,
            "selection": [question.to_dict() for question in self.selection],
            "answers": {qid: answer_to_dict(answer) for qid, answer in self.answers.items()},
            "state": self.state.value,
            "auto_score": self.auto_score,
            "score": self.score,
            "needs_manual_review": self.needs_manual_review,
            "timed_out": self.timed_out,
            "released": self.released,
            "feedback": self.feedback,
            "started_at": serialize(self.started_at),
            "submitted_at": serialize(self.submitted_at),
            "deadline_at": serialize(self.deadline_at),
            "graded_by": self.graded_by,
            "graded_at": serialize(self.graded_at),
            "title": self.title,
            "category": self.category,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attempt':
        """Rebuild an attempt from ``to_dict`` output."""
        return cls(
            id=data["id"],
            assessment_id=data["assessment_id"],
            course_id=data["course_id"],
            student_id=data["student_id"],
            attempt_number=int(data["attempt_number"]),
            selection=[question_from_dict(q) for q in data.get("selection") or []],
            answers={
                qid: answer_from_dict(answer)
                for qid, answer in (data.get("answers") or {}).items()
            },
            state=AttemptState(data.get("state", AttemptState.NOT_STARTED.value)),
            auto_score=float(data.get("auto_score") or 0.0),
            score=data.get("score"),
            needs_manual_review=bool(data.get("needs_manual_review", False)),
            timed_out=bool(data.get("timed_out", False)),
            released=bool(data.get("released", False)),
            feedback=data.get("feedback"),
            started_at=parse_datetime(data.get("started_at")),
            submitted_at=parse_datetime(data.get("submitted_at")),
            deadline_at=parse_datetime(data.get("deadline_at")),
            graded_by=data.get("graded_by"),
            graded_at=parse_datetime(data.get("graded_at")),
            title=data.get("title") or "",
            category=data.get("category") or "quiz",
            version=int(data.get("version") or 0),
        )
