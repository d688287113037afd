"""
Definition-time Validation

Checks run when an assessment is saved. Problems are collected per field
so the author sees every issue at once; nothing is persisted on failure.
"""

from typing import Dict

from campus.assessments.models import (
    Assessment,
    MultipleChoiceQuestion,
    Question,
    TrueFalseQuestion,
)
from campus.common.error_handling import AssessmentValidationError, QuestionValidationError


def question_errors(question: Question) -> Dict[str, str]:
    """
    Collect the problems of a single question definition.

    Args:
        question: The question to check

    Returns:
        Mapping of field name to message; empty when the question is valid
    """
    errors: Dict[str, str] = {}

    if not (question.prompt or "").strip():
        errors["prompt"] = "Question text is required"

    if not isinstance(question.points, (int, float)) or question.points < 0:
        errors["points"] = "Points must be a non-negative number"

    if isinstance(question, MultipleChoiceQuestion):
        options = question.options or []
        if len(options) < 2:
            errors["options"] = "At least two options are required"
        elif any(not str(option).strip() for option in options):
            errors["options"] = "Options cannot be blank"
        if (not isinstance(question.correct_index, int)
                or isinstance(question.correct_index, bool)
                or not 0 <= question.correct_index < len(options)):
            errors["correct_index"] = "Correct answer must point at one of the options"

    elif isinstance(question, TrueFalseQuestion):
        if question.correct_answer is None:
            errors["correct_answer"] = "Correct answer must be \"True\" or \"False\""

    return errors


def validate_question(question: Question) -> None:
    """
    Validate a question definition.

    Raises:
        QuestionValidationError: If the question is malformed
    """
    errors = question_errors(question)
    if errors:
        raise QuestionValidationError(question.id, errors)


def validate_assessment(assessment: Assessment) -> None:
    """
    Validate an assessment definition before it is saved.

    Args:
        assessment: The assessment to check

    Raises:
        AssessmentValidationError: With every problem found, keyed by field
    """
    errors: Dict[str, str] = {}

    if not (assessment.title or "").strip():
        errors["title"] = "Title is required"

    if not assessment.questions:
        errors["questions"] = "At least one question is required"

    seen = set()
    for position, question in enumerate(assessment.questions):
        key = question.id or f"#{position + 1}"
        if not question.id:
            errors[f"questions[{key}].id"] = "Question id is required"
        elif question.id in seen:
            errors[f"questions[{key}].id"] = f"Duplicate question id {question.id}"
        seen.add(question.id)
        for field_name, message in question_errors(question).items():
            errors[f"questions[{key}].{field_name}"] = message

    if assessment.pool_enabled:
        bank_size = len(assessment.questions)
        if assessment.pool_size < 1:
            errors["pool_size"] = "Pool size must be at least 1"
        elif assessment.pool_size > bank_size:
            errors["pool_size"] = (
                f"Pool size {assessment.pool_size} exceeds the {bank_size} questions in the bank"
            )

    if assessment.time_limit_minutes is not None and assessment.time_limit_minutes < 0:
        errors["time_limit_minutes"] = "Time limit cannot be negative"

    if assessment.attempts_allowed is not None and assessment.attempts_allowed < 1:
        errors["attempts_allowed"] = "At least one attempt must be allowed"

    if errors:
        raise AssessmentValidationError(errors, assessment_id=assessment.id)
