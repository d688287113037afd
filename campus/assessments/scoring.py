"""
Auto-Scoring Engine

Pure scoring of an attempt's answers against its frozen selection.
Multiple-choice and true/false questions are all-or-nothing; short-answer
questions score zero here and flag the attempt for manual review.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from campus.assessments.models import (
    Answer,
    BooleanAnswer,
    ChoiceAnswer,
    MultipleChoiceQuestion,
    Question,
    TrueFalseQuestion,
)


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring an attempt."""
    auto_score: float
    needs_manual_review: bool


def score_question(question: Question, answer: Optional[Answer]) -> float:
    """
    Points earned on one question.

    Missing or mismatched answers earn zero; they are never an error.
    """
    if isinstance(question, MultipleChoiceQuestion):
        if isinstance(answer, ChoiceAnswer) and answer.index == question.correct_index:
            return question.points
        return 0.0

    if isinstance(question, TrueFalseQuestion):
        if (isinstance(answer, BooleanAnswer)
                and question.correct_answer is not None
                and answer.value.value == question.correct_answer.value):
            return question.points
        return 0.0

    return 0.0


def score_attempt(selection: Sequence[Question], answers: Mapping[str, Answer]) -> ScoreResult:
    """
    Score a selection of questions.

    Args:
        selection: The attempt's frozen questions
        answers: Submitted answers keyed by question id

    Returns:
        The objective subtotal and whether a human must grade the rest
    """
    auto_score = 0.0
    needs_manual_review = False
    for question in selection:
        if not question.auto_gradable:
            needs_manual_review = True
            continue
        auto_score += score_question(question, answers.get(question.id))
    return ScoreResult(auto_score=auto_score, needs_manual_review=needs_manual_review)
