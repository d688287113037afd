"""
Assessments

Question and assessment records, the pool selector, the auto-scoring
engine and the attempt state machine. Services are imported from their
modules directly.
"""

from campus.assessments.models import (
    Answer,
    Assessment,
    AssessmentStatus,
    Attempt,
    AttemptState,
    BooleanAnswer,
    ChoiceAnswer,
    MultipleChoiceQuestion,
    Question,
    QuestionType,
    ShortAnswerQuestion,
    TextAnswer,
    TrueFalse,
    TrueFalseQuestion,
)

__all__ = [
    'Answer',
    'Assessment',
    'AssessmentStatus',
    'Attempt',
    'AttemptState',
    'BooleanAnswer',
    'ChoiceAnswer',
    'MultipleChoiceQuestion',
    'Question',
    'QuestionType',
    'ShortAnswerQuestion',
    'TextAnswer',
    'TrueFalse',
    'TrueFalseQuestion',
]
