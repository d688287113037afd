"""
Tests for question records, the answer union and attempt records.
"""

import pytest

from campus.assessments.models import (
    Assessment,
    Attempt,
    AttemptState,
    BooleanAnswer,
    ChoiceAnswer,
    MultipleChoiceQuestion,
    ShortAnswerQuestion,
    TextAnswer,
    TrueFalse,
    TrueFalseQuestion,
    parse_answer,
    question_from_dict,
)
from campus.common.error_handling import AnswerValidationError, QuestionValidationError
from campus.tests.factories import START, make_assessment, mc, sa, tf


class TestQuestionRecords:
    def test_question_from_dict_builds_typed_records(self):
        question = question_from_dict({
            "id": "q1", "type": "multiple_choice", "prompt": "Pick", "points": 2,
            "options": ["a", "b"], "correct_index": 1
        })
        assert isinstance(question, MultipleChoiceQuestion)
        assert question.points == 2.0
        assert question.correct_index == 1

        question = question_from_dict({"id": "q2", "type": "true_false", "prompt": "Sky is blue", "correct_answer": True})
        assert isinstance(question, TrueFalseQuestion)
        assert question.correct_answer == TrueFalse.TRUE

        question = question_from_dict({"id": "q3", "type": "short_answer", "prompt": "Why?"})
        assert isinstance(question, ShortAnswerQuestion)
        assert not question.auto_gradable

    def test_unknown_type_is_rejected(self):
        with pytest.raises(QuestionValidationError) as exc_info:
            question_from_dict({"id": "q1", "type": "essay", "prompt": "Write"})
        assert "type" in exc_info.value.errors

    def test_true_false_value_must_be_exact(self):
        with pytest.raises(QuestionValidationError):
            TrueFalseQuestion(id="q1", prompt="p", correct_answer="true")

    def test_to_dict_tags_the_type(self):
        data = tf("q9", correct=TrueFalse.FALSE).to_dict()
        assert data["type"] == "true_false"
        assert data["correct_answer"] == "False"


class TestParseAnswer:
    def test_choice_index(self):
        question = mc("q1")
        assert parse_answer(question, 2) == ChoiceAnswer(2)
        assert parse_answer(question, "3") == ChoiceAnswer(3)

    @pytest.mark.parametrize("raw", [4, -1, "x", None, True, 1.5])
    def test_invalid_choice_is_rejected(self, raw):
        with pytest.raises(AnswerValidationError):
            parse_answer(mc("q1"), raw)

    def test_true_false_accepts_exact_strings_and_bools(self):
        question = tf("q1")
        assert parse_answer(question, "True") == BooleanAnswer(TrueFalse.TRUE)
        assert parse_answer(question, False) == BooleanAnswer(TrueFalse.FALSE)

    @pytest.mark.parametrize("raw", ["true", "FALSE", "yes", 1, None])
    def test_true_false_rejects_anything_else(self, raw):
        with pytest.raises(AnswerValidationError):
            parse_answer(tf("q1"), raw)

    def test_short_answer_takes_text(self):
        assert parse_answer(sa("q1"), "Because") == TextAnswer("Because")
        with pytest.raises(AnswerValidationError):
            parse_answer(sa("q1"), 3)


class TestAssessmentAndAttempt:
    def test_expected_points_for_pool(self):
        questions = [mc("q1", 1), mc("q2", 2), mc("q3", 4)]
        assessment = make_assessment(questions=questions, pool_enabled=True, pool_size=2)
        assert assessment.total_points() == 7
        assert assessment.expected_points() == pytest.approx(4.7)

    def test_assessment_dict_round_trip(self):
        assessment = make_assessment(due_at="2026-03-09T23:59:00")
        rebuilt = Assessment.from_dict(assessment.to_dict())
        assert rebuilt.status == assessment.status
        assert rebuilt.due_at == assessment.due_at
        assert rebuilt.due_at.tzinfo is not None
        assert [q.to_dict() for q in rebuilt.questions] == [q.to_dict() for q in assessment.questions]

    def test_attempt_dict_round_trip_keeps_answers_and_selection(self):
        attempt = Attempt(
            id="a1", assessment_id="quiz1", course_id="c1", student_id="alice",
            attempt_number=1, selection=[mc("q1", 2), tf("q2"), sa("q3")],
            answers={"q1": ChoiceAnswer(1), "q2": BooleanAnswer(TrueFalse.FALSE), "q3": TextAnswer("x")},
            state=AttemptState.IN_PROGRESS, started_at=START,
        )
        rebuilt = Attempt.from_dict(attempt.to_dict())
        assert rebuilt.answers == attempt.answers
        assert rebuilt.state == AttemptState.IN_PROGRESS
        assert rebuilt.started_at == START
        assert rebuilt.points_possible() == 6.0

    def test_attempt_copy_is_deep(self):
        attempt = Attempt(id="a1", assessment_id="quiz1", course_id="c1", student_id="alice",
                          attempt_number=1, selection=[mc("q1")])
        clone = attempt.copy()
        clone.selection[0].points = 10
        clone.answers["q1"] = ChoiceAnswer(0)
        assert attempt.selection[0].points == 1.0
        assert attempt.answers == {}
