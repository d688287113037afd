"""
Tests for weight validation, score statistics, display helpers and the
gradebook service.
"""

import pytest

from campus.common.error_handling import AuthorizationError, ErrorCode, WeightValidationError
from campus.gradebook.formatting import PLACEHOLDER, format_percent, format_points
from campus.gradebook.models import GradedItem, WeightPolicy
from campus.gradebook.service import GradebookService
from campus.gradebook.statistics import item_statistics, summarize_scores
from campus.gradebook.weights import validate_weights
from campus.tests.factories import COURSE_ID, INSTRUCTOR_ID, OTHER_STUDENT_ID, STUDENT_ID


def graded(item_id, student_id, category, score, possible, released=True):
    return GradedItem(
        item_id=item_id,
        student_id=student_id,
        course_id=COURSE_ID,
        category=category,
        points_possible=possible,
        score=score,
        released=released,
    )


@pytest.fixture
def gradebook(persistence, authorization, gradebook_config):
    return GradebookService(persistence, authorization, gradebook_config)


class TestWeights:
    def test_percentages_become_fractions(self):
        result = validate_weights(COURSE_ID, {"homework": 30, "exam": 70})
        assert [(w.category, w.weight) for w in result] == [("homework", 0.3), ("exam", 0.7)]

    def test_total_within_tolerance(self):
        result = validate_weights(COURSE_ID, {"homework": 33.3, "exam": 33.3, "quiz": 33.35})
        assert len(result) == 3

    def test_total_outside_tolerance(self):
        with pytest.raises(WeightValidationError) as exc_info:
            validate_weights(COURSE_ID, {"homework": 33.3, "exam": 33.2, "quiz": 33.3})
        assert exc_info.value.code == ErrorCode.WEIGHTS_INVALID
        assert exc_info.value.details["total_percent"] == pytest.approx(99.8)

    def test_empty_means_unweighted(self):
        assert validate_weights(COURSE_ID, {}) == []

    @pytest.mark.parametrize("percentages", [
        {"homework": -10, "exam": 110},
        {"": 50, "exam": 50},
        {"homework": None, "exam": 100},
    ])
    def test_invalid_entries(self, percentages):
        with pytest.raises(WeightValidationError):
            validate_weights(COURSE_ID, percentages)

    def test_names_repeated_after_trimming(self):
        with pytest.raises(WeightValidationError) as exc_info:
            validate_weights(COURSE_ID, {"hw": 50, "hw ": 50})
        assert "hw" in exc_info.value.errors

    def test_names_are_trimmed(self):
        result = validate_weights(COURSE_ID, {" hw ": 40, "exam": 60})
        assert [w.category for w in result] == ["hw", "exam"]


class TestStatistics:
    def test_summary_ignores_ungraded(self):
        summary = summarize_scores([4, None, 8, 6])
        assert summary.count == 3
        assert summary.average == pytest.approx(6.0)
        assert summary.median == 6
        assert (summary.minimum, summary.maximum) == (4, 8)

    def test_empty_summary(self):
        summary = summarize_scores([])
        assert summary.count == 0
        assert summary.average is None

    def test_grouped_by_item(self):
        items = [
            graded("quiz1", STUDENT_ID, "quiz", 2, 3),
            graded("quiz1", OTHER_STUDENT_ID, "quiz", 3, 3, released=False),
            graded("hw1", STUDENT_ID, "homework", 10, 20),
        ]
        stats = item_statistics(items)
        assert list(stats) == ["quiz1", "hw1"]
        assert stats["quiz1"].average == pytest.approx(2.5)
        assert stats["hw1"].count == 1


class TestFormatting:
    def test_percent(self):
        assert format_percent(83.0) == "83.0%"
        assert format_percent(83.456, precision=2) == "83.46%"
        assert format_percent(None) == PLACEHOLDER

    def test_points(self):
        assert format_points(4.5, 5) == "4.5 / 5"
        assert format_points(None, 5) == f"{PLACEHOLDER} / 5"


class TestGradebookService:
    @pytest.mark.asyncio
    async def test_course_grade_uses_saved_weights(self, gradebook, persistence):
        await persistence.save_grade(graded("hw1", STUDENT_ID, "homework", 18, 20))
        await persistence.save_grade(graded("exam1", STUDENT_ID, "exam", 40, 50))
        await gradebook.save_category_weights(COURSE_ID, {"homework": 30, "exam": 70}, actor_id=INSTRUCTOR_ID)

        result = await gradebook.course_grade(STUDENT_ID, COURSE_ID, actor_id=STUDENT_ID)
        assert result.overall_percent == pytest.approx(83.0)

    @pytest.mark.asyncio
    async def test_no_grades_yet(self, gradebook):
        result = await gradebook.course_grade(STUDENT_ID, COURSE_ID)
        assert result.overall_percent is None
        assert format_percent(result.overall_percent) == PLACEHOLDER

    @pytest.mark.asyncio
    async def test_zero_fill_policy_from_config(self, persistence, authorization, gradebook_config):
        gradebook_config.weight_policy = "zero_fill"
        gradebook = GradebookService(persistence, authorization, gradebook_config)
        assert gradebook.policy == WeightPolicy.ZERO_FILL

        await persistence.save_grade(graded("hw1", STUDENT_ID, "homework", 18, 20))
        await gradebook.save_category_weights(COURSE_ID, {"homework": 30, "exam": 70})
        result = await gradebook.course_grade(STUDENT_ID, COURSE_ID)
        assert result.overall_percent == pytest.approx(27.0)

    @pytest.mark.asyncio
    async def test_invalid_weights_are_not_saved(self, gradebook, persistence):
        with pytest.raises(WeightValidationError):
            await gradebook.save_category_weights(COURSE_ID, {"homework": 30, "exam": 60})
        assert await gradebook.category_weights(COURSE_ID) == []

    @pytest.mark.asyncio
    async def test_clearing_weights_returns_to_unweighted(self, gradebook, persistence):
        await persistence.save_grade(graded("hw1", STUDENT_ID, "homework", 18, 20))
        await persistence.save_grade(graded("exam1", STUDENT_ID, "exam", 40, 50))
        await gradebook.save_category_weights(COURSE_ID, {"homework": 30, "exam": 70})
        await gradebook.save_category_weights(COURSE_ID, {})

        result = await gradebook.course_grade(STUDENT_ID, COURSE_ID)
        assert not result.weighted
        assert result.overall_percent == pytest.approx(100.0 * 58 / 70)

    @pytest.mark.asyncio
    async def test_students_only_see_their_own_grade(self, gradebook):
        with pytest.raises(AuthorizationError):
            await gradebook.course_grade(STUDENT_ID, COURSE_ID, actor_id=OTHER_STUDENT_ID)
        await gradebook.course_grade(STUDENT_ID, COURSE_ID, actor_id=INSTRUCTOR_ID)

    @pytest.mark.asyncio
    async def test_weights_and_statistics_are_staff_only(self, gradebook, persistence):
        with pytest.raises(AuthorizationError):
            await gradebook.save_category_weights(COURSE_ID, {"homework": 100}, actor_id=STUDENT_ID)
        with pytest.raises(AuthorizationError):
            await gradebook.item_statistics(COURSE_ID, actor_id=STUDENT_ID)

        await persistence.save_grade(graded("quiz1", STUDENT_ID, "quiz", 2, 3))
        stats = await gradebook.item_statistics(COURSE_ID, actor_id=INSTRUCTOR_ID)
        assert stats["quiz1"].maximum == 2
