"""
Tests for suggestion parsing and draft review.
"""

import pytest

from campus.assessments.drafts import (
    DraftReviewer,
    DraftStatus,
    normalize_assessment_draft,
    normalize_score_draft,
)
from campus.assessments.models import AssessmentStatus, AttemptState, MultipleChoiceQuestion
from campus.collaborators.suggestions import CannedSuggester, parse_suggestion_text
from campus.common.error_handling import (
    AssessmentValidationError,
    AttemptStateError,
    AuthorizationError,
    DraftStateError,
    NotFoundError,
    ValidationError,
)
from campus.tests.factories import COURSE_ID, INSTRUCTOR_ID, STUDENT_ID, make_assessment, mc, sa

SUGGESTED_QUIZ = {
    "title": "Recursion check",
    "description": "Five minutes on base cases",
    "questions": [
        {"type": "multiple_choice", "prompt": "Base case of fact(n)?", "options": ["n == 0", "n == 5"], "correct_index": 0},
        {"type": "true_false", "prompt": "Every recursion terminates", "correct_answer": "False"},
        {"type": "essay", "prompt": "Unsupported"},
        "not a question",
    ],
}


class TestSuggestionParsing:
    def test_fenced_json(self):
        assert parse_suggestion_text('```json\n{"score": 4}\n```') == {"score": 4}

    def test_json_inside_prose(self):
        assert parse_suggestion_text('Here you go: {"score": 2, "feedback": "ok"} Thanks!') == {
            "score": 2, "feedback": "ok"
        }

    @pytest.mark.parametrize("text", ["", "   ", "no json here"])
    def test_unreadable_text(self, text):
        with pytest.raises(ValueError):
            parse_suggestion_text(text)

    def test_assessment_payload_is_normalized(self):
        normalized = normalize_assessment_draft(SUGGESTED_QUIZ)
        assert normalized["title"] == "Recursion check"
        assert [q.id for q in normalized["questions"]] == ["q1", "q2"]
        assert isinstance(normalized["questions"][0], MultipleChoiceQuestion)

    def test_wrong_shapes_become_empty(self):
        normalized = normalize_assessment_draft({"title": 12, "questions": "lots"})
        assert normalized == {"title": "", "description": "", "questions": []}
        assert normalize_assessment_draft(["not", "a", "dict"])["questions"] == []

    def test_score_payload_is_normalized(self):
        assert normalize_score_draft('{"score": "high", "feedback": 3}') == {"score": None, "feedback": ""}
        assert normalize_score_draft({"score": 4, "feedback": "Clear"}) == {"score": 4.0, "feedback": "Clear"}


@pytest.fixture
def suggester():
    return CannedSuggester(assessment=SUGGESTED_QUIZ, score={"score": 2.5, "feedback": "Partly right"})


@pytest.fixture
def reviewer(suggester, service):
    return DraftReviewer(suggester, service)


async def pending_attempt(service):
    await service.save_assessment(make_assessment(questions=[mc("q1", 2.0), sa("q2", 3.0)]))
    attempt = await service.start_attempt("quiz1", STUDENT_ID)
    await service.record_answer(attempt.id, "q2", "Because the stack grows", STUDENT_ID)
    return await service.submit_attempt(attempt.id, STUDENT_ID)


class TestAssessmentDrafts:
    @pytest.mark.asyncio
    async def test_confirm_saves_an_unpublished_assessment(self, reviewer, persistence):
        draft = await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)
        assert draft.status == DraftStatus.PENDING
        assert await persistence.load_assessment(draft.id) is None

        assessment = await reviewer.confirm_assessment(
            draft.id, INSTRUCTOR_ID, edits={"title": "Recursion (edited)", "status": "published"}
        )

        assert assessment.status == AssessmentStatus.DRAFT
        assert assessment.title == "Recursion (edited)"
        assert len(assessment.questions) == 2
        assert (await persistence.load_assessment(assessment.id)).title == "Recursion (edited)"
        assert reviewer.get_draft(draft.id).status == DraftStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_draft_can_only_be_used_once(self, reviewer):
        draft = await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)
        await reviewer.reject(draft.id, INSTRUCTOR_ID)
        with pytest.raises(DraftStateError):
            await reviewer.confirm_assessment(draft.id, INSTRUCTOR_ID)
        with pytest.raises(DraftStateError):
            await reviewer.reject(draft.id, INSTRUCTOR_ID)

    @pytest.mark.asyncio
    async def test_invalid_edits_keep_the_draft_pending(self, reviewer):
        draft = await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)
        with pytest.raises(AssessmentValidationError):
            await reviewer.confirm_assessment(draft.id, INSTRUCTOR_ID, edits={"questions": []})
        assert reviewer.get_draft(draft.id).status == DraftStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("edits, field", [
        ({"foo": 1}, "foo"),
        ({"questions": ["not a question"]}, "questions"),
        ({"questions": [{"type": "multiple_choice", "points": "lots"}]}, "questions"),
        ({"pool_size": "three", "pool_enabled": True}, "edits"),
    ])
    async def test_unusable_edits_are_validation_errors(self, reviewer, edits, field):
        draft = await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)
        with pytest.raises(AssessmentValidationError) as info:
            await reviewer.confirm_assessment(draft.id, INSTRUCTOR_ID, edits=edits)
        assert field in info.value.errors
        assert reviewer.get_draft(draft.id).status == DraftStatus.PENDING

    @pytest.mark.asyncio
    async def test_only_staff_reject_drafts(self, reviewer):
        draft = await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)
        with pytest.raises(AuthorizationError):
            await reviewer.reject(draft.id, STUDENT_ID)
        assert reviewer.get_draft(draft.id).status == DraftStatus.PENDING

    @pytest.mark.asyncio
    async def test_students_cannot_request_drafts(self, reviewer):
        with pytest.raises(AuthorizationError):
            await reviewer.propose_assessment(COURSE_ID, "recursion", STUDENT_ID)

    @pytest.mark.asyncio
    async def test_unparseable_suggestion(self, service):
        reviewer = DraftReviewer(CannedSuggester(assessment="sorry, no quiz today"), service)
        with pytest.raises(ValidationError):
            await reviewer.propose_assessment(COURSE_ID, "recursion", INSTRUCTOR_ID)

    @pytest.mark.asyncio
    async def test_unknown_draft(self, reviewer):
        with pytest.raises(NotFoundError):
            await reviewer.reject("missing", INSTRUCTOR_ID)


class TestScoreDrafts:
    @pytest.mark.asyncio
    async def test_confirmed_score_releases_the_attempt(self, reviewer, service):
        attempt = await pending_attempt(service)
        draft = await reviewer.propose_score(attempt.id, INSTRUCTOR_ID)
        assert draft.score == 2.5

        graded = await reviewer.confirm_score(draft.id, INSTRUCTOR_ID, feedback="Good start")
        assert graded.state == AttemptState.RELEASED
        assert graded.score == 2.5
        assert graded.feedback == "Good start"

    @pytest.mark.asyncio
    async def test_reviewer_can_override_the_score(self, reviewer, service):
        attempt = await pending_attempt(service)
        draft = await reviewer.propose_score(attempt.id, INSTRUCTOR_ID)
        graded = await reviewer.confirm_score(draft.id, INSTRUCTOR_ID, score=4.0)
        assert graded.score == 4.0
        assert graded.feedback == "Partly right"

    @pytest.mark.asyncio
    async def test_rejected_score_changes_nothing(self, reviewer, service):
        attempt = await pending_attempt(service)
        draft = await reviewer.propose_score(attempt.id, INSTRUCTOR_ID)
        with pytest.raises(AuthorizationError):
            await reviewer.reject(draft.id, STUDENT_ID)
        await reviewer.reject(draft.id, INSTRUCTOR_ID)
        stored = await service.get_attempt(attempt.id)
        assert stored.state == AttemptState.PENDING_MANUAL_REVIEW
        assert stored.score is None

    @pytest.mark.asyncio
    async def test_scores_only_for_attempts_awaiting_review(self, reviewer, service):
        await service.save_assessment(make_assessment())
        attempt = await service.start_attempt("quiz1", STUDENT_ID)
        with pytest.raises(AttemptStateError):
            await reviewer.propose_score(attempt.id, INSTRUCTOR_ID)

    @pytest.mark.asyncio
    async def test_missing_score_needs_reviewer_input(self, service):
        reviewer = DraftReviewer(CannedSuggester(score={"feedback": "No idea"}), service)
        attempt = await pending_attempt(service)
        draft = await reviewer.propose_score(attempt.id, INSTRUCTOR_ID)
        with pytest.raises(ValidationError):
            await reviewer.confirm_score(draft.id, INSTRUCTOR_ID)
        graded = await reviewer.confirm_score(draft.id, INSTRUCTOR_ID, score=1.0)
        assert graded.score == 1.0
