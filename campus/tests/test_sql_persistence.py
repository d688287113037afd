"""
Tests for the SQLAlchemy persistence gateway, against a temporary SQLite file.
"""

import pytest

from campus.assessments.models import Attempt, AttemptState, ChoiceAnswer
from campus.assessments.service import AttemptService
from campus.collaborators.authorization import RosterAuthorization
from campus.collaborators.sql_persistence import SqlPersistence
from campus.common.error_handling import AttemptVersionConflict
from campus.gradebook.models import CategoryWeight, GradedItem
from campus.tests.factories import (
    COURSE_ID,
    INSTRUCTOR_ID,
    STUDENT_ID,
    FakeClock,
    FakeTimerFactory,
    make_assessment,
    mc,
    sa,
)


async def open_store(tmp_path):
    store = SqlPersistence(f"sqlite+aiosqlite:///{tmp_path}/campus-test.db", echo=False)
    await store.create_schema()
    await store.enroll(COURSE_ID, INSTRUCTOR_ID, "instructor")
    await store.enroll(COURSE_ID, STUDENT_ID, "student")
    return store


@pytest.mark.asyncio
async def test_assessment_round_trip(tmp_path):
    store = await open_store(tmp_path)
    try:
        assessment = make_assessment(questions=make_assessment().questions + [sa("q3")])
        await store.save_assessment(assessment)

        loaded = await store.load_assessment("quiz1")
        assert loaded.title == assessment.title
        assert [q.to_dict() for q in loaded.questions] == [q.to_dict() for q in assessment.questions]
        assert [q.id for q in await store.load_question_bank("quiz1")] == ["q1", "q2", "q3"]
        assert await store.load_assessment("missing") is None
        assert await store.load_question_bank("missing") == []
    finally:
        await store.dispose()


@pytest.mark.asyncio
async def test_enrollments_and_roles(tmp_path):
    store = await open_store(tmp_path)
    try:
        assert await store.load_enrolled_user_ids(COURSE_ID, "student") == [STUDENT_ID]
        assert sorted(await store.load_enrolled_user_ids(COURSE_ID)) == sorted([INSTRUCTOR_ID, STUDENT_ID])
        assert await RosterAuthorization(store).is_staff(INSTRUCTOR_ID, COURSE_ID)
        assert not await RosterAuthorization(store).is_staff(STUDENT_ID, COURSE_ID)
    finally:
        await store.dispose()


@pytest.mark.asyncio
async def test_grades_replace_by_item_and_student(tmp_path):
    store = await open_store(tmp_path)
    try:
        item = GradedItem(
            item_id="quiz1", student_id=STUDENT_ID, course_id=COURSE_ID,
            category="quiz", points_possible=3.0, score=2.0, released=True, title="Week 1 quiz"
        )
        await store.save_grade(item)
        item.score = 3.0
        await store.save_grade(item)

        items = await store.load_graded_items(STUDENT_ID, COURSE_ID)
        assert [(i.item_id, i.score, i.released) for i in items] == [("quiz1", 3.0, True)]
        assert len(await store.load_course_items(COURSE_ID)) == 1
    finally:
        await store.dispose()


@pytest.mark.asyncio
async def test_category_weights_are_replaced_as_a_set(tmp_path):
    store = await open_store(tmp_path)
    try:
        await store.save_category_weights(COURSE_ID, [
            CategoryWeight(COURSE_ID, "homework", 0.3),
            CategoryWeight(COURSE_ID, "exam", 0.7),
        ])
        await store.save_category_weights(COURSE_ID, [CategoryWeight(COURSE_ID, "quiz", 1.0)])

        weights = await store.load_category_weights(COURSE_ID)
        assert [(w.category, w.weight) for w in weights] == [("quiz", 1.0)]

        await store.save_category_weights(COURSE_ID, [])
        assert await store.load_category_weights(COURSE_ID) == []
    finally:
        await store.dispose()


@pytest.mark.asyncio
async def test_attempt_lifecycle_through_the_service(tmp_path):
    store = await open_store(tmp_path)
    timers = FakeTimerFactory()
    try:
        service = AttemptService(
            store, RosterAuthorization(store), timer_factory=timers, clock=FakeClock()
        )
        await service.save_assessment(make_assessment())
        attempt = await service.start_attempt("quiz1", STUDENT_ID)
        await service.record_answer(attempt.id, "q1", 1, STUDENT_ID)

        stored = await store.load_attempt(attempt.id)
        assert stored.state == AttemptState.IN_PROGRESS
        assert stored.answers == {"q1": ChoiceAnswer(1)}
        assert stored.deadline_at == attempt.deadline_at

        await timers.last.fire()

        attempts = await store.load_attempts("quiz1", STUDENT_ID)
        assert len(attempts) == 1
        assert attempts[0].timed_out
        assert attempts[0].state == AttemptState.AUTO_GRADED
        assert attempts[0].version == 3

        grades = await store.load_graded_items(STUDENT_ID, COURSE_ID)
        assert [(g.score, g.points_possible) for g in grades] == [(2.0, 3.0)]
    finally:
        await store.dispose()


def stored_attempt(version):
    return Attempt(
        id="a1", assessment_id="quiz1", course_id=COURSE_ID, student_id=STUDENT_ID,
        attempt_number=1, selection=[mc("q1", 2.0)], title="Week 1 quiz", version=version
    )


@pytest.mark.asyncio
async def test_stale_attempt_writes_are_refused(tmp_path):
    store = await open_store(tmp_path)
    try:
        await store.save_attempt(stored_attempt(1), expected_version=0)
        with pytest.raises(AttemptVersionConflict):
            await store.save_attempt(stored_attempt(1), expected_version=0)

        await store.save_attempt(stored_attempt(2), expected_version=1)
        with pytest.raises(AttemptVersionConflict) as info:
            await store.save_attempt(stored_attempt(2), expected_version=1)
        assert info.value.stored_version == 2
        assert (await store.load_attempt("a1")).version == 2
    finally:
        await store.dispose()


@pytest.mark.asyncio
async def test_refused_commit_writes_no_grade(tmp_path):
    store = await open_store(tmp_path)
    try:
        await store.save_attempt(stored_attempt(1), expected_version=0)
        await store.save_attempt(stored_attempt(2), expected_version=1)

        finished = stored_attempt(3)
        finished.state = AttemptState.AUTO_GRADED
        grade = GradedItem(
            item_id="quiz1", student_id=STUDENT_ID, course_id=COURSE_ID,
            category="quiz", points_possible=2.0, score=2.0, released=True
        )
        with pytest.raises(AttemptVersionConflict):
            await store.commit_attempt(finished, 1, grade)
        assert await store.load_grade("quiz1", STUDENT_ID) is None
        assert (await store.load_attempt("a1")).state == AttemptState.NOT_STARTED

        await store.commit_attempt(finished, 2, grade)
        assert (await store.load_grade("quiz1", STUDENT_ID)).score == 2.0
        assert (await store.load_attempt("a1")).state == AttemptState.AUTO_GRADED

        await store.delete_grade("quiz1", STUDENT_ID)
        assert await store.load_graded_items(STUDENT_ID, COURSE_ID) == []
    finally:
        await store.dispose()
