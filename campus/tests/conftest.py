"""Shared fixtures for the campus test suite."""

import pytest

from campus.assessments.service import AttemptService
from campus.collaborators.authorization import RosterAuthorization
from campus.collaborators.notifications import RecordingNotifier
from campus.collaborators.persistence import MemoryPersistence
from campus.common.config import AssessmentConfig, GradebookConfig
from campus.tests.factories import (
    COURSE_ID,
    INSTRUCTOR_ID,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    FakeClock,
    FakeTimerFactory,
)


@pytest.fixture
def persistence():
    store = MemoryPersistence()
    store.enroll(COURSE_ID, INSTRUCTOR_ID, "instructor")
    store.enroll(COURSE_ID, STUDENT_ID, "student")
    store.enroll(COURSE_ID, OTHER_STUDENT_ID, "student")
    return store


@pytest.fixture
def authorization(persistence):
    return RosterAuthorization(persistence)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def assessment_config():
    return AssessmentConfig(
        default_time_limit_minutes=20,
        default_attempts=2,
        seconds_per_minute=60,
        staff_bypass_due_date=True,
    )


@pytest.fixture
def gradebook_config():
    return GradebookConfig(weight_tolerance=0.1, weight_policy="renormalize", display_precision=1)


@pytest.fixture
def service(persistence, authorization, notifier, timers, clock, assessment_config):
    counter = iter(range(1, 1000))
    return AttemptService(
        persistence,
        authorization,
        notifier=notifier,
        timer_factory=timers,
        clock=clock,
        config=assessment_config,
        id_factory=lambda: f"attempt-{next(counter)}",
    )
