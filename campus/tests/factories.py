"""Test doubles and record builders shared across the suite."""

import datetime
from typing import List, Optional

from campus.assessments.models import (
    Assessment,
    AssessmentStatus,
    MultipleChoiceQuestion,
    ShortAnswerQuestion,
    TrueFalse,
    TrueFalseQuestion,
)

COURSE_ID = "c1"
INSTRUCTOR_ID = "prof"
STUDENT_ID = "alice"
OTHER_STUDENT_ID = "bob"

START = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=datetime.timezone.utc)


class FakeTimer:
    """Timer stand-in that only fires when a test says so."""

    def __init__(self, seconds, on_expire):
        self.seconds = seconds
        self.on_expire = on_expire
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        if not self.fired:
            self.cancelled = True

    async def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        await self.on_expire()


class FakeTimerFactory:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, seconds, on_expire):
        timer = FakeTimer(seconds, on_expire)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> Optional[FakeTimer]:
        return self.timers[-1] if self.timers else None


class FakeClock:
    def __init__(self, now: datetime.datetime = START):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + datetime.timedelta(**kwargs)


def mc(qid: str, points: float = 1.0, correct_index: int = 1) -> MultipleChoiceQuestion:
    return MultipleChoiceQuestion(
        id=qid,
        prompt=f"Question {qid}",
        points=points,
        options=["A", "B", "C", "D"],
        correct_index=correct_index,
    )


def tf(qid: str, points: float = 1.0, correct: TrueFalse = TrueFalse.TRUE) -> TrueFalseQuestion:
    return TrueFalseQuestion(id=qid, prompt=f"Statement {qid}", points=points, correct_answer=correct)


def sa(qid: str, points: float = 3.0) -> ShortAnswerQuestion:
    return ShortAnswerQuestion(id=qid, prompt=f"Explain {qid}", points=points, reference_answer="Because")


def make_assessment(
    assessment_id: str = "quiz1",
    questions=None,
    status: AssessmentStatus = AssessmentStatus.PUBLISHED,
    **overrides
) -> Assessment:
    fields = dict(
        id=assessment_id,
        course_id=COURSE_ID,
        title="Week 1 quiz",
        status=status,
        questions=questions if questions is not None else [mc("q1", 2.0), tf("q2")],
        attempts_allowed=2,
        time_limit_minutes=20,
    )
    fields.update(overrides)
    return Assessment(**fields)


