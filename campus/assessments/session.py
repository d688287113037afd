"""
Attempt Session

The state machine for one attempt:

    not_started -> in_progress -> {submitted, timed_out}
                -> {auto_graded, pending_manual_review} -> released

Every write goes through one per-attempt lock. A transition is built on a
copy of the attempt and only becomes current once persistence accepts it,
so a failed save leaves the session exactly where it was. Each write also
names the version it replaces; when another process got there first the
write is refused and the session reloads the stored attempt.
"""

import asyncio
import datetime
from typing import Any, Callable, Optional

from campus.assessments.models import Attempt, AttemptState, parse_answer
from campus.assessments.scoring import score_attempt
from campus.assessments.timer import CountdownTimer, ExpireCallback
from campus.collaborators.notifications import NotificationKind, Notifier, notify_safely
from campus.collaborators.persistence import PersistenceGateway
from campus.common.config import get_config
from campus.common.error_handling import (
    AnswerValidationError,
    AttemptStateError,
    AttemptVersionConflict,
    PersistenceError,
    ValidationError,
)
from campus.common.logger import LoggerAdapter, app_logger
from campus.common.serialization import utc_now
from campus.gradebook.models import GradedItem

logger = app_logger.getChild("assessments.session")

AUTO_GRADER = "auto"

TimerFactory = Callable[[float, ExpireCallback], Any]
Clock = Callable[[], datetime.datetime]

GRADABLE_STATES = frozenset({
    AttemptState.AUTO_GRADED,
    AttemptState.PENDING_MANUAL_REVIEW,
    AttemptState.RELEASED,
})


class AttemptSession:
    """
    Owns one attempt and its countdown timer.

    Args:
        attempt: The attempt record, usually fresh from the attempt service
        persistence: Storage for the attempt and its grade
        notifier: Optional notification collaborator
        timer_factory: Builds the countdown timer; defaults to CountdownTimer
        clock: Returns the current aware datetime; defaults to UTC now
        seconds_per_minute: Timer scale; defaults to the configured value
    """

    def __init__(
        self,
        attempt: Attempt,
        persistence: PersistenceGateway,
        notifier: Optional[Notifier] = None,
        timer_factory: Optional[TimerFactory] = None,
        clock: Optional[Clock] = None,
        seconds_per_minute: Optional[float] = None
    ):
        self._attempt = attempt
        self.persistence = persistence
        self.notifier = notifier
        self.timer_factory = timer_factory or CountdownTimer
        self.clock = clock or utc_now
        self.seconds_per_minute = seconds_per_minute or get_config().assessment.seconds_per_minute
        self._lock = asyncio.Lock()
        self._timer = None
        self.log = LoggerAdapter(logger, {
            "attempt_id": attempt.id,
            "student_id": attempt.student_id,
            "assessment_id": attempt.assessment_id,
        })

    @property
    def attempt(self) -> Attempt:
        """A copy of the current attempt."""
        return self._attempt.copy()

    @property
    def attempt_id(self) -> str:
        return self._attempt.id

    @property
    def state(self) -> AttemptState:
        return self._attempt.state

    @property
    def timer(self):
        return self._timer

    def remaining_seconds(self) -> Optional[float]:
        """Seconds left on the clock, or None for an untimed attempt."""
        if self._attempt.deadline_at is None:
            return None
        if self._attempt.state != AttemptState.IN_PROGRESS:
            return 0.0
        return max(0.0, (self._attempt.deadline_at - self.clock()).total_seconds())

    async def begin(self, time_limit_minutes: Optional[int] = None) -> Attempt:
        """
        Start the attempt and arm the timer when a limit is set.

        Raises:
            AttemptStateError: If the attempt was already started
            PersistenceError: If the attempt could not be saved
        """
        async with self._lock:
            if self._attempt.state != AttemptState.NOT_STARTED:
                raise AttemptStateError(self._attempt.id, self._attempt.state.value, "start")

            now = self.clock()
            updated = self._attempt.copy()
            updated.state = AttemptState.IN_PROGRESS
            updated.started_at = now
            seconds = None
            if time_limit_minutes:
                seconds = time_limit_minutes * self.seconds_per_minute
                updated.deadline_at = now + datetime.timedelta(seconds=seconds)

            result = await self._commit(updated, "start_attempt")
            self.log.info(f"Attempt {updated.id} started (#{updated.attempt_number})")

            if seconds is not None:
                self._arm_timer(seconds)
            return result

    async def resume(self) -> Attempt:
        """
        Re-arm the timer of an in-progress attempt loaded from storage.

        An attempt already past its deadline expires right away.
        """
        if self._attempt.state == AttemptState.IN_PROGRESS and self._attempt.deadline_at is not None:
            if self._timer is None:
                self._arm_timer(self.remaining_seconds())
        return self.attempt

    async def record_answer(self, question_id: str, raw: Any) -> Attempt:
        """
        Record an answer, replacing any earlier answer to the same question.

        Raises:
            AttemptStateError: If the attempt is not in progress or its
                deadline has passed
            AnswerValidationError: If the question is not in the attempt or
                the answer does not fit it
            PersistenceError: If the answer could not be saved; the previous
                answers are kept
        """
        async with self._lock:
            if self._attempt.state != AttemptState.IN_PROGRESS:
                raise AttemptStateError(self._attempt.id, self._attempt.state.value, "answer")

            deadline = self._attempt.deadline_at
            if deadline is not None and self.clock() > deadline:
                raise AttemptStateError(self._attempt.id, "past its deadline", "answer")

            question = next((q for q in self._attempt.selection if q.id == question_id), None)
            if question is None:
                raise AnswerValidationError(
                    question_id, f"Question {question_id} is not part of this attempt"
                )

            updated = self._attempt.copy()
            updated.answers[question_id] = parse_answer(question, raw)
            return await self._commit(updated, "record_answer")

    async def submit(self) -> Attempt:
        """Submit the attempt manually. A second submit is a no-op."""
        return await self._finish(timed_out=False)

    async def expire(self) -> Attempt:
        """Submit the attempt because its time ran out. Called by the timer."""
        return await self._finish(timed_out=True)

    async def _finish(self, timed_out: bool) -> Attempt:
        async with self._lock:
            state = self._attempt.state
            if state == AttemptState.NOT_STARTED:
                raise AttemptStateError(self._attempt.id, state.value, "submit")
            if state != AttemptState.IN_PROGRESS:
                self.log.debug(f"Attempt {self._attempt.id} already finished ({state.value})")
                return self.attempt

            now = self.clock()
            deadline = self._attempt.deadline_at
            if not timed_out and deadline is not None and now > deadline:
                timed_out = True

            updated = self._attempt.copy()
            updated.state = AttemptState.TIMED_OUT if timed_out else AttemptState.SUBMITTED
            updated.timed_out = timed_out
            updated.submitted_at = now
            self.log.info(f"Attempt {updated.id} {updated.state.value}")

            result = score_attempt(updated.selection, updated.answers)
            updated.auto_score = result.auto_score
            updated.needs_manual_review = result.needs_manual_review

            grade = None
            if result.needs_manual_review:
                updated.state = AttemptState.PENDING_MANUAL_REVIEW
            else:
                updated.state = AttemptState.AUTO_GRADED
                updated.score = result.auto_score
                updated.released = True
                updated.graded_by = AUTO_GRADER
                updated.graded_at = now
                grade = self._graded_item(updated)

            committed = await self._commit(updated, "submit_attempt", grade)
            self.log.info(
                f"Attempt {updated.id} {updated.state.value}: auto score "
                f"{updated.auto_score:g} of {updated.points_possible():g}"
            )

            if self._timer is not None:
                self._timer.cancel()

        await notify_safely(
            self.notifier, committed.student_id, NotificationKind.SUBMITTED,
            f"Your attempt at {committed.title or committed.assessment_id} was submitted."
        )
        if committed.released:
            await self._notify_graded(committed)
        return committed

    async def grade_and_release(
        self,
        score: float,
        feedback: Optional[str],
        grader_id: str
    ) -> Attempt:
        """
        Set the final score and release it to the student.

        Allowed for attempts awaiting review and, as a re-grade, for
        attempts already released.

        Raises:
            AttemptStateError: If the attempt has not been submitted
            ValidationError: If the score is outside 0..points possible
            PersistenceError: If the attempt or grade could not be saved
        """
        async with self._lock:
            if self._attempt.state not in GRADABLE_STATES:
                raise AttemptStateError(self._attempt.id, self._attempt.state.value, "grade")

            self._check_score(score)
            updated = self._attempt.copy()
            self._apply_manual_grade(updated, score, feedback, grader_id)
            committed = await self._commit(updated, "grade_attempt", self._graded_item(updated))
            self.log.info(f"Attempt {updated.id} released by {grader_id} with {score:g}")

        await self._notify_graded(committed)
        return committed

    async def regrade(
        self,
        score: Optional[float] = None,
        feedback: Optional[str] = None,
        grader_id: Optional[str] = None
    ) -> Attempt:
        """
        Re-run scoring on the stored selection and answers.

        The selection and attempt number never change. A manual ``score``
        replaces the result; otherwise a fully objective attempt takes its
        new auto score and a released attempt keeps its manual score.

        Raises:
            AttemptStateError: If the attempt has not been submitted
            ValidationError: If the manual score is out of range
            PersistenceError: If the attempt or grade could not be saved
        """
        async with self._lock:
            if self._attempt.state not in GRADABLE_STATES:
                raise AttemptStateError(self._attempt.id, self._attempt.state.value, "regrade")

            now = self.clock()
            updated = self._attempt.copy()
            result = score_attempt(updated.selection, updated.answers)
            updated.auto_score = result.auto_score
            updated.needs_manual_review = result.needs_manual_review

            if score is not None:
                self._check_score(score)
                self._apply_manual_grade(updated, score, feedback, grader_id or AUTO_GRADER)
            elif not result.needs_manual_review:
                updated.state = AttemptState.AUTO_GRADED
                updated.score = result.auto_score
                updated.released = True
                updated.graded_by = AUTO_GRADER
                updated.graded_at = now

            grade = self._graded_item(updated) if updated.released else None
            committed = await self._commit(updated, "regrade_attempt", grade)
            self.log.info(f"Attempt {updated.id} re-graded: {committed.score}")

        if committed.released:
            await self._notify_graded(committed)
        return committed

    def close(self) -> None:
        """Disarm the timer without changing the attempt."""
        if self._timer is not None:
            self._timer.cancel()

    def _arm_timer(self, seconds: float) -> None:
        self._timer = self.timer_factory(seconds, self._on_timer)
        self._timer.start()
        self.log.debug(f"Timer armed for {seconds:g}s")

    async def _on_timer(self) -> None:
        try:
            await self.expire()
        except (PersistenceError, AttemptVersionConflict) as e:
            # Attempt stays in progress; a later submit records it as timed out.
            self.log.error(f"Could not record timeout: {e}")

    def _check_score(self, score: float) -> None:
        possible = self._attempt.points_possible()
        if score is None or score < 0 or score > possible:
            raise ValidationError(
                f"Score must be between 0 and {possible:g}",
                errors={"score": f"Score must be between 0 and {possible:g}"}
            )

    def _apply_manual_grade(
        self,
        attempt: Attempt,
        score: float,
        feedback: Optional[str],
        grader_id: str
    ) -> None:
        attempt.score = float(score)
        if feedback is not None:
            attempt.feedback = feedback
        attempt.released = True
        attempt.graded_by = grader_id
        attempt.graded_at = self.clock()
        attempt.state = AttemptState.RELEASED

    def _graded_item(self, attempt: Attempt) -> GradedItem:
        return GradedItem(
            item_id=attempt.assessment_id,
            student_id=attempt.student_id,
            course_id=attempt.course_id,
            category=attempt.category,
            points_possible=attempt.points_possible(),
            score=attempt.score,
            released=attempt.released,
            title=attempt.title,
        )

    async def _commit(
        self,
        updated: Attempt,
        operation: str,
        grade: Optional[GradedItem] = None
    ) -> Attempt:
        expected = self._attempt.version
        updated.version = expected + 1
        try:
            await self.persistence.commit_attempt(updated, expected, grade)
        except AttemptVersionConflict:
            self.log.warning(f"{operation} for attempt {updated.id} lost to another writer")
            await self._reload()
            raise
        except Exception as e:
            self.log.error(f"{operation} failed for attempt {updated.id}: {e}")
            raise PersistenceError(operation, cause=e) from e
        self._attempt = updated
        return updated.copy()

    async def _reload(self) -> None:
        try:
            stored = await self.persistence.load_attempt(self._attempt.id)
        except Exception as e:
            self.log.error(f"Could not reload attempt {self._attempt.id}: {e}")
            return
        if stored is None:
            return
        self._attempt = stored
        if stored.state != AttemptState.IN_PROGRESS:
            self.close()

    async def _notify_graded(self, attempt: Attempt) -> None:
        await notify_safely(
            self.notifier, attempt.student_id, NotificationKind.GRADED,
            f"Your grade for {attempt.title or attempt.assessment_id} is available: "
            f"{attempt.score:g} / {attempt.points_possible():g}"
        )
