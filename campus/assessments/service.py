"""
Attempt Service

Orchestrates assessments and attempts over the collaborators: definition
and publishing, attempt start preconditions, and routing of answer,
submit and grading calls to the live session of each attempt.
"""

import asyncio
import uuid
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from campus.assessments.models import (
    Assessment,
    AssessmentStatus,
    Attempt,
    AttemptState,
)
from campus.assessments.pool_selector import rng_for_attempt, select_questions
from campus.assessments.session import AttemptSession, Clock, TimerFactory
from campus.assessments.validation import validate_assessment
from campus.collaborators.authorization import AuthorizationGateway, Role
from campus.collaborators.notifications import NotificationKind, Notifier, notify_safely
from campus.collaborators.persistence import PersistenceGateway
from campus.common.config import AssessmentConfig, get_config
from campus.common.error_handling import (
    AssessmentNotFoundError,
    AttemptLimitExceeded,
    AttemptNotFoundError,
    AuthorizationError,
    CampusError,
    NotPublished,
    PastDue,
    PersistenceError,
)
from campus.common.logger import app_logger, log_execution_time
from campus.common.serialization import utc_now

logger = app_logger.getChild("assessments.service")

T = TypeVar('T')


class AttemptService:
    """
    Entry point for everything that happens to assessments and attempts.

    Live sessions are held per attempt id on this object; nothing is kept
    in module state.
    """

    def __init__(
        self,
        persistence: PersistenceGateway,
        authorization: AuthorizationGateway,
        notifier: Optional[Notifier] = None,
        timer_factory: Optional[TimerFactory] = None,
        clock: Optional[Clock] = None,
        config: Optional[AssessmentConfig] = None,
        id_factory: Optional[Callable[[], str]] = None
    ):
        self.persistence = persistence
        self.authorization = authorization
        self.notifier = notifier
        self.timer_factory = timer_factory
        self.clock = clock or utc_now
        self.config = config or get_config().assessment
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._sessions: Dict[str, AttemptSession] = {}
        self._start_locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    #--------------------------------------------------------------------------
    # Assessment definition
    #--------------------------------------------------------------------------

    async def save_assessment(self, assessment: Assessment, actor_id: Optional[str] = None) -> Assessment:
        """
        Validate and store an assessment.

        Args:
            assessment: The assessment definition
            actor_id: When given, must be staff of the assessment's course

        Raises:
            AssessmentValidationError: If the definition is invalid
            AuthorizationError: If the actor is not staff
            PersistenceError: If the assessment could not be saved
        """
        if actor_id is not None:
            await self.require_staff(actor_id, assessment.course_id, "edit assessments")
        validate_assessment(assessment)
        await self._persist("save_assessment", self.persistence.save_assessment(assessment))
        logger.info(f"Saved assessment {assessment.id} ({len(assessment.questions)} questions)")
        return assessment

    async def get_assessment(self, assessment_id: str) -> Assessment:
        """
        Load an assessment.

        Raises:
            AssessmentNotFoundError: If it does not exist
        """
        assessment = await self._persist(
            "load_assessment", self.persistence.load_assessment(assessment_id)
        )
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    async def publish_assessment(self, assessment_id: str, actor_id: str) -> Assessment:
        """Open an assessment to students and tell them about it."""
        assessment = await self._set_status(assessment_id, actor_id, AssessmentStatus.PUBLISHED)

        students = await self._persist(
            "load_enrolled_user_ids",
            self.persistence.load_enrolled_user_ids(assessment.course_id, Role.STUDENT.value)
        )
        for student_id in students:
            await notify_safely(
                self.notifier, student_id, NotificationKind.PUBLISHED,
                f"New assessment available: {assessment.title}"
            )
        return assessment

    async def close_assessment(self, assessment_id: str, actor_id: str) -> Assessment:
        """Stop students from starting new attempts."""
        return await self._set_status(assessment_id, actor_id, AssessmentStatus.CLOSED)

    async def assessment_points(self, assessment_id: str) -> float:
        """Points possible shown before an attempt (expected value when pooled)."""
        assessment = await self.get_assessment(assessment_id)
        return assessment.expected_points()

    #--------------------------------------------------------------------------
    # Attempts
    #--------------------------------------------------------------------------

    @log_execution_time(logger)
    async def start_attempt(self, assessment_id: str, student_id: str) -> Attempt:
        """
        Start a new attempt, or return the student's attempt in progress.

        Preconditions are checked in order: the assessment must be
        published (staff exempt), attempts must remain, and the due time
        must not have passed (staff exempt).

        Raises:
            NotPublished: If the assessment is a draft or closed
            AttemptLimitExceeded: If every allowed attempt is used
            PastDue: If the due time has passed
            PersistenceError: If the attempt could not be saved; no attempt
                is created
        """
        async with self._start_locks[(student_id, assessment_id)]:
            assessment = await self.get_assessment(assessment_id)
            is_staff = await self.authorization.is_staff(student_id, assessment.course_id)

            if not is_staff and assessment.status != AssessmentStatus.PUBLISHED:
                raise NotPublished(assessment_id, student_id, assessment.status.value)

            attempts = await self._persist(
                "load_attempts", self.persistence.load_attempts(assessment_id, student_id)
            )
            in_progress = [a for a in attempts if a.state == AttemptState.IN_PROGRESS]
            if in_progress:
                session = await self.get_session(in_progress[-1].id)
                return session.attempt

            used = len(attempts)
            if assessment.attempts_allowed is not None and used >= assessment.attempts_allowed:
                raise AttemptLimitExceeded(assessment_id, student_id, assessment.attempts_allowed)

            now = self.clock()
            staff_bypass = is_staff and self.config.staff_bypass_due_date
            if assessment.due_at is not None and now >= assessment.due_at and not staff_bypass:
                raise PastDue(assessment_id, student_id, assessment.due_at)

            bank = await self._persist(
                "load_question_bank", self.persistence.load_question_bank(assessment_id)
            )
            attempt_id = self.id_factory()
            selection = select_questions(
                bank,
                assessment.pool_enabled,
                assessment.pool_size,
                assessment.randomize_order,
                rng_for_attempt(attempt_id)
            )
            attempt = Attempt(
                id=attempt_id,
                assessment_id=assessment.id,
                course_id=assessment.course_id,
                student_id=student_id,
                attempt_number=used + 1,
                selection=selection,
                title=assessment.title,
                category=assessment.category,
            )

            session = self._new_session(attempt)
            started = await session.begin(assessment.time_limit_minutes)
            self._sessions[attempt.id] = session
            return started

    async def get_session(self, attempt_id: str) -> AttemptSession:
        """
        Return the live session of an attempt, rebuilding it from storage.

        Raises:
            AttemptNotFoundError: If the attempt does not exist
        """
        session = self._sessions.get(attempt_id)
        if session is not None:
            return session

        attempt = await self._persist("load_attempt", self.persistence.load_attempt(attempt_id))
        if attempt is None:
            raise AttemptNotFoundError(attempt_id)

        session = self._sessions.setdefault(attempt_id, self._new_session(attempt))
        await session.resume()
        return session

    async def get_attempt(self, attempt_id: str, actor_id: Optional[str] = None) -> Attempt:
        """Load an attempt; an actor must own it or be course staff."""
        session = await self.get_session(attempt_id)
        attempt = session.attempt
        if actor_id is not None and actor_id != attempt.student_id:
            await self.require_staff(actor_id, attempt.course_id, "view other students' attempts")
        return attempt

    async def list_attempts(self, assessment_id: str, student_id: str) -> List[Attempt]:
        """A student's attempts at an assessment, by attempt number."""
        return await self._persist(
            "load_attempts", self.persistence.load_attempts(assessment_id, student_id)
        )

    async def record_answer(
        self,
        attempt_id: str,
        question_id: str,
        raw: Any,
        student_id: Optional[str] = None
    ) -> Attempt:
        """Record an answer on behalf of the attempt's owner."""
        session = await self._owned_session(attempt_id, student_id)
        return await session.record_answer(question_id, raw)

    async def submit_attempt(self, attempt_id: str, student_id: Optional[str] = None) -> Attempt:
        """Submit an attempt on behalf of its owner."""
        session = await self._owned_session(attempt_id, student_id)
        return await session.submit()

    async def grade_attempt(
        self,
        attempt_id: str,
        score: float,
        feedback: Optional[str],
        grader_id: str
    ) -> Attempt:
        """
        Grade and release an attempt. Staff only.

        Raises:
            AuthorizationError: If the grader is not staff
            AttemptStateError: If the attempt has not been submitted
            ValidationError: If the score is out of range
        """
        session = await self.get_session(attempt_id)
        await self.require_staff(grader_id, session.attempt.course_id, "grade attempts")
        return await session.grade_and_release(score, feedback, grader_id)

    async def regrade_attempt(
        self,
        attempt_id: str,
        grader_id: str,
        score: Optional[float] = None,
        feedback: Optional[str] = None
    ) -> Attempt:
        """Re-run scoring on an attempt, optionally overriding the score. Staff only."""
        session = await self.get_session(attempt_id)
        await self.require_staff(grader_id, session.attempt.course_id, "re-grade attempts")
        return await session.regrade(score, feedback, grader_id)

    def shutdown(self) -> None:
        """Disarm every live timer."""
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    #--------------------------------------------------------------------------
    # Helpers
    #--------------------------------------------------------------------------

    def _new_session(self, attempt: Attempt) -> AttemptSession:
        return AttemptSession(
            attempt,
            self.persistence,
            notifier=self.notifier,
            timer_factory=self.timer_factory,
            clock=self.clock,
            seconds_per_minute=self.config.seconds_per_minute,
        )

    async def _owned_session(self, attempt_id: str, student_id: Optional[str]) -> AttemptSession:
        session = await self.get_session(attempt_id)
        owner = session.attempt.student_id
        if student_id is not None and student_id != owner:
            raise AuthorizationError(
                "Only the student taking an attempt can change it",
                user_id=student_id,
                course_id=session.attempt.course_id
            )
        return session

    async def _set_status(
        self,
        assessment_id: str,
        actor_id: str,
        status: AssessmentStatus
    ) -> Assessment:
        assessment = await self.get_assessment(assessment_id)
        await self.require_staff(actor_id, assessment.course_id, f"set assessments {status.value}")
        assessment.status = status
        await self._persist("save_assessment", self.persistence.save_assessment(assessment))
        logger.info(f"Assessment {assessment_id} is now {status.value}")
        return assessment

    async def require_staff(self, user_id: str, course_id: str, action: str) -> None:
        if not await self.authorization.is_staff(user_id, course_id):
            raise AuthorizationError(
                f"Only course staff can {action}", user_id=user_id, course_id=course_id
            )

    async def _persist(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except CampusError:
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceError(operation, cause=e) from e
