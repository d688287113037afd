"""
Persistence Gateway

This module defines the storage contract the engine depends on and an
in-memory implementation for development and testing. All calls are
asynchronous and may fail; callers decide how a failure surfaces.
"""

import abc
import copy
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from campus.assessments.models import Assessment, Attempt, Question
from campus.common.error_handling import AttemptVersionConflict
from campus.common.logger import app_logger
from campus.gradebook.models import CategoryWeight, GradedItem

logger = app_logger.getChild("collaborators.persistence")


class PersistenceGateway(abc.ABC):
    """
    Abstract storage contract for assessments, attempts and grades.

    Implementations must hand out copies: mutating a returned record must
    never change what is stored.
    """

    @abc.abstractmethod
    async def load_assessment(self, assessment_id: str) -> Optional[Assessment]:
        """
        Load an assessment by id.

        Returns:
            The assessment, or None if it does not exist
        """
        pass

    @abc.abstractmethod
    async def save_assessment(self, assessment: Assessment) -> Assessment:
        """Create or replace an assessment."""
        pass

    @abc.abstractmethod
    async def load_question_bank(self, assessment_id: str) -> List[Question]:
        """Load the current questions of an assessment, in bank order."""
        pass

    @abc.abstractmethod
    async def load_attempt(self, attempt_id: str) -> Optional[Attempt]:
        """Load an attempt by id, or None."""
        pass

    @abc.abstractmethod
    async def load_attempts(self, assessment_id: str, student_id: str) -> List[Attempt]:
        """Load a student's attempts at an assessment, by attempt number."""
        pass

    @abc.abstractmethod
    async def save_attempt(self, attempt: Attempt, expected_version: Optional[int] = None) -> Attempt:
        """
        Create or replace an attempt.

        Args:
            attempt: The attempt to store
            expected_version: When given, the write only happens if the
                stored version equals it (0 for an attempt not stored yet)

        Raises:
            AttemptVersionConflict: If the stored version differs
        """
        pass

    @abc.abstractmethod
    async def save_grade(self, item: GradedItem) -> GradedItem:
        """
        Record a grade.

        A grade for the same (item, student) replaces the previous one.
        """
        pass

    @abc.abstractmethod
    async def load_grade(self, item_id: str, student_id: str) -> Optional[GradedItem]:
        """Load one student's grade for one item, or None."""
        pass

    @abc.abstractmethod
    async def delete_grade(self, item_id: str, student_id: str) -> None:
        """Remove one student's grade for one item, if there is one."""
        pass

    async def commit_attempt(
        self,
        attempt: Attempt,
        expected_version: int,
        grade: Optional[GradedItem] = None
    ) -> Attempt:
        """
        Store an attempt together with the grade it produced.

        Either both writes take effect or neither does. This default runs
        the grade write first and puts the previous grade back when the
        attempt write fails; stores with transactions override it.

        Raises:
            AttemptVersionConflict: If the stored attempt version is not
                ``expected_version``
        """
        if grade is None:
            return await self.save_attempt(attempt, expected_version)

        previous = await self.load_grade(grade.item_id, grade.student_id)
        await self.save_grade(grade)
        try:
            return await self.save_attempt(attempt, expected_version)
        except Exception:
            await self._restore_grade(grade, previous)
            raise

    async def _restore_grade(self, grade: GradedItem, previous: Optional[GradedItem]) -> None:
        try:
            if previous is None:
                await self.delete_grade(grade.item_id, grade.student_id)
            else:
                await self.save_grade(previous)
        except Exception as e:
            logger.error(f"Could not restore grade {grade.item_id} for {grade.student_id}: {e}")

    @abc.abstractmethod
    async def load_graded_items(self, student_id: str, course_id: str) -> List[GradedItem]:
        """Load a student's graded items for a course."""
        pass

    @abc.abstractmethod
    async def load_course_items(self, course_id: str) -> List[GradedItem]:
        """Load every student's graded items for a course."""
        pass

    @abc.abstractmethod
    async def load_category_weights(self, course_id: str) -> List[CategoryWeight]:
        """Load a course's category weights (empty when unweighted)."""
        pass

    @abc.abstractmethod
    async def save_category_weights(self, course_id: str, weights: List[CategoryWeight]) -> None:
        """Replace a course's category weights."""
        pass

    @abc.abstractmethod
    async def load_enrolled_user_ids(self, course_id: str, role: Optional[str] = None) -> List[str]:
        """Load ids of users enrolled in a course, optionally with one role."""
        pass


class MemoryPersistence(PersistenceGateway):
    """
    In-memory implementation of the PersistenceGateway.

    This implementation stores records in dictionaries and is intended for
    development and testing purposes only.
    """

    def __init__(self):
        self._assessments: Dict[str, Assessment] = {}
        self._attempts: Dict[str, Attempt] = {}
        self._grades: Dict[Tuple[str, str], GradedItem] = {}
        self._weights: Dict[str, List[CategoryWeight]] = {}
        self._enrollments: Dict[str, Dict[str, str]] = defaultdict(dict)

    def enroll(self, course_id: str, user_id: str, role: str = "student") -> None:
        """
        Enroll a user in a course.

        This method is specific to the memory implementation and not part of
        the PersistenceGateway interface.
        """
        self._enrollments[course_id][user_id] = role

    async def load_assessment(self, assessment_id: str) -> Optional[Assessment]:
        assessment = self._assessments.get(assessment_id)
        return copy.deepcopy(assessment) if assessment else None

    async def save_assessment(self, assessment: Assessment) -> Assessment:
        self._assessments[assessment.id] = copy.deepcopy(assessment)
        logger.debug(f"Saved assessment {assessment.id}")
        return assessment

    async def load_question_bank(self, assessment_id: str) -> List[Question]:
        assessment = self._assessments.get(assessment_id)
        return copy.deepcopy(assessment.questions) if assessment else []

    async def load_attempt(self, attempt_id: str) -> Optional[Attempt]:
        attempt = self._attempts.get(attempt_id)
        return attempt.copy() if attempt else None

    async def load_attempts(self, assessment_id: str, student_id: str) -> List[Attempt]:
        attempts = [
            attempt.copy() for attempt in self._attempts.values()
            if attempt.assessment_id == assessment_id and attempt.student_id == student_id
        ]
        return sorted(attempts, key=lambda attempt: attempt.attempt_number)

    async def save_attempt(self, attempt: Attempt, expected_version: Optional[int] = None) -> Attempt:
        stored = self._attempts.get(attempt.id)
        stored_version = stored.version if stored else 0
        if expected_version is not None and stored_version != expected_version:
            raise AttemptVersionConflict(attempt.id, expected_version, stored_version)
        self._attempts[attempt.id] = attempt.copy()
        logger.debug(f"Saved attempt {attempt.id} ({attempt.state.value})")
        return attempt

    async def save_grade(self, item: GradedItem) -> GradedItem:
        self._grades[(item.item_id, item.student_id)] = copy.deepcopy(item)
        return item

    async def load_grade(self, item_id: str, student_id: str) -> Optional[GradedItem]:
        item = self._grades.get((item_id, student_id))
        return copy.deepcopy(item) if item else None

    async def delete_grade(self, item_id: str, student_id: str) -> None:
        self._grades.pop((item_id, student_id), None)

    async def load_graded_items(self, student_id: str, course_id: str) -> List[GradedItem]:
        return [
            copy.deepcopy(item) for item in self._grades.values()
            if item.student_id == student_id and item.course_id == course_id
        ]

    async def load_course_items(self, course_id: str) -> List[GradedItem]:
        return [
            copy.deepcopy(item) for item in self._grades.values()
            if item.course_id == course_id
        ]

    async def load_category_weights(self, course_id: str) -> List[CategoryWeight]:
        return copy.deepcopy(self._weights.get(course_id, []))

    async def save_category_weights(self, course_id: str, weights: List[CategoryWeight]) -> None:
        self._weights[course_id] = copy.deepcopy(weights)

    async def load_enrolled_user_ids(self, course_id: str, role: Optional[str] = None) -> List[str]:
        return [
            user_id for user_id, user_role in self._enrollments.get(course_id, {}).items()
            if role is None or user_role == role
        ]

    def clear(self) -> None:
        """
        Clear all stored records.

        This method is specific to the memory implementation and not part of
        the PersistenceGateway interface.
        """
        self._assessments.clear()
        self._attempts.clear()
        self._grades.clear()
        self._weights.clear()
        self._enrollments.clear()
