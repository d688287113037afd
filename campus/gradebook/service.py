"""
Gradebook Service

Loads graded items and weights through persistence and hands them to the
aggregator. Holds no grade state of its own.
"""

from typing import Dict, List, Mapping, Optional

from campus.collaborators.authorization import AuthorizationGateway
from campus.collaborators.persistence import PersistenceGateway
from campus.common.config import GradebookConfig, WeightPolicyName, get_config
from campus.common.error_handling import AuthorizationError, CampusError, PersistenceError
from campus.common.logger import app_logger
from campus.gradebook.aggregator import aggregate
from campus.gradebook.models import AggregateResult, CategoryWeight, WeightPolicy
from campus.gradebook.statistics import ScoreSummary, item_statistics
from campus.gradebook.weights import validate_weights

logger = app_logger.getChild("gradebook.service")


class GradebookService:
    """Course grades, weight configuration and staff statistics."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        authorization: Optional[AuthorizationGateway] = None,
        config: Optional[GradebookConfig] = None
    ):
        self.persistence = persistence
        self.authorization = authorization
        self.config = config or get_config().gradebook

    @property
    def policy(self) -> WeightPolicy:
        return WeightPolicy(WeightPolicyName(self.config.weight_policy).value)

    async def course_grade(
        self,
        student_id: str,
        course_id: str,
        actor_id: Optional[str] = None
    ) -> AggregateResult:
        """
        A student's current grade in a course.

        Args:
            student_id: The student
            course_id: The course
            actor_id: When given, must be the student or course staff

        Returns:
            The aggregate; its overall percent is None with nothing released
        """
        if actor_id is not None and actor_id != student_id:
            await self._require_staff(actor_id, course_id, "view other students' grades")

        try:
            items = await self.persistence.load_graded_items(student_id, course_id)
            weights = await self.persistence.load_category_weights(course_id)
        except CampusError:
            raise
        except Exception as e:
            raise PersistenceError("load_course_grade", cause=e) from e
        return aggregate(items, weights, self.policy)

    async def save_category_weights(
        self,
        course_id: str,
        percentages: Mapping[str, float],
        actor_id: Optional[str] = None
    ) -> List[CategoryWeight]:
        """
        Validate and store a weight configuration entered as percentages.

        An empty mapping switches the course to unweighted grading.

        Raises:
            WeightValidationError: If the weights do not add up to 100%
            PersistenceError: If the weights could not be saved
        """
        if actor_id is not None:
            await self._require_staff(actor_id, course_id, "change category weights")

        weights = validate_weights(course_id, percentages, self.config.weight_tolerance)
        try:
            await self.persistence.save_category_weights(course_id, weights)
        except Exception as e:
            raise PersistenceError("save_category_weights", cause=e) from e
        logger.info(f"Saved {len(weights)} category weights for course {course_id}")
        return weights

    async def category_weights(self, course_id: str) -> List[CategoryWeight]:
        return await self.persistence.load_category_weights(course_id)

    async def item_statistics(self, course_id: str, actor_id: Optional[str] = None) -> Dict[str, ScoreSummary]:
        """Average, median, min and max per graded item. Staff view."""
        if actor_id is not None:
            await self._require_staff(actor_id, course_id, "view grade statistics")
        return item_statistics(await self.persistence.load_course_items(course_id))

    async def _require_staff(self, user_id: str, course_id: str, action: str) -> None:
        if self.authorization is None or not await self.authorization.is_staff(user_id, course_id):
            raise AuthorizationError(
                f"Only course staff can {action}", user_id=user_id, course_id=course_id
            )
