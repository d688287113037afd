"""
Authorization Gateway

The engine never decides roles itself; it only asks whether a user is
staff for a course.
"""

import abc
import enum

from campus.collaborators.persistence import PersistenceGateway


class Role(enum.Enum):
    """Course enrolment roles."""
    STUDENT = "student"
    TA = "ta"
    INSTRUCTOR = "instructor"


STAFF_ROLES = (Role.INSTRUCTOR, Role.TA)


class AuthorizationGateway(abc.ABC):
    """Abstract authorization contract."""

    @abc.abstractmethod
    async def is_staff(self, user_id: str, course_id: str) -> bool:
        """Whether the user teaches or assists in the course."""
        pass


class RosterAuthorization(AuthorizationGateway):
    """Staff are the users enrolled as instructor or TA."""

    def __init__(self, persistence: PersistenceGateway):
        self.persistence = persistence

    async def is_staff(self, user_id: str, course_id: str) -> bool:
        for role in STAFF_ROLES:
            if user_id in await self.persistence.load_enrolled_user_ids(course_id, role.value):
                return True
        return False
