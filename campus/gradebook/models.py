"""
Gradebook Models

Records consumed and produced by the grade aggregator.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from campus.common.serialization import SerializableMixin


class WeightPolicy(enum.Enum):
    """
    How weighted mode treats a weighted category with no released grades.

    RENORMALIZE drops it from the weight denominator; ZERO_FILL keeps its
    weight and counts it as zero percent.
    """
    RENORMALIZE = "renormalize"
    ZERO_FILL = "zero_fill"


@dataclass
class GradedItem(SerializableMixin):
    """
    A scored assessment or assignment, seen by the aggregator.

    ``score`` is None until the item is graded; only released items with a
    score count toward a grade.
    """

    __serializable_fields__ = [
        "item_id", "student_id", "course_id", "category",
        "points_possible", "score", "released", "title"
    ]

    item_id: str
    student_id: str
    course_id: str
    category: str
    points_possible: float
    score: Optional[float] = None
    released: bool = False
    title: str = ""

    @property
    def participates(self) -> bool:
        """Whether this item counts toward aggregation."""
        return self.released and self.score is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GradedItem':
        return cls(
            item_id=data["item_id"],
            student_id=data["student_id"],
            course_id=data["course_id"],
            category=data["category"],
            points_possible=float(data["points_possible"]),
            score=None if data.get("score") is None else float(data["score"]),
            released=bool(data.get("released", False)),
            title=data.get("title") or "",
        )


@dataclass
class CategoryWeight(SerializableMixin):
    """Fractional contribution of a category to a course grade."""

    __serializable_fields__ = ["course_id", "category", "weight"]

    course_id: str
    category: str
    weight: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CategoryWeight':
        return cls(
            course_id=data["course_id"],
            category=data["category"],
            weight=float(data["weight"]),
        )


@dataclass
class AggregateResult(SerializableMixin):
    """
    A student's course grade.

    ``overall_percent`` is None when nothing has been released yet;
    ``by_category`` lists every category with participating points.
    """

    __serializable_fields__ = [
        "overall_percent", "by_category", "points_earned", "points_possible", "weighted"
    ]

    overall_percent: Optional[float]
    by_category: Dict[str, float] = field(default_factory=dict)
    points_earned: float = 0.0
    points_possible: float = 0.0
    weighted: bool = False
