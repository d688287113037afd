"""
Category Weight Validation

Weights are entered as percentages and stored as fractions. A course
either has a full set summing to 100% or none at all (unweighted).
"""

from typing import Dict, List, Mapping, Set

from campus.common.error_handling import WeightValidationError
from campus.gradebook.models import CategoryWeight

DEFAULT_TOLERANCE = 0.1


def validate_weights(
    course_id: str,
    percentages: Mapping[str, float],
    tolerance: float = DEFAULT_TOLERANCE
) -> List[CategoryWeight]:
    """
    Validate a weight configuration entered as percentages.

    Args:
        course_id: Course the weights belong to
        percentages: Category name to weight in percent
        tolerance: Allowed distance of the total from 100, in percentage points

    Returns:
        Weights as fractions; empty when ``percentages`` is empty

    Raises:
        WeightValidationError: If a category is blank, repeated (after
            trimming spaces) or negative, or the total is not 100 within
            tolerance
    """
    if not percentages:
        return []

    errors: Dict[str, str] = {}
    seen: Set[str] = set()
    for category, percent in percentages.items():
        name = str(category).strip()
        if not name:
            errors["category"] = "Category name cannot be blank"
        elif name in seen:
            errors[name] = f"Category {name} is listed more than once"
        elif percent is None or percent < 0:
            errors[name] = "Weight cannot be negative"
        seen.add(name)

    if errors:
        raise WeightValidationError("Category weights are invalid", errors=errors)

    total = sum(float(percent) for percent in percentages.values())
    if abs(total - 100.0) > tolerance:
        raise WeightValidationError(
            f"Category weights must add up to 100% (currently {total:g}%)",
            total=total,
        )

    return [
        CategoryWeight(course_id=course_id, category=str(category).strip(), weight=float(percent) / 100.0)
        for category, percent in percentages.items()
    ]
