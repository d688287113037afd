"""
Grade Aggregator

Derives a student's course grade from graded items and category weights.
Stateless: the result is recomputed from its inputs every time.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple

from campus.gradebook.models import AggregateResult, CategoryWeight, GradedItem, WeightPolicy


def category_totals(items: Iterable[GradedItem]) -> Dict[str, Tuple[float, float]]:
    """
    Sum earned and possible points per category over participating items.

    Returns:
        Category name to (earned, possible), in first-seen order
    """
    totals: Dict[str, Tuple[float, float]] = OrderedDict()
    for item in items:
        if not item.participates:
            continue
        earned, possible = totals.get(item.category, (0.0, 0.0))
        totals[item.category] = (earned + item.score, possible + item.points_possible)
    return totals


def aggregate(
    items: Iterable[GradedItem],
    weights: List[CategoryWeight],
    policy: WeightPolicy = WeightPolicy.RENORMALIZE
) -> AggregateResult:
    """
    Compute a course grade.

    Only released items with a score participate; the rest are left out of
    both numerator and denominator. Without weights the grade is the raw
    points percentage. With weights each category's percentage is
    combined by weight, over the categories that have data (RENORMALIZE)
    or over every weighted category with empty ones counted as zero
    (ZERO_FILL). Items in categories without a weight do not affect the
    weighted figure.

    Args:
        items: The student's graded items for the course
        weights: The course's category weights (empty for unweighted)
        policy: Treatment of weighted categories with no data

    Returns:
        The aggregate; ``overall_percent`` is None when there is nothing
        to grade yet
    """
    totals = category_totals(items)

    by_category: Dict[str, float] = OrderedDict()
    for category, (earned, possible) in totals.items():
        if possible > 0:
            by_category[category] = 100.0 * earned / possible

    points_earned = sum(earned for earned, _ in totals.values())
    points_possible = sum(possible for _, possible in totals.values())

    if not weights:
        overall = 100.0 * points_earned / points_possible if points_possible > 0 else None
        return AggregateResult(
            overall_percent=overall,
            by_category=dict(by_category),
            points_earned=points_earned,
            points_possible=points_possible,
            weighted=False,
        )

    weighted_sum = 0.0
    weight_with_data = 0.0
    weight_total = 0.0
    for weight in weights:
        weight_total += weight.weight
        percent = by_category.get(weight.category)
        if percent is None:
            continue
        weighted_sum += percent * weight.weight
        weight_with_data += weight.weight

    if weight_with_data <= 0:
        overall = None
    elif policy == WeightPolicy.ZERO_FILL:
        overall = weighted_sum / weight_total
    else:
        overall = weighted_sum / weight_with_data

    return AggregateResult(
        overall_percent=overall,
        by_category=dict(by_category),
        points_earned=points_earned,
        points_possible=points_possible,
        weighted=True,
    )
