"""Score statistics for the staff gradebook view."""

import statistics
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from campus.common.serialization import SerializableMixin
from campus.gradebook.models import GradedItem


@dataclass
class ScoreSummary(SerializableMixin):
    """Summary of the graded scores of one item."""

    __serializable_fields__ = ["count", "average", "median", "minimum", "maximum"]

    count: int = 0
    average: Optional[float] = None
    median: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


def summarize_scores(scores: Iterable[Optional[float]]) -> ScoreSummary:
    """
    Summarize a set of scores, ignoring ungraded (None) entries.

    An empty set yields a zero count and None for every figure.
    """
    values = [float(score) for score in scores if score is not None]
    if not values:
        return ScoreSummary()
    return ScoreSummary(
        count=len(values),
        average=statistics.fmean(values),
        median=statistics.median(values),
        minimum=min(values),
        maximum=max(values),
    )


def item_statistics(items: Iterable[GradedItem]) -> Dict[str, ScoreSummary]:
    """
    Summaries per item id over every graded score, released or not.

    Staff see unreleased scores; students never reach this view.
    """
    grouped: Dict[str, list] = OrderedDict()
    for item in items:
        grouped.setdefault(item.item_id, []).append(item.score)
    return {item_id: summarize_scores(scores) for item_id, scores in grouped.items()}
