"""
Pool Selector

Chooses the questions served in one attempt. The result is computed once
at attempt start and copied onto the attempt.
"""

import copy
import random
from typing import List, MutableSequence, Optional, Sequence, TypeVar

from campus.assessments.models import Question
from campus.common.error_handling import AssessmentValidationError

T = TypeVar('T')


def fisher_yates_shuffle(items: MutableSequence[T], rng: random.Random) -> MutableSequence[T]:
    """
    Shuffle ``items`` in place with the Fisher-Yates algorithm.

    Args:
        items: Sequence to shuffle
        rng: Source of randomness

    Returns:
        The same sequence, shuffled
    """
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def rng_for_attempt(attempt_id: str) -> random.Random:
    """Random source seeded by the attempt id, so a draw can be reproduced."""
    return random.Random(attempt_id)


def select_questions(
    questions: Sequence[Question],
    pool_enabled: bool,
    pool_size: int,
    randomize: bool,
    rng: Optional[random.Random] = None
) -> List[Question]:
    """
    Select the questions for an attempt.

    Without a pool the whole bank is served, in bank order unless
    ``randomize`` is set. With a pool, ``pool_size`` distinct questions are
    drawn uniformly; they keep their bank order unless ``randomize`` is set.

    Args:
        questions: The question bank
        pool_enabled: Whether to serve a random subset
        pool_size: Size of the subset when pooling
        randomize: Whether to shuffle the served questions
        rng: Random source (defaults to a fresh ``random.Random``)

    Returns:
        Deep copies of the selected questions

    Raises:
        AssessmentValidationError: If the pool is larger than the bank
    """
    rng = rng or random.Random()

    if pool_enabled:
        if pool_size < 1 or pool_size > len(questions):
            raise AssessmentValidationError({
                "pool_size": f"Pool size {pool_size} is not within 1..{len(questions)}"
            })
        positions = fisher_yates_shuffle(list(range(len(questions))), rng)[:pool_size]
        if not randomize:
            positions.sort()
        selected = [questions[i] for i in positions]
    else:
        selected = list(questions)
        if randomize:
            fisher_yates_shuffle(selected, rng)

    return copy.deepcopy(selected)


def expected_points(questions: Sequence[Question], pool_enabled: bool, pool_size: int) -> float:
    """
    Points possible shown before an attempt.

    A pooled assessment's total depends on the draw, so its expected value
    is used: average bank points times pool size, to one decimal.
    """
    total = sum(question.points for question in questions)
    if pool_enabled and questions and pool_size > 0:
        return round(total / len(questions) * pool_size, 1)
    return total
