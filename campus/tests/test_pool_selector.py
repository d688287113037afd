"""
Tests for the pool selector.
"""

import random
from collections import Counter

import pytest

from campus.assessments.pool_selector import (
    expected_points,
    fisher_yates_shuffle,
    rng_for_attempt,
    select_questions,
)
from campus.common.error_handling import AssessmentValidationError
from campus.tests.factories import mc


@pytest.fixture
def bank():
    return [mc(f"q{i}", points=i) for i in range(1, 9)]


def ids(questions):
    return [q.id for q in questions]


def test_no_pool_no_randomize_keeps_bank_order(bank):
    selected = select_questions(bank, pool_enabled=False, pool_size=0, randomize=False)
    assert ids(selected) == ids(bank)


def test_randomize_without_pool_is_a_permutation(bank):
    selected = select_questions(bank, False, 0, True, random.Random(7))
    assert sorted(ids(selected)) == sorted(ids(bank))
    assert len(selected) == len(bank)


@pytest.mark.parametrize("k", [1, 3, 8])
def test_pool_draws_k_distinct_members(bank, k):
    for seed in range(25):
        selected = select_questions(bank, True, k, False, random.Random(seed))
        assert len(selected) == k
        assert len(set(ids(selected))) == k
        assert set(ids(selected)) <= set(ids(bank))


def test_pool_without_randomize_preserves_bank_order(bank):
    order = {q.id: i for i, q in enumerate(bank)}
    for seed in range(25):
        selected = select_questions(bank, True, 4, False, random.Random(seed))
        positions = [order[q.id] for q in selected]
        assert positions == sorted(positions)


def test_pool_larger_than_bank_is_refused(bank):
    with pytest.raises(AssessmentValidationError):
        select_questions(bank, True, len(bank) + 1, False)


def test_selection_is_a_copy(bank):
    selected = select_questions(bank, False, 0, False)
    bank[0].prompt = "edited after start"
    bank[0].points = 100
    assert selected[0].prompt == "Question q1"
    assert selected[0].points == 1


def test_attempt_seed_reproduces_draw(bank):
    first = select_questions(bank, True, 3, True, rng_for_attempt("attempt-42"))
    second = select_questions(bank, True, 3, True, rng_for_attempt("attempt-42"))
    assert ids(first) == ids(second)


def test_fisher_yates_is_roughly_uniform():
    rng = random.Random(1234)
    counts = Counter(tuple(fisher_yates_shuffle([1, 2, 3], rng)) for _ in range(6000))
    assert len(counts) == 6
    for count in counts.values():
        assert 850 < count < 1150


def test_expected_points():
    questions = [mc("a", 1), mc("b", 2), mc("c", 3), mc("d", 4)]
    assert expected_points(questions, False, 0) == 10
    assert expected_points(questions, True, 2) == 5.0
    assert expected_points(questions[:3], True, 1) == 2.0
