"""
Gradebook

Graded items, category weights and the stateless grade aggregator.
"""

from campus.gradebook.models import AggregateResult, CategoryWeight, GradedItem, WeightPolicy
from campus.gradebook.aggregator import aggregate

__all__ = [
    'AggregateResult',
    'CategoryWeight',
    'GradedItem',
    'WeightPolicy',
    'aggregate',
]
