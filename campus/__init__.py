"""
Campus assessment engine.

Quiz taking, auto-scoring and gradebook aggregation for a course
management system, behind narrow persistence, authorization and
notification collaborators.
"""

__version__ = "0.1.0"
