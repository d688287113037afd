"""Test suite for the campus assessment engine."""
