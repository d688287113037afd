"""Shared utilities: logging, configuration, errors and serialization."""
