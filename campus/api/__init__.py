"""HTTP surface of the assessment engine."""

from campus.api.app import create_app
from campus.api.container import Container, build_container

__all__ = ["create_app", "Container", "build_container"]
