"""
Content Suggestion Collaborator

An optional source of draft assessments and draft scores. Its output is
untrusted: it is parsed and normalized here, then held for a human to
confirm, edit or reject.
"""

import abc
import json
from typing import Any, Dict, Optional

from campus.assessments.models import Attempt


class ContentSuggester(abc.ABC):
    """Abstract suggestion contract. Payloads may be dicts or JSON text."""

    @abc.abstractmethod
    async def suggest_assessment(self, course_id: str, topic: str) -> Any:
        """
        Propose an assessment.

        Returns:
            A payload with ``title``, ``description`` and ``questions``
        """
        pass

    @abc.abstractmethod
    async def suggest_score(self, attempt: Attempt) -> Any:
        """
        Propose a score for an attempt awaiting manual review.

        Returns:
            A payload with ``score`` and ``feedback``
        """
        pass


class CannedSuggester(ContentSuggester):
    """Returns fixed payloads; useful for development and tests."""

    def __init__(self, assessment: Any = None, score: Any = None):
        self.assessment = assessment
        self.score = score

    async def suggest_assessment(self, course_id: str, topic: str) -> Any:
        return self.assessment

    async def suggest_score(self, attempt: Attempt) -> Any:
        return self.score


def parse_suggestion_text(text: Optional[str]) -> Any:
    """
    Parse a JSON suggestion, tolerating a surrounding code fence or prose.

    Raises:
        ValueError: If the text is empty or holds no JSON object
    """
    if not text or not text.strip():
        raise ValueError("Suggestion was empty")

    cleaned = text.strip()
    if cleaned.lower().startswith("```json"):
        cleaned = "```" + cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

    if cleaned.startswith("{") or cleaned.startswith("["):
        return json.loads(cleaned)

    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        return json.loads(cleaned[first:last + 1])

    raise ValueError("Suggestion was not valid JSON")


def coerce_payload(payload: Any) -> Dict[str, Any]:
    """Turn a suggester payload into a dict; anything else becomes empty."""
    if isinstance(payload, str):
        payload = parse_suggestion_text(payload)
    return payload if isinstance(payload, dict) else {}
