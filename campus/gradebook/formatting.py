"""Display helpers for grades."""

from typing import Optional

PLACEHOLDER = "—"


def format_percent(value: Optional[float], precision: int = 1) -> str:
    """Render a percentage, or the placeholder when there is no grade yet."""
    if value is None:
        return PLACEHOLDER
    return f"{value:.{precision}f}%"


def format_points(score: Optional[float], possible: float) -> str:
    """Render ``score / possible``, with the placeholder for an ungraded score."""
    earned = PLACEHOLDER if score is None else f"{score:g}"
    return f"{earned} / {possible:g}"
