"""
Error handling utilities for consistent error message extraction.
"""

from __future__ import annotations

# Error text stored on a RunResult is cut to this length.
MAX_ERROR_LENGTH = 120


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.

    Playwright errors carry a multi-line call log after the first
    line; only the first line is kept.
    """
    if isinstance(error, Exception):
        message = str(error).strip()
        if not message:
            return type(error).__name__
        return message.splitlines()[0]
    return "Unknown error"


def truncate(text: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Cut *text* to *limit* characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 1, 0)] + "…"
