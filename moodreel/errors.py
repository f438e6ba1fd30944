"""
MoodReel — Error taxonomy

Every failure the mood pipeline can report is one of these types. The
HTTP layer maps them to responses through `status_code`; the core never
builds HTTP responses itself.
"""

from __future__ import annotations

from typing import Optional


class MoodReelError(Exception):
    """Base class for typed pipeline failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MoodReelError):
    """Input rejected before any network call (empty text, bad party size)."""

    status_code = 400


class ProviderError(MoodReelError):
    """The LLM provider answered with a non-success status."""

    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_retryable(self) -> bool:
        return self.status in (429, 503)


class EmptyResponseError(MoodReelError):
    """2xx response whose envelope carries no message content."""

    status_code = 502


class MalformedResponseError(MoodReelError):
    """Content was present but is not the JSON shape the prompt demanded."""

    status_code = 502


class NoTagsError(MoodReelError):
    """The classifier produced no usable mood tags to match on."""

    status_code = 422


class NoMatchFoundError(MoodReelError):
    """No scored candidate is available for a character match."""

    status_code = 404
