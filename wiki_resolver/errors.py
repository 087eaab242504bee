"""Error taxonomy for upstream calls and caller input."""

from __future__ import annotations

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to the content API."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UpstreamNotFoundError(UpstreamError):
    """The requested title does not exist. Not fatal: triggers search fallback."""


class UpstreamTimeoutError(UpstreamError):
    """The upstream operation exceeded its absolute timeout."""


class UpstreamUnavailableError(UpstreamError):
    """Network failure, error status, or an undecodable response body."""


class InvalidInputError(ValueError):
    """Empty or non-string query."""
