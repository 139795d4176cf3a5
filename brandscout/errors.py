"""Error taxonomy of the discovery service.

Only :class:`NotFound` and :class:`RateLimitExceeded` reach the caller as
distinguishable conditions.  :class:`UpstreamTransient` and
:class:`ParseFailure` are absorbed by the stage that hit them, except when
the seed profile itself cannot be fetched.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for every error raised by the discovery pipeline."""


class NotFound(DiscoveryError):
    """The seed handle has no resolvable profile."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Profile not found: @{handle}")
        self.handle = handle


class RateLimitExceeded(DiscoveryError):
    """The requester used up its discovery quota for the current window."""

    def __init__(self, requester_id: str, retry_after: int) -> None:
        super().__init__(f"Rate limit exceeded for {requester_id}; retry in {retry_after}s")
        self.requester_id = requester_id
        self.retry_after = retry_after


class UpstreamTransient(DiscoveryError):
    """A fetch or scoring collaborator failed or timed out."""


class ParseFailure(DiscoveryError):
    """Structured output from the scoring collaborator could not be parsed."""
