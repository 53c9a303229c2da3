"""Domain exceptions raised by the broker core.

The core never raises HTTP exceptions; routers and dependencies translate
these via ``mohano.broker.deps.to_http_exception``.
"""

from __future__ import annotations


class BrokerError(Exception):
    """Base class for request-scoped broker failures.  Never fatal."""


class InvalidPayloadError(BrokerError, ValueError):
    """Ingestion body is not a JSON object.  No state was changed."""


class UnauthorizedError(BrokerError):
    """Admission failed: missing or wrong global key."""


class InvalidWorkspaceError(BrokerError, LookupError):
    """A workspace-shaped token does not resolve (never existed, or expired)."""


class RateLimitedError(BrokerError):
    """Workspace creation quota for the current window is exhausted."""

    def __init__(self, retry_after: float) -> None:
        super().__init__(f"Workspace creation rate limit reached; retry in {retry_after:.0f}s")
        self.retry_after = retry_after
