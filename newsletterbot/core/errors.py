"""Error taxonomy for content-source fetches and aggregation."""
from typing import Optional


class FetchError(Exception):
    """Base class for failures talking to the content source."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AccessForbidden(FetchError):
    """Community is private, quarantined or otherwise restricted (HTTP 403)."""


class NotFound(FetchError):
    """Community or thread does not exist (HTTP 404)."""


class RateLimited(FetchError):
    """The content source rate-limited us (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class FetchTimeout(FetchError):
    """The request did not complete within the client timeout."""


class NetworkUnreachable(FetchError):
    """DNS, connect or other transport-level failure."""


class InvalidResponseShape(FetchError):
    """Payload is not JSON or lacks the expected listing structure."""


class NoContentError(Exception):
    """Raised when an explicit community analysis found no posts at all."""


class NarrativeError(Exception):
    """Narrative generation failed or its budget is exhausted."""
