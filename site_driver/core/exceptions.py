"""Error taxonomy for the site deployment driver."""

from typing import Optional


class SiteDriverError(Exception):
    """Base class for all service errors."""


class ConfigurationError(SiteDriverError):
    """Raised when the service cannot start with the given configuration."""


class UpstreamError(SiteDriverError):
    """
    Raised when a call to the remote management API fails.

    Covers transport failures, non-success status codes, and payloads that
    cannot be decoded. The detail is meant for server-side logs only.

    Attributes:
        step: Short description of the remote call that failed
        status_code: Remote HTTP status, if a response was received
        body: Remote response body, if a response was received
    """

    def __init__(
        self,
        step: str,
        detail: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        self.step = step
        self.detail = detail
        self.status_code = status_code
        self.body = body
        super().__init__(f"{step}: {detail}")


class ClientDisconnected(SiteDriverError):
    """Raised when the caller goes away before a site operation finishes."""
