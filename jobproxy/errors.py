"""
Error taxonomy for the job proxy.

Two families reach callers of the query operations:
- AuthFailure: the upstream would not give us a usable credential.
- UpstreamUnavailable: the upstream listing could not be read.

Callers translate them with error_payload() into the JSON body served
to the frontend.
"""

from typing import Any, Dict, Optional


class JobProxyError(Exception):
    """Base class for every error raised by the proxy core."""

    public_message = "Job proxy error"


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""
    pass


class AuthFailure(JobProxyError):
    """Could not obtain a usable upstream credential."""

    public_message = "Failed to authenticate with CEIPAL API"


class AuthError(AuthFailure):
    """Upstream rejected the login, or its response carried no token."""
    pass


class CredentialExpiredError(AuthFailure):
    """The refresh token itself has expired; a full login is required."""
    pass


class UpstreamUnavailable(JobProxyError):
    """The upstream job listing could not be read."""

    public_message = "Failed to fetch jobs from CEIPAL API"


class UpstreamError(UpstreamUnavailable):
    """Non-2xx response or transport failure from an upstream call.

    ``status`` is None for transport failures (timeouts, refused connections).
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (status {self.status})"


class AuthExpiredDuringFetch(UpstreamError):
    """Upstream answered 401/403 to an authenticated fetch.

    ``access_token`` is the token the upstream rejected, when known.
    """

    def __init__(self, message: str, status: Optional[int] = None, access_token: Optional[str] = None):
        super().__init__(message, status=status)
        self.access_token = access_token


def error_payload(exc: Exception) -> Dict[str, Any]:
    """Structured error body for a failed query."""
    error = getattr(exc, "public_message", JobProxyError.public_message)
    payload: Dict[str, Any] = {"error": error, "message": str(exc)}
    status = getattr(exc, "status", None)
    if status is not None:
        payload["status"] = status
    return payload
