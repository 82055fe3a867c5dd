"""
Retry policy for upstream calls.

The only automatic retry is a single one after re-authentication, when
the upstream rejects a token mid-fetch. Transient HTTP failures are not
retried; they are classified so callers can decide how loudly to log.
"""

import functools
from typing import Callable, TypeVar

from .errors import AuthExpiredDuringFetch
from .logger import get_logger

logger = get_logger()

T = TypeVar("T")

TRANSIENT_STATUSES = {
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def is_transient_status(status_code: int) -> bool:
    """
    Check if an HTTP status code indicates a temporary upstream problem.

    Args:
        status_code: HTTP status code

    Returns:
        True for timeouts, rate limiting and 5xx responses
    """
    return status_code in TRANSIENT_STATUSES or 500 <= status_code < 600


def call_with_reauth(func: Callable[[], T], credentials) -> T:
    """
    Run func; if the upstream rejects the token, log in again and run it
    exactly once more. A second rejection propagates.

    Args:
        func: Zero-argument callable performing authenticated upstream work
        credentials: CredentialManager used for the re-authentication

    Example:
        snapshot = call_with_reauth(cache.get_or_refresh, credentials)
    """
    token_before = credentials.access_token
    try:
        return func()
    except AuthExpiredDuringFetch as e:
        logger.warning(
            "Authentication error. Getting new tokens and retrying",
            status=e.status,
        )
        # func may have refreshed the token itself before it was rejected
        rejected = e.access_token if e.access_token is not None else token_before
        credentials.reauthenticate(rejected)
        return func()


def retry_after_reauth(credentials_attr: str = "credentials"):
    """
    Method decorator form of call_with_reauth.

    The CredentialManager is looked up on ``self`` by attribute name.

    Example:
        class Refresher:
            @retry_after_reauth()
            def run(self): ...
    """
    def decorator(method: Callable) -> Callable:
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            credentials = getattr(self, credentials_attr)
            return call_with_reauth(lambda: method(self, *args, **kwargs), credentials)

        return wrapper
    return decorator
