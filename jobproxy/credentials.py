"""
Credential lifecycle for the upstream API.

One CredentialManager holds the process-wide access/refresh token pair.
Its behaviour is an explicit state machine over CredentialState:

    UNAUTHENTICATED  -> authenticate()
    ACCESS_EXPIRED   -> refresh()       (falls back to authenticate())
    REFRESH_EXPIRED  -> authenticate()
    ACCESS_VALID     -> no-op

All transitions run under a single lock and re-check the state once the
lock is held, so concurrent callers share one login or refresh.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from .errors import AuthError, CredentialExpiredError, UpstreamError
from .logger import get_logger

logger = get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    ACCESS_VALID = "access_valid"
    ACCESS_EXPIRED = "access_expired"
    REFRESH_EXPIRED = "refresh_expired"


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token: str
    access_expiry: datetime
    refresh_expiry: datetime


class CredentialManager:
    """Owns the current Credential and hands out usable access tokens."""

    def __init__(
        self,
        client,
        clock: Callable[[], datetime] = utcnow,
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        """
        Args:
            client: Object with login() and refresh(access_token) returning dicts
            clock: Returns the current instant
            access_ttl: Lifetime assumed for a fresh access token
            refresh_ttl: Lifetime assumed for a fresh refresh token
        """
        self.client = client
        self.clock = clock
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._credential: Optional[Credential] = None
        self._lock = threading.RLock()

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def access_token(self) -> Optional[str]:
        cred = self._credential
        return cred.access_token if cred else None

    def state(self) -> CredentialState:
        return self._state_of(self._credential, self.clock())

    @staticmethod
    def _state_of(cred: Optional[Credential], now: datetime) -> CredentialState:
        if cred is None:
            return CredentialState.UNAUTHENTICATED
        if now >= cred.refresh_expiry:
            return CredentialState.REFRESH_EXPIRED
        if now >= cred.access_expiry:
            return CredentialState.ACCESS_EXPIRED
        return CredentialState.ACCESS_VALID

    def ensure_valid(self) -> str:
        """Return a usable access token, logging in or refreshing if needed."""
        cred = self._credential
        if self._state_of(cred, self.clock()) is CredentialState.ACCESS_VALID:
            return cred.access_token

        with self._lock:
            state = self.state()
            if state is CredentialState.ACCESS_VALID:
                return self._credential.access_token
            logger.info("Access token not usable", state=state.value)
            if state is CredentialState.ACCESS_EXPIRED:
                return self.refresh()
            return self.authenticate()

    def authenticate(self) -> str:
        """Full login. Replaces the held credential entirely."""
        with self._lock:
            logger.info("Getting new auth tokens from CEIPAL")
            logger.record_auth_attempt()
            try:
                payload = self.client.login()
            except UpstreamError as e:
                logger.error("CEIPAL login failed", error=str(e), status=e.status)
                raise AuthError(f"Login failed: {e}") from e

            access_token = payload.get("access_token")
            if not access_token:
                message = payload.get("message") or payload.get("error") or "no access_token in response"
                logger.error("Unexpected login response", message=str(message))
                raise AuthError(f"Failed to get access_token: {message}")

            now = self.clock()
            self._credential = Credential(
                access_token=access_token,
                refresh_token=payload.get("refresh_token") or "",
                access_expiry=now + self.access_ttl,
                refresh_expiry=now + self.refresh_ttl,
            )
            return access_token

    def refresh(self) -> str:
        """Exchange the current access token for a new one.

        CEIPAL's refresh endpoint takes the access token, not the refresh
        token. On failure a full login is attempted while the refresh
        window is still open.
        """
        with self._lock:
            cred = self._credential
            if cred is None:
                return self.authenticate()

            logger.record_token_refresh()
            try:
                payload = self.client.refresh(cred.access_token)
                access_token = payload.get("access_token")
                if not access_token:
                    raise AuthError("Failed to refresh access token: no access_token in response")
            except (UpstreamError, AuthError) as e:
                logger.warning("Error refreshing access token", error=str(e))
                if self.clock() < cred.refresh_expiry:
                    return self.authenticate()
                raise CredentialExpiredError(
                    "Refresh token expired. Please authenticate again."
                ) from e

            self._credential = replace(
                cred,
                access_token=access_token,
                access_expiry=self.clock() + self.access_ttl,
            )
            logger.info("Access token refreshed")
            return access_token

    def reauthenticate(self, rejected_token: Optional[str]) -> str:
        """Log in again after the upstream rejected ``rejected_token``.

        If another caller already replaced that token, the current one is
        returned without calling the upstream.
        """
        with self._lock:
            cred = self._credential
            if (
                rejected_token is not None
                and cred is not None
                and cred.access_token != rejected_token
                and self.state() is CredentialState.ACCESS_VALID
            ):
                return cred.access_token
            return self.authenticate()
