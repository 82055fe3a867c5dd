"""HTTP client for the CEIPAL recruiting API.

This is the only module that talks to the network. It knows the three
upstream endpoints (login, token refresh, job listing) and turns every
failure into an UpstreamError so the layers above never see requests
exceptions.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .errors import AuthExpiredDuringFetch, UpstreamError
from .logger import get_logger

logger = get_logger()

AUTH_REJECTED_STATUSES = (401, 403)


@dataclass(frozen=True)
class UpstreamContract:
    """Shape of the upstream API that has varied between versions.

    refresh_header/refresh_scheme: how the access token is presented to the
    refresh endpoint (CEIPAL documents a raw ``Token`` header; some
    accounts expect ``Bearer <token>``).
    """

    refresh_header: str = "Token"
    refresh_scheme: str = ""
    results_field: str = "results"
    pages_field: str = "num_pages"
    count_field: str = "count"

    def refresh_value(self, access_token: str) -> str:
        if self.refresh_scheme:
            return f"{self.refresh_scheme} {access_token}"
        return access_token


class CeipalClient:
    """Thin wrapper over a requests session for the three upstream calls."""

    def __init__(
        self,
        email: str,
        password: str,
        api_key: str,
        jobs_url: str,
        auth_url: str,
        refresh_url: str,
        contract: Optional[UpstreamContract] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.email = email
        self.password = password
        self.api_key = api_key
        self.jobs_url = jobs_url
        self.auth_url = auth_url
        self.refresh_url = refresh_url
        self.contract = contract or UpstreamContract()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def login(self) -> Dict[str, Any]:
        """POST the account credentials; returns the raw token payload."""
        body = {"email": self.email, "password": self.password, "api_key": self.api_key}
        return self._request("POST", self.auth_url, "login", json=body)

    def refresh(self, access_token: str) -> Dict[str, Any]:
        """POST to the refresh endpoint presenting the current access token."""
        headers = {self.contract.refresh_header: self.contract.refresh_value(access_token)}
        return self._request("POST", self.refresh_url, "refresh", json={}, headers=headers)

    def list_jobs(self, access_token: str, page: int) -> Dict[str, Any]:
        """GET one page of the job listing.

        Raises:
            AuthExpiredDuringFetch: On 401/403
            UpstreamError: On any other non-2xx, transport error or bad body
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        return self._request(
            "GET", self.jobs_url, "list_jobs", params={"page": page}, headers=headers
        )

    def _request(self, method: str, url: str, operation: str, **kwargs) -> Dict[str, Any]:
        logger.record_api_call()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            detail = _response_message(e.response)
            logger.record_error(f"HTTPError_{status}")
            logger.warning("Upstream request failed", operation=operation, status=status, detail=detail)
            if operation == "list_jobs" and status in AUTH_REJECTED_STATUSES:
                raise AuthExpiredDuringFetch(f"{operation} rejected credentials: {detail}", status=status)
            raise UpstreamError(f"{operation} failed: {detail}", status=status)
        except requests.exceptions.Timeout:
            logger.record_error("Timeout")
            logger.warning("Upstream request timed out", operation=operation)
            raise UpstreamError(f"{operation} timed out")
        except requests.exceptions.RequestException as e:
            logger.record_error("RequestException")
            logger.error("Upstream request error", operation=operation, error=str(e))
            raise UpstreamError(f"{operation} request error: {e}")

        try:
            data = resp.json()
        except ValueError:
            logger.record_error("InvalidJSON")
            raise UpstreamError(f"{operation} returned a non-JSON body", status=resp.status_code)
        if not isinstance(data, dict):
            raise UpstreamError(f"{operation} returned unexpected payload type", status=resp.status_code)
        return data


def _response_message(response: Optional[requests.Response]) -> str:
    if response is None:
        return "no response"
    try:
        data = response.json()
    except ValueError:
        return (response.text or response.reason or "").strip()[:200]
    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            if data.get(key):
                return str(data[key])
    return str(data)[:200]
