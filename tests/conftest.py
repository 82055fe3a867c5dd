"""
Pytest configuration and shared fixtures.
"""

import os

# Keep test runs from writing log files; must happen before jobproxy imports
os.environ.setdefault("JOBPROXY_LOG_TO_FILE", "0")

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from jobproxy.credentials import CredentialManager
from jobproxy.errors import AuthExpiredDuringFetch
from jobproxy.upstream import UpstreamContract


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCeipal:
    """
    In-memory stand-in for CeipalClient.

    pages: page number -> list of job records
    failing_pages: page -> exception raised on every request
    fail_next: page -> exception raised once
    reject_tokens: access tokens answered with 401
    """

    def __init__(self, pages: Optional[Dict[int, List[Dict[str, Any]]]] = None, total_count: Optional[int] = None):
        self.contract = UpstreamContract()
        self.pages = pages if pages is not None else {1: []}
        self.total_count = total_count
        self.failing_pages: Dict[int, Exception] = {}
        self.fail_next: Dict[int, Exception] = {}
        self.reject_tokens = set()
        self.reject_all = False
        self.login_responses: List[Any] = []
        self.refresh_responses: List[Any] = []
        self.delay = 0.0
        self.calls: List[tuple] = []
        self._lock = threading.Lock()
        self._tokens = 0

    def count(self, name: str, page: Optional[int] = None) -> int:
        return sum(
            1 for c in self.calls
            if c[0] == name and (page is None or c[-1] == page)
        )

    def _next_token(self, prefix: str) -> str:
        with self._lock:
            self._tokens += 1
            return f"{prefix}-{self._tokens}"

    def _respond(self, queue: List[Any], default) -> Dict[str, Any]:
        if queue:
            response = queue.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return default()

    def login(self) -> Dict[str, Any]:
        self.calls.append(("login",))
        if self.delay:
            time.sleep(self.delay)
        return self._respond(
            self.login_responses,
            lambda: {"access_token": self._next_token("access"), "refresh_token": "refresh"},
        )

    def refresh(self, access_token: str) -> Dict[str, Any]:
        self.calls.append(("refresh", access_token))
        if self.delay:
            time.sleep(self.delay)
        return self._respond(
            self.refresh_responses,
            lambda: {"access_token": self._next_token("refreshed")},
        )

    def list_jobs(self, access_token: str, page: int) -> Dict[str, Any]:
        self.calls.append(("list_jobs", access_token, page))
        if self.delay:
            time.sleep(self.delay)
        if self.reject_all or access_token in self.reject_tokens:
            raise AuthExpiredDuringFetch("list_jobs rejected credentials: Invalid token", status=401)
        if page in self.fail_next:
            raise self.fail_next.pop(page)
        if page in self.failing_pages:
            raise self.failing_pages[page]
        total = self.total_count
        if total is None:
            total = sum(len(v) for v in self.pages.values())
        return {
            "results": list(self.pages.get(page, [])),
            "num_pages": len(self.pages),
            "count": total,
        }


def make_job(job_id: int, created: Optional[str] = None, **fields) -> Dict[str, Any]:
    job = {
        "id": job_id,
        "job_title": f"Job {job_id}",
        "client": "Acme",
        "skills": "python",
        "city": "Austin",
        "country": "United States",
        "zip_code": 73301,
        "description": "<p>Role description</p>",
    }
    if created is not None:
        job["Created"] = created
    job.update(fields)
    return job


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def three_pages() -> Dict[int, List[Dict[str, Any]]]:
    """Three upstream pages with timestamps interleaved across pages."""
    return {
        1: [make_job(1, "2024-01-05T10:00:00"), make_job(2, "2024-01-01T10:00:00")],
        2: [make_job(3, "2024-01-04T10:00:00"), make_job(4, "2024-01-02T10:00:00")],
        3: [make_job(5, "2024-01-06T10:00:00"), make_job(6, "2024-01-03T10:00:00")],
    }


@pytest.fixture
def fake_ceipal(three_pages) -> FakeCeipal:
    return FakeCeipal(three_pages)


@pytest.fixture
def credentials(fake_ceipal, clock) -> CredentialManager:
    return CredentialManager(fake_ceipal, clock=clock)
