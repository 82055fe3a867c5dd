"""
Paginated retrieval of the upstream job listing.

fetch_all() learns the page count from page 1, fans out the remaining
pages on a thread pool and re-sorts the combined list, so the output
order never depends on which page answered first.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import AuthExpiredDuringFetch, UpstreamError
from .logger import get_logger
from .normalize import sort_by_created
from .retry import is_transient_status

logger = get_logger()


@dataclass(frozen=True)
class PageResult:
    records: Tuple[Dict[str, Any], ...]
    page_count: int
    total_count: int


@dataclass(frozen=True)
class BulkResult:
    records: Tuple[Dict[str, Any], ...]
    page_count: int
    total_count: int
    failed_pages: Tuple[int, ...] = ()


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class UpstreamFetcher:
    """Reads listing pages through a CeipalClient using a managed token."""

    def __init__(self, client, credentials, max_workers: Optional[int] = None):
        """
        Args:
            client: Object with list_jobs(access_token, page) and a ``contract``
            credentials: CredentialManager supplying tokens
            max_workers: Optional cap on concurrent page requests (default: one per page)
        """
        self.client = client
        self.credentials = credentials
        self.max_workers = max_workers

    def fetch_page(self, page: int, access_token: Optional[str] = None) -> PageResult:
        """Fetch a single listing page.

        Raises:
            UpstreamError: On any upstream failure (AuthExpiredDuringFetch on 401/403)
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        token = access_token or self.credentials.ensure_valid()
        try:
            data = self.client.list_jobs(token, page)
        except AuthExpiredDuringFetch as e:
            if e.access_token is None:
                e.access_token = token
            raise

        contract = self.client.contract
        results = data.get(contract.results_field) or []
        if not isinstance(results, list):
            raise UpstreamError(f"page {page} has malformed '{contract.results_field}'")
        records = tuple(results)
        logger.record_page_success()
        return PageResult(
            records=records,
            page_count=max(_as_int(data.get(contract.pages_field), 1), 1),
            total_count=_as_int(data.get(contract.count_field), len(records)),
        )

    def _fetch_remaining_page(self, page: int, access_token: str) -> Optional[PageResult]:
        """Pages after the first degrade to None instead of failing the scan."""
        try:
            return self.fetch_page(page, access_token)
        except UpstreamError as e:
            logger.record_page_failure(type(e).__name__)
            if e.status is None or is_transient_status(e.status):
                logger.warning(f"Error fetching page {page}, skipping", error=str(e), status=e.status)
            else:
                logger.error(f"Page {page} rejected, skipping", error=str(e), status=e.status)
            return None

    def fetch_all(self) -> BulkResult:
        """Fetch every listing page and return the combined, sorted records.

        Raises:
            UpstreamError: If page 1 fails
        """
        logger.info("Fetching all jobs")
        token = self.credentials.ensure_valid()
        first = self.fetch_page(1, token)

        records: List[Dict[str, Any]] = list(first.records)
        failed: List[int] = []
        remaining = list(range(2, first.page_count + 1))

        if remaining:
            workers = self.max_workers or len(remaining)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="page") as pool:
                futures = [
                    (page, pool.submit(self._fetch_remaining_page, page, token))
                    for page in remaining
                ]
                for page, future in futures:
                    result = future.result()
                    if result is None:
                        failed.append(page)
                    else:
                        records.extend(result.records)

        ordered = sort_by_created(records)
        logger.info(
            f"Fetched {len(ordered)} jobs from {first.page_count} pages",
            total_count=first.total_count,
            failed_pages=failed,
        )
        return BulkResult(
            records=tuple(ordered),
            page_count=first.page_count,
            total_count=first.total_count,
            failed_pages=tuple(failed),
        )
