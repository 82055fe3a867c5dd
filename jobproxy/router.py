"""
Read operations served to the frontend: one page of the listing, and
search over it. Both work purely on a cached snapshot; the upstream is
only touched when the snapshot has to be rebuilt.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import JobProxyError, UpstreamError, UpstreamUnavailable
from .logger import get_logger
from .normalize import filter_records, sort_by_created
from .retry import call_with_reauth

logger = get_logger()

PAGE_SIZE = 20
SEARCH_LIMIT = 100

STALE_WARNING = "Could not refresh jobs. Serving previously cached results."
SINGLE_PAGE_WARNING = "Could not fetch all jobs. Results may not be sorted correctly."
FIRST_PAGE_WARNING = "Could not fetch all jobs. Searching the first page only."


@dataclass
class PageResponse:
    count: int
    num_pages: int
    limit: int
    page_number: int
    page_count: int
    next: Optional[str]
    previous: Optional[str]
    results: List[Dict[str, Any]] = field(default_factory=list)
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["warning"] is None:
            del data["warning"]
        return data


@dataclass
class SearchResponse:
    count: int
    total_count: int
    results: List[Dict[str, Any]]
    next: Optional[bool]
    previous: None
    num_pages: int
    page_number: int = 1
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["warning"] is None:
            del data["warning"]
        return data


class QueryRouter:
    """list_page() and search() over the JobCache."""

    def __init__(
        self,
        cache,
        credentials,
        fetcher,
        page_size: int = PAGE_SIZE,
        search_limit: int = SEARCH_LIMIT,
        links_base: str = "/api/jobs",
    ):
        self.cache = cache
        self.credentials = credentials
        self.fetcher = fetcher
        self.page_size = page_size
        self.search_limit = search_limit
        self.links_base = links_base

    def _page_link(self, page: int) -> str:
        return f"{self.links_base}?page={page}"

    def _load_snapshot(self):
        """Fresh snapshot, or the stale one with a warning if the rebuild fails."""
        try:
            return call_with_reauth(self.cache.get_or_refresh, self.credentials), None
        except JobProxyError as e:
            stale = self.cache.snapshot
            if stale is None:
                raise
            logger.warning(
                "Refresh failed, serving stale snapshot",
                error=str(e),
                records=len(stale),
            )
            return stale, STALE_WARNING

    def list_page(self, page_number: int = 1) -> PageResponse:
        """
        Return one page of the cached listing, newest jobs first.

        Pages past the end come back empty.

        Raises:
            ValueError: If page_number < 1
            UpstreamUnavailable / AuthFailure: If no data can be served at all
        """
        if page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {page_number}")

        try:
            snapshot, warning = self._load_snapshot()
        except UpstreamUnavailable as e:
            return self._single_page_fallback(page_number, e)

        size = self.page_size
        count = len(snapshot.records)
        num_pages = math.ceil(count / size)
        results = list(snapshot.records[(page_number - 1) * size: page_number * size])

        return PageResponse(
            count=count,
            num_pages=num_pages,
            limit=size,
            page_number=page_number,
            page_count=len(results),
            next=self._page_link(page_number + 1) if page_number < num_pages else None,
            previous=self._page_link(page_number - 1) if page_number > 1 else None,
            results=results,
            warning=warning,
        )

    def _single_page_fallback(self, page_number: int, cause: UpstreamUnavailable) -> PageResponse:
        logger.warning("Error fetching all jobs, falling back to single page", page=page_number, error=str(cause))
        try:
            page = self.fetcher.fetch_page(page_number)
        except UpstreamError as e:
            logger.error("Single page fallback failed", page=page_number, error=str(e))
            raise cause
        return PageResponse(
            count=page.total_count,
            num_pages=page.page_count,
            limit=self.page_size,
            page_number=page_number,
            page_count=len(page.records),
            next=self._page_link(page_number + 1) if page_number < page.page_count else None,
            previous=self._page_link(page_number - 1) if page_number > 1 else None,
            results=list(page.records),
            warning=SINGLE_PAGE_WARNING,
        )

    def search(
        self,
        query: Optional[str] = None,
        location: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Union[SearchResponse, PageResponse]:
        """
        Filter the cached listing by free text and/or location.

        A record matches the text filter if job_title, client or skills
        contains ``query``; the location filter if city, country or
        zip_code contains ``location``. Both comparisons ignore case and
        every supplied filter must match. Without any filter this is
        list_page(1).

        Raises:
            ValueError: If limit < 1
        """
        limit = self.search_limit if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if not query and not location:
            return self.list_page(1)

        try:
            snapshot, warning = self._load_snapshot()
            records: Tuple[Dict[str, Any], ...] = snapshot.records
            total_count = snapshot.source_total_count
        except UpstreamUnavailable as e:
            records, total_count = self._first_page_fallback(e)
            warning = FIRST_PAGE_WARNING

        matched = filter_records(records, query=query, location=location)
        results = matched[:limit]
        logger.debug("Search", query=query, location=location, matched=len(matched))

        return SearchResponse(
            count=len(matched),
            total_count=total_count,
            results=results,
            next=True if len(results) < len(matched) else None,
            previous=None,
            num_pages=math.ceil(len(matched) / self.page_size),
            page_number=1,
            warning=warning,
        )

    def _first_page_fallback(self, cause: UpstreamUnavailable):
        logger.warning("Error fetching all jobs for search, falling back to first page", error=str(cause))
        try:
            page = self.fetcher.fetch_page(1)
        except UpstreamError as e:
            logger.error("First page fallback failed", error=str(e))
            raise cause
        return tuple(sort_by_created(page.records)), page.total_count
