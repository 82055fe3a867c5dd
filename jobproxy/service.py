"""Builds the proxy object graph from Settings."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .cache import JobCache
from .config import Settings
from .credentials import CredentialManager, utcnow
from .fetcher import UpstreamFetcher
from .refresher import BackgroundRefresher
from .router import QueryRouter
from .upstream import CeipalClient, UpstreamContract


@dataclass
class JobProxyService:
    client: CeipalClient
    credentials: CredentialManager
    fetcher: UpstreamFetcher
    cache: JobCache
    router: QueryRouter
    refresher: BackgroundRefresher


def create_client(settings: Settings) -> CeipalClient:
    contract = UpstreamContract(
        refresh_header=settings.refresh_header,
        refresh_scheme=settings.refresh_scheme,
    )
    return CeipalClient(
        email=settings.email,
        password=settings.password,
        api_key=settings.api_key,
        jobs_url=settings.jobs_url,
        auth_url=settings.auth_url,
        refresh_url=settings.refresh_url,
        contract=contract,
        timeout=settings.request_timeout,
    )


def create_service(
    settings: Settings,
    client=None,
    clock: Callable[[], datetime] = utcnow,
    on_refresh_error: Optional[Callable[[Exception], None]] = None,
) -> JobProxyService:
    """
    Wire client, credentials, fetcher, cache, router and refresher.

    Args:
        settings: Loaded Settings
        client: Optional upstream client (default: CeipalClient from settings)
        clock: Shared clock for token and cache expiry
        on_refresh_error: Callback for background refresh failures
    """
    client = client or create_client(settings)
    credentials = CredentialManager(
        client,
        clock=clock,
        access_ttl=settings.access_ttl,
        refresh_ttl=settings.refresh_ttl,
    )
    fetcher = UpstreamFetcher(client, credentials)
    cache = JobCache(fetcher, ttl=settings.cache_ttl, clock=clock)
    router = QueryRouter(
        cache,
        credentials,
        fetcher,
        page_size=settings.page_size,
        search_limit=settings.search_limit,
        links_base=settings.links_base,
    )
    refresher = BackgroundRefresher(
        cache,
        credentials,
        interval=settings.refresh_interval,
        on_error=on_refresh_error,
    )
    return JobProxyService(
        client=client,
        credentials=credentials,
        fetcher=fetcher,
        cache=cache,
        router=router,
        refresher=refresher,
    )
