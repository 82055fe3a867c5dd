"""
Runtime settings for the job proxy.

Everything the core needs from the outside world (upstream URLs, login
credentials, cache timings, page sizes) is read here once and passed
down as an immutable Settings value.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_AUTH_URL = "https://api.ceipal.com/v1/createAuthtoken"
DEFAULT_REFRESH_URL = "https://api.ceipal.com/v1/refreshToken"

REQUIRED_KEYS = [
    "CEIPAL_EMAIL",
    "CEIPAL_PASSWORD",
    "CEIPAL_API_KEY",
    "CEIPAL_JOBS_URL",
]


@dataclass(frozen=True)
class Settings:
    email: str
    password: str
    api_key: str
    jobs_url: str
    auth_url: str = DEFAULT_AUTH_URL
    refresh_url: str = DEFAULT_REFRESH_URL
    refresh_header: str = "Token"
    refresh_scheme: str = ""
    cache_ttl: timedelta = timedelta(minutes=30)
    refresh_interval: timedelta = timedelta(minutes=25)
    access_ttl: timedelta = timedelta(hours=24)
    refresh_ttl: timedelta = timedelta(days=7)
    page_size: int = 20
    search_limit: int = 100
    request_timeout: float = 15.0
    links_base: str = "/api/jobs"
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True


def _get(env: Mapping[str, str], key: str, default: str = "") -> str:
    return (env.get(key) or default).strip()


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = _get(env, key)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = _get(env, key).lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Raises:
        ConfigError: If a required key is missing or a number is invalid
    """
    env = os.environ if environ is None else environ

    missing = [k for k in REQUIRED_KEYS if not _get(env, k)]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    cache_ttl = timedelta(minutes=_positive_int(env, "JOBPROXY_CACHE_TTL_MINUTES", 30))
    refresh_interval = timedelta(
        minutes=_positive_int(env, "JOBPROXY_REFRESH_INTERVAL_MINUTES", 25)
    )
    if refresh_interval >= cache_ttl:
        raise ConfigError(
            "JOBPROXY_REFRESH_INTERVAL_MINUTES must be shorter than JOBPROXY_CACHE_TTL_MINUTES"
        )

    return Settings(
        email=_get(env, "CEIPAL_EMAIL"),
        password=_get(env, "CEIPAL_PASSWORD"),
        api_key=_get(env, "CEIPAL_API_KEY"),
        jobs_url=_get(env, "CEIPAL_JOBS_URL"),
        auth_url=_get(env, "CEIPAL_AUTH_URL", DEFAULT_AUTH_URL),
        refresh_url=_get(env, "CEIPAL_REFRESH_URL", DEFAULT_REFRESH_URL),
        refresh_header=_get(env, "CEIPAL_REFRESH_HEADER", "Token"),
        refresh_scheme=_get(env, "CEIPAL_REFRESH_SCHEME"),
        cache_ttl=cache_ttl,
        refresh_interval=refresh_interval,
        access_ttl=timedelta(hours=_positive_int(env, "JOBPROXY_ACCESS_TTL_HOURS", 24)),
        refresh_ttl=timedelta(days=_positive_int(env, "JOBPROXY_REFRESH_TTL_DAYS", 7)),
        page_size=_positive_int(env, "JOBPROXY_PAGE_SIZE", 20),
        search_limit=_positive_int(env, "JOBPROXY_SEARCH_LIMIT", 100),
        request_timeout=float(_positive_int(env, "JOBPROXY_REQUEST_TIMEOUT", 15)),
        links_base=_get(env, "JOBPROXY_LINKS_BASE", "/api/jobs"),
        log_level=_get(env, "JOBPROXY_LOG_LEVEL", "INFO").upper(),
        log_dir=Path(_get(env, "JOBPROXY_LOG_DIR", "logs")),
        log_to_file=_flag(env, "JOBPROXY_LOG_TO_FILE", True),
    )
