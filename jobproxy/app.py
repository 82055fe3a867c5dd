import argparse
import json
import time
from datetime import timedelta
from typing import Any, Dict, List

from . import __version__
from .config import load_settings
from .env import load_env
from .errors import ConfigError, JobProxyError, error_payload
from .logger import get_logger
from .normalize import description_text
from .service import JobProxyService, create_service


def _emit(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _plain_descriptions(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for record in results:
        if "description" in record:
            record = {**record, "description": description_text(record.get("description"))}
        out.append(record)
    return out


def _fail(exc: Exception) -> None:
    _emit(error_payload(exc))
    raise SystemExit(1)


def cmd_list(service: JobProxyService, args: argparse.Namespace) -> None:
    try:
        response = service.router.list_page(args.page)
    except ValueError as e:
        raise SystemExit(str(e))
    except JobProxyError as e:
        _fail(e)
    data = response.to_dict()
    if args.text:
        data["results"] = _plain_descriptions(data["results"])
    _emit(data)


def cmd_search(service: JobProxyService, args: argparse.Namespace) -> None:
    try:
        response = service.router.search(query=args.query, location=args.location, limit=args.limit)
    except ValueError as e:
        raise SystemExit(str(e))
    except JobProxyError as e:
        _fail(e)
    data = response.to_dict()
    if args.text:
        data["results"] = _plain_descriptions(data["results"])
    _emit(data)


def cmd_warm(service: JobProxyService, args: argparse.Namespace) -> None:
    if not service.refresher.run_once():
        _fail(service.refresher.last_error)
    snapshot = service.cache.snapshot
    _emit({
        "records": len(snapshot),
        "captured_at": snapshot.captured_at.isoformat(),
        "source_page_count": snapshot.source_page_count,
        "source_total_count": snapshot.source_total_count,
        "failed_pages": list(snapshot.failed_pages),
    })


def cmd_watch(service: JobProxyService, args: argparse.Namespace) -> None:
    refresher = service.refresher
    if args.interval:
        interval = timedelta(minutes=args.interval)
        if interval >= service.cache.ttl:
            raise SystemExit("--interval must be shorter than the cache TTL")
        refresher.interval = interval
    refresher.run_once()
    refresher.start()
    try:
        if args.duration:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(60)
    except KeyboardInterrupt:
        pass
    finally:
        refresher.stop(timeout=5)
        get_logger().log_metrics_summary()


def cmd_token(service: JobProxyService, args: argparse.Namespace) -> None:
    try:
        service.credentials.ensure_valid()
    except JobProxyError as e:
        _fail(e)
    cred = service.credentials.credential
    _emit({
        "state": service.credentials.state().value,
        "access_expiry": cred.access_expiry.isoformat(),
        "refresh_expiry": cred.refresh_expiry.isoformat(),
    })


def main(argv=None):
    # Load .env if present (CEIPAL_EMAIL, CEIPAL_API_KEY, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="jobproxy", description="Caching proxy for CEIPAL job postings")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    lst = subparsers.add_parser("list", help="Show one page of cached jobs, newest first")
    lst.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    lst.add_argument("--text", action="store_true", help="Render HTML descriptions as plain text")
    lst.set_defaults(func=cmd_list)

    srch = subparsers.add_parser("search", help="Filter cached jobs by keyword and/or location")
    srch.add_argument("--query", help="Matched against job title, client and skills")
    srch.add_argument("--location", help="Matched against city, country and zip code")
    srch.add_argument("--limit", type=int, help="Maximum results (default: JOBPROXY_SEARCH_LIMIT)")
    srch.add_argument("--text", action="store_true", help="Render HTML descriptions as plain text")
    srch.set_defaults(func=cmd_search)

    warm = subparsers.add_parser("warm", help="Fetch every upstream page once and report the snapshot")
    warm.set_defaults(func=cmd_warm)

    watch = subparsers.add_parser("watch", help="Keep the cache warm with the background refresher")
    watch.add_argument("--interval", type=int, help="Refresh interval in minutes (default: JOBPROXY_REFRESH_INTERVAL_MINUTES)")
    watch.add_argument("--duration", type=int, help="Stop after this many seconds (default: run until interrupted)")
    watch.set_defaults(func=cmd_watch)

    tok = subparsers.add_parser("token", help="Obtain a token and show credential state")
    tok.set_defaults(func=cmd_token)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = load_settings()
    except ConfigError as e:
        raise SystemExit(str(e))
    get_logger().configure(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_to_file,
    )

    args.func(create_service(settings), args)


if __name__ == "__main__":
    main()
