"""
Job fetcher entry point.

Usage:
  job-fetcher serve            # HTTP liveness endpoint + cron scheduler (default)
  job-fetcher run freshers     # one immediate run of a profile, summary as JSON
  job-fetcher profiles         # list configured profiles
"""
from __future__ import annotations

import argparse
import json
import sys

from job_fetcher.config import Settings, load_profiles, load_settings
from job_fetcher.errors import ConfigError, FatalStartupError
from job_fetcher.log import get_logger, install_exception_hooks

log = get_logger(__name__)

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_STARTUP = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="job-fetcher", description="Fetch Google Jobs listings into the job store.")
    sub = p.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Run the HTTP server and the scheduler.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="Defaults to $PORT (3000).")
    run = sub.add_parser("run", help="Run one profile now and exit.")
    run.add_argument("profile")
    sub.add_parser("profiles", help="List configured query profiles.")
    p.set_defaults(command="serve", host="0.0.0.0", port=None)
    return p.parse_args(argv)


def _serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    from job_fetcher.server import create_app
    from job_fetcher.store import connect_store

    profiles = load_profiles(settings.queries_path, settings.default_timezone)
    store = connect_store(settings)
    try:
        app = create_app(settings, store=store, profiles=profiles)
        log.info("Server is running on port %d", port)
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        store.dispose()
    return EXIT_OK


def _run_once(settings: Settings, name: str) -> int:
    from job_fetcher.pipeline import run_profile
    from job_fetcher.sources import get_source
    from job_fetcher.store import connect_store

    profiles = load_profiles(settings.queries_path, settings.default_timezone)
    if name not in profiles:
        raise ConfigError(f"Unknown profile {name!r}; known: {', '.join(profiles)}")

    store = connect_store(settings)
    try:
        summary = run_profile(
            profiles[name],
            source=get_source(settings),
            store=store,
            fail_when_all_failed=settings.fail_when_all_failed,
        )
    finally:
        store.dispose()
    print(json.dumps(summary.as_dict(), indent=2))
    return EXIT_OK if summary.succeeded else EXIT_RUN_FAILED


def _list_profiles(settings: Settings) -> int:
    profiles = load_profiles(settings.queries_path, settings.default_timezone)
    for p in profiles.values():
        print(f"{p.name:<16} {p.schedule:<16} {p.timezone:<16} {len(p.queries)} queries")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    install_exception_hooks()
    try:
        settings = load_settings()
        if args.command == "run":
            return _run_once(settings, args.profile)
        if args.command == "profiles":
            return _list_profiles(settings)
        return _serve(settings, args.host, args.port or settings.port)
    except FatalStartupError as exc:
        log.critical("Store connection error: %s", exc)
        return EXIT_STARTUP
    except ConfigError as exc:
        log.critical("Configuration error: %s", exc)
        return EXIT_STARTUP


if __name__ == "__main__":
    sys.exit(main())
