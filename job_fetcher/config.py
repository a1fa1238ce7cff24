"""Load env settings and query profiles."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from job_fetcher.errors import ConfigError
from job_fetcher.log import get_logger
from job_fetcher.models import QueryProfile, QuerySpec

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
QUERIES_PATH: Path = CONFIG_DIR / "queries.yaml"
DATA_DIR: Path = PROJECT_ROOT / "data"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")

# crontab numbering: 0 and 7 are Sunday
_CRON_DAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_bool(key: str, default: bool) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.lower() in _TRUE


def _env_number(key: str, default: float, cast=int):
    raw = get_env(key)
    if not raw:
        return cast(default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    serpapi_key: str = ""
    database_url: str = f"sqlite:///{DATA_DIR / 'jobs.db'}"
    port: int = 3000
    queries_path: Path = QUERIES_PATH
    default_timezone: str = "Asia/Kolkata"
    fetch_timeout: float = 30.0
    store_connect_attempts: int = 3
    fail_when_all_failed: bool = True
    scheduler_enabled: bool = True
    misfire_grace_seconds: int = 3600


def load_settings() -> Settings:
    """Read settings once from the environment (after .env is loaded)."""
    settings = Settings(
        serpapi_key=get_env("SERPAPI_KEY"),
        database_url=get_env("DATABASE_URL") or Settings.database_url,
        port=_env_number("PORT", 3000),
        queries_path=Path(get_env("QUERIES_PATH") or QUERIES_PATH),
        default_timezone=get_env("DEFAULT_TIMEZONE") or Settings.default_timezone,
        fetch_timeout=_env_number("FETCH_TIMEOUT_SECONDS", 30.0, float),
        store_connect_attempts=max(1, _env_number("STORE_CONNECT_ATTEMPTS", 3)),
        fail_when_all_failed=_env_bool("FAIL_WHEN_ALL_QUERIES_FAIL", True),
        scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
        misfire_grace_seconds=_env_number("MISFIRE_GRACE_SECONDS", 3600),
    )
    if not settings.serpapi_key:
        log.warning("SERPAPI_KEY not set in .env — every query will fail")
    return settings


def _check_timezone(name: str, where: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"{where}: unknown timezone {name!r}") from None
    return name


def _cron_day(token: str) -> int:
    token = token.strip().lower()
    if token.isdigit() and int(token) <= 7:
        return int(token)
    if token in _CRON_DAYS:
        return _CRON_DAYS.index(token)
    raise ValueError(f"bad day of week {token!r}")


def crontab_day_of_week(field: str) -> str:
    """Translate a crontab day-of-week field into APScheduler day names.

    APScheduler counts weekdays from 0 = Monday; crontab from 0 = Sunday.
    Every day the field selects is spelled out by name, so "1-5" becomes
    "mon,tue,wed,thu,fri" and "*/2" becomes "sun,tue,thu,sat".
    """
    if field == "*":
        return field
    days: set[int] = set()
    for part in field.split(","):
        span, _, step = part.partition("/")
        every = int(step) if step else 1
        if every < 1:
            raise ValueError(f"bad step in day of week {part!r}")
        if span == "*":
            first, last = 0, 6
        elif "-" in span:
            lo, hi = span.split("-", 1)
            first, last = _cron_day(lo), _cron_day(hi)
        else:
            first = _cron_day(span)
            last = 6 if step else first
        if first > last:
            raise ValueError(f"bad day of week range {part!r}")
        days.update(d % 7 for d in range(first, last + 1, every))
    return ",".join(_CRON_DAYS[d] for d in sorted(days))


def cron_trigger(expr: str, timezone: str) -> CronTrigger:
    """Build a trigger from a 5-field crontab expression with crontab weekdays."""
    fields = expr.split()
    if len(fields) != 5:
        raise ValueError(f"Wrong number of fields; got {len(fields)}, expected 5")
    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=crontab_day_of_week(day_of_week),
        timezone=timezone,
    )


def _as_bool(value: Any, default: bool, where: str, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE + _FALSE:
        return value.strip().lower() in _TRUE
    raise ConfigError(f"{where}: {key!r} must be true or false, got {value!r}")


def _check_schedule(expr: Any, tz: str, where: str) -> str:
    if not isinstance(expr, str) or not expr.strip():
        raise ConfigError(f"{where}: 'schedule' must be a cron string")
    try:
        cron_trigger(expr, tz)
    except ValueError as exc:
        raise ConfigError(f"{where}: bad schedule {expr!r}: {exc}") from None
    return expr.strip()


def parse_profiles(data: Any, default_timezone: str = "Asia/Kolkata") -> dict[str, QueryProfile]:
    """Build query profiles from the parsed YAML document."""
    if not isinstance(data, dict) or not isinstance(data.get("profiles"), dict):
        raise ConfigError("query file needs a 'profiles' mapping")

    defaults: dict[str, Any] = data.get("defaults") or {}
    profiles: dict[str, QueryProfile] = {}

    for name, body in data["profiles"].items():
        where = f"profile {name!r}"
        if not isinstance(body, dict):
            raise ConfigError(f"{where}: expected a mapping")
        merged = {**defaults, **body}

        tz = _check_timezone(str(merged.get("timezone") or default_timezone), where)
        schedule = _check_schedule(merged.get("schedule"), tz, where)

        no_cache = _as_bool(merged.get("no_cache"), False, where, "no_cache")

        terms = merged.get("terms") or []
        if not isinstance(terms, list) or not all(isinstance(t, str) and t.strip() for t in terms):
            raise ConfigError(f"{where}: 'terms' must be a list of non-empty strings")

        queries = tuple(
            QuerySpec(
                term=t.strip(),
                location=str(merged.get("location", "India")),
                google_domain=str(merged.get("google_domain", "google.co.in")),
                no_cache=no_cache,
                engine=str(merged.get("engine", "google_jobs")),
            )
            for t in terms
        )
        profiles[str(name)] = QueryProfile(name=str(name), schedule=schedule, timezone=tz, queries=queries)

    return profiles


def load_profiles(path: Path | None = None, default_timezone: str = "Asia/Kolkata") -> dict[str, QueryProfile]:
    path = path or QUERIES_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read query profiles from {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    profiles = parse_profiles(data, default_timezone)
    log.info("Loaded %d query profile(s) from %s", len(profiles), path.name)
    return profiles
