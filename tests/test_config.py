from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from job_fetcher.config import (
    QUERIES_PATH,
    cron_trigger,
    crontab_day_of_week,
    load_profiles,
    load_settings,
    parse_profiles,
)
from job_fetcher.errors import ConfigError


def test_shipped_profiles():
    profiles = load_profiles(QUERIES_PATH)

    top = profiles["top_mncs"]
    assert top.schedule == "0 0 * * 0"
    assert top.timezone == "Asia/Kolkata"
    assert len(top.queries) == 20
    assert top.queries[0].term == "Software Engineer Google"
    assert top.queries[-1].term == "Software Engineer TCS"
    assert all(q.no_cache for q in top.queries)
    assert all(q.location == "India" and q.google_domain == "google.co.in" for q in top.queries)

    fresh = profiles["freshers"]
    assert fresh.schedule == "0 0 */2 * *"
    assert [q.term for q in fresh.queries] == ["Software Engineer Freshers in the last week"]
    assert not fresh.queries[0].no_cache


def test_profile_overrides_defaults():
    profiles = parse_profiles(
        {
            "defaults": {"location": "India", "timezone": "Asia/Kolkata"},
            "profiles": {
                "uk": {"schedule": "30 6 * * 1-5", "timezone": "Europe/London", "location": "United Kingdom",
                       "google_domain": "google.co.uk", "terms": [" Data Engineer "]},
            },
        }
    )
    uk = profiles["uk"]
    assert uk.timezone == "Europe/London"
    assert uk.queries[0].term == "Data Engineer"
    assert uk.queries[0].location == "United Kingdom"
    assert uk.queries[0].google_domain == "google.co.uk"


def test_profile_falls_back_to_default_timezone():
    profiles = parse_profiles({"profiles": {"p": {"schedule": "0 0 * * *", "terms": ["x"]}}}, "UTC")
    assert profiles["p"].timezone == "UTC"


@pytest.mark.parametrize(
    "doc",
    [
        None,
        {"profiles": []},
        {"profiles": {"p": "not a mapping"}},
        {"profiles": {"p": {"terms": ["x"]}}},
        {"profiles": {"p": {"schedule": "every sunday", "terms": ["x"]}}},
        {"profiles": {"p": {"schedule": "0 0 * * *", "timezone": "Mars/Olympus", "terms": ["x"]}}},
        {"profiles": {"p": {"schedule": "0 0 * * *", "terms": "x"}}},
        {"profiles": {"p": {"schedule": "0 0 * * *", "terms": ["ok", ""]}}},
    ],
)
def test_invalid_profile_documents(doc):
    with pytest.raises(ConfigError):
        parse_profiles(doc)


def test_missing_or_broken_file(tmp_path):
    with pytest.raises(ConfigError):
        load_profiles(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("profiles: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_profiles(bad)


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SERPAPI_KEY", " key ")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'x.db'}")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("FAIL_WHEN_ALL_QUERIES_FAIL", "false")
    monkeypatch.setenv("SCHEDULER_ENABLED", "no")
    monkeypatch.setenv("STORE_CONNECT_ATTEMPTS", "0")

    s = load_settings()

    assert s.serpapi_key == "key"
    assert s.port == 8080
    assert s.fetch_timeout == 12.5
    assert s.fail_when_all_failed is False
    assert s.scheduler_enabled is False
    assert s.store_connect_attempts == 1


def test_settings_defaults(monkeypatch):
    for key in ("PORT", "FAIL_WHEN_ALL_QUERIES_FAIL", "SCHEDULER_ENABLED", "DEFAULT_TIMEZONE", "DATABASE_URL"):
        monkeypatch.delenv(key, raising=False)
    s = load_settings()
    assert s.port == 3000
    assert s.fail_when_all_failed is True
    assert s.scheduler_enabled is True
    assert s.default_timezone == "Asia/Kolkata"
    assert s.database_url.startswith("sqlite:///")


def test_bad_number_is_config_error(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ConfigError, match="PORT"):
        load_settings()


MONDAY_NOON_IST = datetime(2026, 10, 19, 12, 0, tzinfo=ZoneInfo("Asia/Kolkata"))


def _next_fire(profile, now=MONDAY_NOON_IST):
    return cron_trigger(profile.schedule, profile.timezone).get_next_fire_time(None, now)


def test_weekly_profile_fires_sunday_midnight_ist():
    top = load_profiles(QUERIES_PATH)["top_mncs"]

    when = _next_fire(top)

    assert when == datetime(2026, 10, 25, 0, 0, tzinfo=ZoneInfo("Asia/Kolkata"))
    assert when.weekday() == 6
    assert _next_fire(top, when + timedelta(minutes=1)) == when + timedelta(days=7)


def test_every_other_day_profile_fires_on_odd_days_at_midnight():
    fresh = load_profiles(QUERIES_PATH)["freshers"]

    when = _next_fire(fresh)
    assert when == datetime(2026, 10, 21, 0, 0, tzinfo=ZoneInfo("Asia/Kolkata"))

    for _ in range(10):
        assert when.day % 2 == 1
        assert (when.hour, when.minute) == (0, 0)
        when = _next_fire(fresh, when + timedelta(minutes=1))


@pytest.mark.parametrize(
    "field, expected",
    [
        ("*", "*"),
        ("0", "sun"),
        ("7", "sun"),
        ("1", "mon"),
        ("1-5", "mon,tue,wed,thu,fri"),
        ("5-7", "sun,fri,sat"),
        ("*/2", "sun,tue,thu,sat"),
        ("1-5/2", "mon,wed,fri"),
        ("0,6", "sun,sat"),
        ("sun", "sun"),
        ("MON-wed", "mon,tue,wed"),
    ],
)
def test_crontab_weekdays_count_from_sunday(field, expected):
    assert crontab_day_of_week(field) == expected


@pytest.mark.parametrize("field", ["8", "5-1", "*/0", "funday", "1-"])
def test_bad_crontab_weekdays(field):
    with pytest.raises(ValueError):
        crontab_day_of_week(field)


def test_numeric_weekday_schedule_keeps_crontab_meaning():
    # Monday 2026-10-19, 12:00 IST
    monday = cron_trigger("0 9 * * 1", "Asia/Kolkata").get_next_fire_time(None, MONDAY_NOON_IST)
    assert monday == datetime(2026, 10, 26, 9, 0, tzinfo=ZoneInfo("Asia/Kolkata"))

    sunday = cron_trigger("0 9 * * 7", "Asia/Kolkata").get_next_fire_time(None, MONDAY_NOON_IST)
    assert sunday.weekday() == 6


def test_cron_trigger_needs_five_fields():
    with pytest.raises(ValueError):
        cron_trigger("0 0 * *", "UTC")


def _no_cache(value):
    doc = {"profiles": {"p": {"schedule": "0 0 * * *", "terms": ["x"], "no_cache": value}}}
    return parse_profiles(doc)["p"].queries[0].no_cache


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), (False, False), (None, False), ("true", True), ("false", False), ("No", False), ("1", True)],
)
def test_no_cache_parsed_as_bool(value, expected):
    assert _no_cache(value) is expected


@pytest.mark.parametrize("value", ["maybe", 1, [True]])
def test_no_cache_rejects_non_bool(value):
    with pytest.raises(ConfigError, match="no_cache"):
        _no_cache(value)
