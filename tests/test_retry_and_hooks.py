from __future__ import annotations

import logging
import sys
import threading

import pytest

from job_fetcher.errors import FatalStartupError
from job_fetcher.log import install_exception_hooks
from job_fetcher.retry import retry


def test_retry_until_success():
    calls = []
    delays = []

    @retry(max_attempts=3, base_delay=1.0, jitter=False, retryable=(OSError,), sleep=delays.append)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise OSError("refused")
        return "ok"

    assert flaky() == "ok"
    assert delays == [1.0, 2.0]


def test_retry_give_up_converts_error():
    @retry(max_attempts=2, retryable=(OSError,), give_up=FatalStartupError, sleep=lambda _: None)
    def down():
        raise OSError("refused")

    with pytest.raises(FatalStartupError) as exc_info:
        down()
    assert isinstance(exc_info.value.__cause__, OSError)


def test_retry_does_not_catch_other_errors():
    @retry(max_attempts=3, retryable=(OSError,), sleep=lambda _: None)
    def bad():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        bad()


def test_exception_hooks_log_thread_errors(caplog):
    old_sys, old_thread = sys.excepthook, threading.excepthook
    install_exception_hooks()

    def crash():
        raise RuntimeError("worker blew up")

    try:
        with caplog.at_level(logging.ERROR):
            t = threading.Thread(target=crash, name="worker-1")
            t.start()
            t.join()
    finally:
        sys.excepthook, threading.excepthook = old_sys, old_thread

    assert "Unhandled exception in thread worker-1" in caplog.text
    assert "worker blew up" in caplog.text
