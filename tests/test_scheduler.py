from __future__ import annotations

import threading

import pytest

from conftest import wait_until
from hyperx_cloud_flight.errors import InvalidStateError, WriteFailureError
from hyperx_cloud_flight.scheduler import BatteryPollScheduler


def test_first_run_is_immediate():
    fired = threading.Event()
    scheduler = BatteryPollScheduler(fired.set, interval=3600)
    scheduler.start()
    try:
        assert fired.wait(1.0)
    finally:
        assert scheduler.stop()


def test_runs_repeatedly_at_interval():
    calls = []
    scheduler = BatteryPollScheduler(lambda: calls.append(1), interval=0.01)
    scheduler.start()
    try:
        assert wait_until(lambda: len(calls) >= 3)
    finally:
        assert scheduler.stop()
    assert not scheduler.is_running


def test_initial_delay_postpones_first_run():
    calls = []
    scheduler = BatteryPollScheduler(lambda: calls.append(1), interval=0.01)
    scheduler.start(initial_delay=60)
    assert scheduler.stop()
    assert calls == []


def test_start_while_running_is_invalid():
    scheduler = BatteryPollScheduler(lambda: None, interval=3600)
    scheduler.start()
    try:
        with pytest.raises(InvalidStateError):
            scheduler.start()
    finally:
        scheduler.stop()


def test_error_stops_scheduler_by_default():
    calls = []

    def task():
        calls.append(1)
        raise WriteFailureError("could not write")

    scheduler = BatteryPollScheduler(task, interval=0.01)
    scheduler.start()
    assert wait_until(lambda: scheduler.error is not None)
    assert wait_until(lambda: not scheduler.is_running)
    assert isinstance(scheduler.error, WriteFailureError)
    assert calls == [1]


def test_error_retried_next_tick_when_not_fatal():
    calls = []

    def task():
        calls.append(1)
        raise WriteFailureError("could not write")

    scheduler = BatteryPollScheduler(task, interval=0.01, stop_on_error=False)
    scheduler.start()
    try:
        assert wait_until(lambda: len(calls) >= 3)
        assert scheduler.error is None
    finally:
        assert scheduler.stop()


def test_stop_reports_timeout_for_stuck_task():
    release = threading.Event()
    entered = threading.Event()

    def task():
        entered.set()
        release.wait(5)

    scheduler = BatteryPollScheduler(task, interval=3600)
    scheduler.start()
    assert entered.wait(1.0)
    assert scheduler.stop(timeout=0.05) is False
    assert scheduler.is_running

    release.set()
    assert scheduler.stop(timeout=1.0) is True
    assert not scheduler.is_running


def test_restart_after_stop():
    fired = threading.Event()
    scheduler = BatteryPollScheduler(fired.set, interval=3600)
    scheduler.start()
    assert fired.wait(1.0)
    assert scheduler.stop()

    fired.clear()
    scheduler.start()
    assert fired.wait(1.0)
    assert scheduler.stop()
