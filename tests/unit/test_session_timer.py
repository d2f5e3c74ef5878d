"""Unit tests for the elapsed-time ticker."""

import threading
import time

import pytest

from livescribe.services.timer import SessionTimer, format_elapsed


@pytest.mark.unit
@pytest.mark.parametrize("seconds, expected", [
    (0, "00:00"),
    (3, "00:03"),
    (59, "00:59"),
    (60, "01:00"),
    (65, "01:05"),
    (3599, "59:59"),
    (6000, "100:00"),
])
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


@pytest.mark.unit
class TestSessionTimer:

    def test_ticks_until_stopped(self, wait_for):
        ticks = []
        timer = SessionTimer(lambda: ticks.append(time.time()), interval=0.02)
        timer.start()
        assert timer.is_running
        assert wait_for(lambda: len(ticks) >= 3)
        timer.stop()
        count = len(ticks)
        time.sleep(0.1)
        assert len(ticks) == count
        assert not timer.is_running

    def test_first_tick_after_one_interval(self):
        ticks = []
        timer = SessionTimer(lambda: ticks.append(1), interval=0.5)
        timer.start()
        time.sleep(0.1)
        timer.stop()
        assert ticks == []

    def test_stop_from_tick_callback(self, wait_for):
        done = threading.Event()
        timer = None

        def on_tick():
            timer.stop()
            done.set()

        timer = SessionTimer(on_tick, interval=0.01)
        timer.start()
        assert done.wait(2.0)
        assert wait_for(lambda: not timer.thread.is_alive())

    def test_stop_before_start(self):
        timer = SessionTimer(lambda: None)
        timer.stop()
        assert not timer.is_running

    def test_thread_is_daemon_and_named(self):
        timer = SessionTimer(lambda: None, interval=10, name="TestTimer")
        timer.start()
        try:
            assert timer.thread.daemon
            assert timer.thread.name == "TestTimer"
        finally:
            timer.stop()
