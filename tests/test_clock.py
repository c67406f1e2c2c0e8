"""Tests for clock module."""

import asyncio
import logging
from unittest.mock import patch

import pytest

from jira_time_logger.clock import Clock, round_duration
from jira_time_logger.duration import Duration


def clock_at(hours=0, minutes=0, seconds=0) -> Clock:
    """Build a stopped clock showing the given time."""
    clock = Clock()
    for _ in range(hours * 3600 + minutes * 60 + seconds):
        clock.tick()
    return clock


class TestTick:
    """Tests for Clock.tick."""

    def test_tick_increments_seconds(self):
        """Test a single tick."""
        clock = Clock()
        clock.tick()

        assert clock.get_time() == Duration(0, 0, 1)

    def test_minute_carry(self):
        """Test seconds carry into minutes."""
        assert clock_at(seconds=60).get_time() == Duration(0, 1, 0)

    def test_3600_ticks_make_an_hour(self):
        """Test carry correctness across a full hour."""
        clock = clock_at(minutes=17, seconds=42)
        for _ in range(3600):
            clock.tick()

        assert clock.get_time() == Duration(1, 17, 42)

    def test_second_listener_fires_every_tick(self):
        """Test second listeners are called on every tick."""
        clock = Clock()
        seen = []
        clock.on_second(seen.append)
        for _ in range(3):
            clock.tick()

        assert seen == [Duration(0, 0, 1), Duration(0, 0, 2), Duration(0, 0, 3)]

    def test_minute_and_hour_listeners(self):
        """Test boundary listeners fire only on carry."""
        clock = clock_at(minutes=59, seconds=58)
        minutes, hours = [], []
        clock.on_minute(minutes.append)
        clock.on_hour(hours.append)

        clock.tick()
        assert minutes == [] and hours == []

        clock.tick()
        assert minutes == [Duration(1, 0, 0)]
        assert hours == [Duration(1, 0, 0)]

    def test_listeners_called_in_registration_order(self):
        """Test multiple listeners keep their order."""
        clock = Clock()
        calls = []
        clock.on_second(lambda t: calls.append("first"))
        clock.on_second(lambda t: calls.append("second"))
        clock.tick()

        assert calls == ["first", "second"]

    def test_listener_receives_copy(self):
        """Test listeners cannot mutate the live time."""
        clock = Clock()
        clock.on_second(lambda t: setattr(t, "hours", 99))
        clock.tick()

        assert clock.get_time().hours == 0

    def test_non_callable_listener(self):
        """Test registering a non-callable fails."""
        with pytest.raises(TypeError):
            Clock().on_minute("not a function")


class TestRounding:
    """Tests for get_time rounding."""

    def test_round_minute_up(self):
        """Test 30 seconds rounds up."""
        clock = clock_at(hours=1, minutes=5, seconds=30)

        assert clock.get_time("minute") == Duration(1, 6, 0)

    def test_round_minute_down(self):
        """Test 29 seconds rounds down."""
        clock = clock_at(hours=1, minutes=5, seconds=29)

        assert clock.get_time("minute") == Duration(1, 5, 0)

    def test_round_minute_carries_hour(self):
        """Test rounding 59m30s carries into the hour."""
        assert round_duration(Duration(0, 59, 30), "minute") == Duration(1, 0, 0)

    def test_round_hour(self):
        """Test hour rounding."""
        assert round_duration(Duration(2, 30, 0), "hour") == Duration(3, 0, 0)
        assert round_duration(Duration(2, 29, 59), "hour") == Duration(2, 0, 0)

    def test_rounding_does_not_mutate(self):
        """Test rounding returns a copy."""
        clock = clock_at(minutes=5, seconds=45)
        clock.get_time("minute")

        assert clock.get_time() == Duration(0, 5, 45)

    def test_unknown_rounding(self):
        """Test unknown rounding unit."""
        with pytest.raises(ValueError):
            Clock().get_time("day")


class TestDeduct:
    """Tests for Clock.deduct."""

    def test_deduct_minutes(self):
        """Test simple minute deduction."""
        clock = clock_at(hours=1, minutes=30)
        clock.deduct(Duration(0, 20, 0))

        assert clock.get_time() == Duration(1, 10, 0)

    def test_deduct_borrows_hour(self):
        """Test minutes borrow from hours."""
        clock = clock_at(hours=2, minutes=10)
        clock.deduct(Duration(0, 30, 0))

        assert clock.get_time() == Duration(1, 40, 0)

    def test_deduct_never_negative(self):
        """Test deducting more than available clamps to zero."""
        clock = clock_at(minutes=30)
        clock.deduct(Duration(0, 45, 0))

        assert clock.get_time() == Duration(0, 0, 0)

    def test_deduct_unnormalized_minutes(self):
        """Test a parsed 90m phrase borrows more than one hour."""
        clock = clock_at(hours=2, minutes=10)
        clock.deduct(Duration(0, 90, 0))

        assert clock.get_time() == Duration(0, 40, 0)

    def test_deduct_hours_floor(self):
        """Test hours clamp at zero."""
        clock = clock_at(hours=1, minutes=5)
        clock.deduct(Duration(3, 0, 0))

        assert clock.get_time() == Duration(0, 5, 0)

    def test_deduct_seconds_borrow(self):
        """Test seconds borrow from minutes."""
        clock = clock_at(minutes=1, seconds=10)
        clock.deduct(Duration(0, 0, 20))

        assert clock.get_time() == Duration(0, 0, 50)

    def test_deduct_notifies_listeners(self):
        """Test deduction notifies the changed units."""
        clock = clock_at(hours=1, minutes=10)
        minutes, hours = [], []
        clock.on_minute(minutes.append)
        clock.on_hour(hours.append)
        clock.deduct(Duration(0, 20, 0))

        assert minutes == [Duration(0, 50, 0)]
        assert hours == [Duration(0, 50, 0)]


class TestTimer:
    """Tests for start / stop / reset."""

    def test_reset_keeps_running_state(self):
        """Test reset only zeroes the time."""
        clock = clock_at(minutes=3)
        clock.reset()

        assert clock.get_time().is_zero()
        assert clock.is_running is False

    def test_start_twice_keeps_one_timer(self):
        """Test starting a running clock is a no-op."""
        async def scenario():
            clock = Clock(interval=10)
            clock.start()
            task = clock._task
            clock.start()
            assert clock._task is task
            assert clock.is_running is True
            clock.stop()
            assert clock.is_running is False

        asyncio.run(scenario())

    def test_start_ticks(self):
        """Test the timer advances the clock."""
        async def scenario():
            clock = Clock(interval=0.01)
            clock.start()
            await asyncio.sleep(0.1)
            clock.stop()
            return clock.get_time()

        elapsed = asyncio.run(scenario())
        assert elapsed.seconds >= 1

    def test_start_keeps_existing_time(self):
        """Test start does not reset a non-zero time."""
        async def scenario():
            clock = clock_at(minutes=5)
            clock.start()
            clock.stop()
            return clock.get_time()

        assert asyncio.run(scenario()) == Duration(0, 5, 0)

    def test_stop_with_reset(self):
        """Test stop(reset_after=True) zeroes the time."""
        async def scenario():
            clock = clock_at(minutes=5)
            clock.start()
            clock.stop(True)
            return clock.get_time()

        assert asyncio.run(scenario()).is_zero()

    def test_stop_when_not_running(self):
        """Test stop is a no-op on a stopped clock."""
        clock = clock_at(minutes=5)
        clock.stop(True)

        assert clock.get_time() == Duration(0, 5, 0)

    def test_restart(self):
        """Test restart zeroes and keeps running."""
        async def scenario():
            clock = clock_at(minutes=5)
            clock.start()
            clock.restart()
            running = clock.is_running
            clock.stop()
            return running, clock.get_time()

        running, elapsed = asyncio.run(scenario())
        assert running is True
        assert elapsed.is_zero()

    def test_wait_returns_after_stop(self):
        """Test wait finishes once the clock is stopped."""
        async def scenario():
            clock = Clock(interval=0.01)
            clock.start()
            asyncio.get_running_loop().call_later(0.05, clock.stop)
            await asyncio.wait_for(clock.wait(), timeout=1)

        asyncio.run(scenario())


class TestListenerFailure:
    """Tests for listeners that raise."""

    def test_tick_survives_failing_listener(self, caplog):
        """Test a raising listener is logged and later listeners still run."""
        def broken(t):
            raise RuntimeError("listener failed")

        clock = Clock()
        seen = []
        clock.on_second(broken)
        clock.on_second(seen.append)
        with caplog.at_level(logging.ERROR, logger="jira_time_logger.clock"):
            clock.tick()
            clock.tick()

        assert clock.get_time() == Duration(0, 0, 2)
        assert seen == [Duration(0, 0, 1), Duration(0, 0, 2)]
        assert "listener failed" in caplog.text

    def test_timer_keeps_running(self):
        """Test the timer task keeps ticking after a listener raises."""
        def broken(t):
            raise RuntimeError("listener failed")

        async def scenario():
            clock = Clock(interval=0.01)
            clock.on_second(broken)
            clock.start()
            await asyncio.sleep(0.1)
            running = clock.is_running
            clock.stop()
            return running, clock.get_time()

        running, elapsed = asyncio.run(scenario())
        assert running is True
        assert elapsed.seconds >= 2


class _Done(Exception):
    pass


class TestScheduling:
    """Tests for tick scheduling."""

    def test_tick_work_does_not_accumulate(self):
        """Test ticks are scheduled against loop time, not after each tick."""
        now = [0.0]
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)
            if len(delays) > 3:
                raise _Done
            now[0] += delay

        async def scenario():
            clock = Clock(interval=1.0)
            # Each tick takes a quarter of a second
            clock.on_second(lambda t: now.__setitem__(0, now[0] + 0.25))
            loop = asyncio.get_running_loop()
            with patch.object(loop, "time", lambda: now[0]), \
                 patch("jira_time_logger.clock.asyncio.sleep", fake_sleep):
                with pytest.raises(_Done):
                    await clock._run()
            return clock.get_time()

        elapsed = asyncio.run(scenario())
        assert delays[:3] == pytest.approx([1.0, 0.75, 0.75])
        assert elapsed == Duration(0, 0, 3)
