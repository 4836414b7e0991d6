import pytest

from oops_too_slow.core.timing import TimingAccumulator, format_elapsed


def test_start_split_stop(clock):
    timer = TimingAccumulator(clock)
    timer.start()
    clock.advance(250)
    timer.split_and_continue()
    assert timer.accumulated_ms == 250
    clock.advance(100)
    assert timer.elapsed_now() == 350
    assert timer.stop() == 350
    assert not timer.running


def test_stopped_timer_does_not_grow(clock):
    timer = TimingAccumulator(clock)
    timer.start()
    clock.advance(40)
    timer.stop()
    clock.advance(1000)
    assert timer.elapsed_now() == 40
    assert timer.stop() == 40


def test_restart_after_stop_keeps_total(clock):
    timer = TimingAccumulator(clock)
    timer.start()
    clock.advance(30)
    timer.stop()
    timer.start()
    clock.advance(20)
    assert timer.stop() == 50


def test_elapsed_is_monotonic(clock):
    timer = TimingAccumulator(clock)
    timer.start()
    seen = []
    for step in (5, 0, 17, 3):
        clock.advance(step)
        seen.append(timer.elapsed_now())
        timer.split_and_continue()
    assert seen == sorted(seen)


def test_split_when_idle_is_noop(clock):
    timer = TimingAccumulator(clock)
    timer.split_and_continue()
    assert timer.accumulated_ms == 0
    assert not timer.started


def test_reset(clock):
    timer = TimingAccumulator(clock)
    timer.start()
    clock.advance(10)
    timer.reset()
    assert timer.elapsed_now() == 0
    assert not timer.started and not timer.running


@pytest.mark.parametrize("ms,expected", [
    (0, "0:00.000"),
    (61234.9, "1:01.234"),
    (-5, "0:00.000"),
    (3599999, "59:59.999"),
    (3600000, "60:00.000"),
])
def test_format_elapsed(ms, expected):
    assert format_elapsed(ms) == expected
