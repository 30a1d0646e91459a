import threading

from pulse.services.scheduler import IntervalScheduler


def test_start_is_idempotent_and_stop_is_safe_when_idle() -> None:
    ran = threading.Event()
    scheduler = IntervalScheduler("test", ran.set, interval_seconds=60, warmup_seconds=0)
    scheduler.stop()
    assert scheduler.is_running is False

    scheduler.start()
    first_thread = scheduler._thread
    scheduler.start()
    assert scheduler._thread is first_thread
    assert ran.wait(timeout=2)

    scheduler.stop()
    assert scheduler.is_running is False
    scheduler.stop()


def test_failing_tick_does_not_stop_the_loop() -> None:
    calls: list[int] = []
    done = threading.Event()

    def job() -> None:
        calls.append(1)
        if len(calls) >= 3:
            done.set()
        raise RuntimeError("tick failed")

    scheduler = IntervalScheduler("flaky", job, interval_seconds=0.01, warmup_seconds=0)
    scheduler.start()
    try:
        assert done.wait(timeout=2)
    finally:
        scheduler.stop()
    assert len(calls) >= 3


def test_stop_during_warmup_skips_the_job() -> None:
    ran = threading.Event()
    scheduler = IntervalScheduler("slow", ran.set, interval_seconds=60, warmup_seconds=30)
    scheduler.start()
    scheduler.stop()
    assert ran.is_set() is False
    assert scheduler.is_running is False


def test_start_after_timed_out_stop_waits_for_running_tick() -> None:
    entered = threading.Event()
    release = threading.Event()
    ticks: list[int] = []

    def job() -> None:
        ticks.append(1)
        entered.set()
        release.wait(timeout=5)

    scheduler = IntervalScheduler("busy", job, interval_seconds=60, warmup_seconds=0)
    scheduler.start()
    assert entered.wait(timeout=2)
    busy_thread = scheduler._thread

    scheduler.stop(timeout=0.05)
    assert scheduler.is_running is True
    scheduler.start()
    assert scheduler._thread is busy_thread
    assert ticks == [1]

    release.set()
    scheduler.stop()
    assert scheduler.is_running is False
    assert ticks == [1]
