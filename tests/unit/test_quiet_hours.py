from datetime import datetime, time, timezone

import pytest

from pulse.core.quiet_hours import client_local_now, is_within_quiet_hours, parse_clock


@pytest.mark.parametrize(
    "local_time, expected",
    [
        (time(23, 0), True),
        (time(5, 0), True),
        (time(21, 0), True),
        (time(8, 0), False),
        (time(12, 0), False),
    ],
)
def test_window_spanning_midnight(local_time: time, expected: bool) -> None:
    assert is_within_quiet_hours("21:00", "08:00", local_time) is expected


def test_same_day_window() -> None:
    assert is_within_quiet_hours("13:00", "15:30", time(14, 0)) is True
    assert is_within_quiet_hours("13:00", "15:30", time(15, 30)) is False


def test_equal_start_and_end_is_an_empty_window() -> None:
    assert is_within_quiet_hours("22:00", "22:00", time(22, 0)) is False


def test_parse_clock_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_clock("late")


def test_client_local_now_treats_naive_as_utc() -> None:
    local = client_local_now("America/New_York", datetime(2026, 1, 15, 12, 0))
    assert (local.hour, local.minute) == (7, 0)


def test_unknown_timezone_falls_back_to_utc() -> None:
    local = client_local_now("Mars/Olympus_Mons", datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))
    assert local.hour == 12
