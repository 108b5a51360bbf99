import time

import pytest

from dsqlgen.tui.errors import ErrorEntry, ErrorState


def test_record_error_counts_and_keeps_recent_five():
    state = ErrorState()
    for i in range(7):
        state.record_error(f"error {i}")
    assert state.error_count == 7
    assert [e.message for e in state.last_errors] == [f"error {i}" for i in range(2, 7)]
    assert len(state.error_history) == 7
    assert all(p.value == 1.0 for p in state.error_history)


def test_record_error_timestamps_are_wall_clock():
    before = time.time()
    state = ErrorState()
    state.record_error("boom")
    after = time.time()
    assert before <= state.last_errors[0].timestamp <= after


def test_error_list_lines_without_errors():
    assert ErrorState().error_list_lines(now=0.0) == ["Total errors: 0"]


@pytest.mark.parametrize(
    "offset, expected",
    [(30, "[30s ago] boom"), (120, "[2m ago] boom"), (7200, "[2h ago] boom")],
)
def test_error_list_lines_ages(offset, expected):
    state = ErrorState(error_count=1)
    state.last_errors.append(ErrorEntry(1000.0, "boom"))
    lines = state.error_list_lines(now=1000.0 + offset)
    assert lines[:3] == ["Total errors: 1", "", "Recent errors:"]
    assert lines[3] == expected


def test_error_list_lines_future_timestamp_is_zero_seconds():
    state = ErrorState(error_count=1)
    state.last_errors.append(ErrorEntry(500.0, "late"))
    assert state.error_list_lines(now=400.0)[-1] == "[0s ago] late"


def test_error_list_truncates_long_messages():
    state = ErrorState(error_count=1)
    state.last_errors.append(ErrorEntry(0.0, "x" * 50))
    assert state.error_list_lines(now=0.0)[-1] == "[0s ago] " + "x" * 40 + "..."


def test_summary_text():
    state = ErrorState(error_count=2)
    state.last_errors.append(ErrorEntry(3661.0, "first"))
    state.last_errors.append(ErrorEntry(0.0, "y" * 70))
    text = state.summary_text()
    assert text.startswith("Total errors: 2\n\nRecent errors:\n")
    assert "1: [1:01:01] first\n" in text
    assert "2: [0:00:00] " + "y" * 60 + "...\n" in text
    assert text.endswith("\nPress 'q' or ESC to quit")


def test_summary_text_without_errors():
    assert ErrorState().summary_text() == "Total errors: 0\n\nPress 'q' or ESC to quit"


def test_chart_series_empty_is_none():
    assert ErrorState().chart_series(now=10.0) is None


def test_chart_series_averages_within_bucket():
    state = ErrorState()
    now = 500.0
    state.error_history.push(1.0, now - 0.6)
    state.error_history.push(3.0, now - 0.4)
    series = state.chart_series(now=now)
    assert len(series.points) == 300
    assert series.points[-1] == (299.0, 2.0)
    assert sum(y for _, y in series.points[:-1]) == 0.0
    assert series.y_max == pytest.approx(2.0 * 1.1)
    assert series.y_labels[0] == "0"


def test_chart_series_has_minimum_scale():
    state = ErrorState()
    now = 500.0
    state.error_history.push(0.5, now - 0.5)
    series = state.chart_series(now=now)
    assert series.y_max == 1.0
    assert series.y_labels == ["0", "0.5", "1.0"]