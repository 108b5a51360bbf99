from dsqlgen.history import (
    BucketConfig,
    TimestampedDataPoint,
    TimestampedHistory,
    bucket_data,
)


def _mean(values):
    return sum(values) / len(values)


def test_timestamped_data_point():
    point = TimestampedDataPoint(42.0)
    assert point.value == 42.0


def test_data_point_with_timestamp():
    point = TimestampedDataPoint(7, 123.5)
    assert point.timestamp == 123.5


def test_timestamped_history():
    history = TimestampedHistory(1.0)
    history.push(1.0, 100.0)
    history.push(2.0, 100.0)

    assert len(history) == 2
    assert bool(history)

    history.push(3.0, 101.1)
    assert len(history) <= 2
    assert [p.value for p in history] == [3.0]


def test_history_keeps_points_inside_window():
    history = TimestampedHistory(10.0)
    history.push("a", 0.0)
    history.push("b", 5.0)
    history.push("c", 10.0)
    assert [p.value for p in history.data] == ["a", "b", "c"]
    history.push("d", 12.0)
    assert [p.value for p in history.data] == ["b", "c", "d"]


def test_history_default_timestamp_is_monotonic():
    history = TimestampedHistory(300.0)
    history.push(1)
    history.push(2)
    stamps = [p.timestamp for p in history]
    assert stamps[0] <= stamps[1]


def test_history_clear():
    history = TimestampedHistory(5.0)
    history.push(1, 0.0)
    history.clear()
    assert len(history) == 0
    assert not history


def test_bucketing():
    now = 1000.0
    data = [
        TimestampedDataPoint(1.0, now - 5),
        TimestampedDataPoint(2.0, now - 3),
        TimestampedDataPoint(3.0, now - 1),
    ]
    buckets = bucket_data(data, BucketConfig(2.0, 5), _mean, 0.0, now)
    assert len(buckets) == 5
    assert buckets == [0.0, 0.0, 1.0, 2.0, 3.0]


def test_bucketing_empty_returns_defaults():
    buckets = bucket_data([], BucketConfig(1.0, 4), _mean, -1.0, 50.0)
    assert buckets == [-1.0, -1.0, -1.0, -1.0]


def test_bucketing_drops_points_outside_range():
    now = 100.0
    data = [
        TimestampedDataPoint(9.0, now - 50),
        TimestampedDataPoint(4.0, now),
        TimestampedDataPoint(5.0, now + 1),
    ]
    buckets = bucket_data(data, BucketConfig(1.0, 3), _mean, 0.0, now)
    assert buckets == [0.0, 0.0, 0.0]


def test_bucketing_aggregates_within_bucket():
    now = 10.0
    data = [
        TimestampedDataPoint(2.0, 9.1),
        TimestampedDataPoint(4.0, 9.5),
    ]
    buckets = bucket_data(data, BucketConfig(1.0, 2), _mean, 0.0, now)
    assert buckets == [0.0, 3.0]
    counts = bucket_data(data, BucketConfig(1.0, 2), len, 0.0, now)
    assert counts == [0.0, 2]