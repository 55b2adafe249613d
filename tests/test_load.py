import pytest

from errors import AmbiguousWindow, IncompleteSample, NoData
from queries.load import LoadEstimate, load_estimate, rate_between
from sources.base import Record


class FakeStore:
    """In-memory stand-in for RecordStore.newer_than()"""

    def __init__(self, records):
        self.records = list(records)
        self.thresholds = []

    def newer_than(self, threshold):
        self.thresholds.append(threshold)
        return [r for r in self.records if r.timestamp > threshold]


def sample(timestamp, delivered_high=None):
    return Record(timestamp=timestamp, delivered_energy_high_tariff=delivered_high)


def test_rate_one_kwh_per_hour_is_one_kilowatt():
    assert rate_between(sample(0, 10.0), sample(3600, 11.0)) == 1000


def test_rate_is_order_independent():
    a = sample(100, 5.0)
    b = sample(400, 5.25)

    assert rate_between(a, b) == rate_between(b, a) == 3000


def test_rate_same_timestamp_is_ambiguous():
    with pytest.raises(AmbiguousWindow) as exc_info:
        rate_between(sample(60, 1.0), sample(60, 2.0), window=1)

    assert exc_info.value.window == 1


def test_rate_missing_register_is_incomplete():
    with pytest.raises(IncompleteSample):
        rate_between(sample(0, None), sample(60, 2.0))

    with pytest.raises(IncompleteSample):
        rate_between(sample(0, 1.0), Record(timestamp=60, delivered_energy_low_tariff=2.0))


def test_load_estimate_windows():
    """Test that each window pairs its oldest sample with the newest one"""
    now = 10_000
    store = FakeStore([
        sample(now - 900, 100.0),   # oldest in the 15 minute window
        sample(now - 300, 100.5),   # oldest in the 5 minute window
        sample(now - 60, 100.9),    # oldest in the 1 minute window
        sample(now, 101.0),
    ])

    estimate = load_estimate(now, store)

    assert estimate.fifteen_minute == pytest.approx(1.0 * 3600 / 900 * 1000)
    assert estimate.five_minute == pytest.approx(0.5 * 3600 / 300 * 1000)
    assert estimate.one_minute == pytest.approx(0.1 * 3600 / 60 * 1000)
    assert store.thresholds == [now - 15 * 60 - 10]


def test_load_estimate_includes_samples_within_slack():
    now = 10_000
    store = FakeStore([
        sample(now - 900 - 11, 50.0),   # outside the slack, ignored
        sample(now - 900 - 9, 100.0),
        sample(now - 300 - 9, 100.5),
        sample(now - 60 - 9, 100.9),
        sample(now, 101.0),
    ])

    estimate = load_estimate(now, store)

    assert estimate.fifteen_minute == pytest.approx(1.0 * 3600 / 909 * 1000)
    assert estimate.one_minute == pytest.approx(0.1 * 3600 / 69 * 1000)


def test_load_estimate_ignores_insertion_order():
    now = 10_000
    records = [
        sample(now - 900, 100.0),
        sample(now - 300, 100.5),
        sample(now - 60, 100.9),
        sample(now, 101.0),
    ]

    forwards = load_estimate(now, FakeStore(records))
    backwards = load_estimate(now, FakeStore(reversed(records)))

    assert forwards == backwards


def test_load_estimate_no_data():
    with pytest.raises(NoData) as exc_info:
        load_estimate(10_000, FakeStore([sample(1_000, 1.0)]))

    assert exc_info.value.window == 15


def test_load_estimate_no_recent_data_for_short_window():
    """Test that an empty five minute window is told apart from an empty store"""
    now = 10_000
    store = FakeStore([sample(now - 800, 1.0), sample(now - 700, 1.1)])

    with pytest.raises(NoData) as exc_info:
        load_estimate(now, store)

    assert exc_info.value.window == 5


def test_load_estimate_single_sample_is_ambiguous():
    with pytest.raises(AmbiguousWindow):
        load_estimate(10_000, FakeStore([sample(10_000, 1.0)]))


def test_load_estimate_identical_timestamps_are_ambiguous():
    now = 10_000
    store = FakeStore([sample(now - 30, 1.0), sample(now - 30, 1.2)])

    with pytest.raises(AmbiguousWindow):
        load_estimate(now, store)


def test_load_estimate_incomplete_sample():
    now = 10_000
    store = FakeStore([sample(now - 30, None), sample(now, 1.2)])

    with pytest.raises(IncompleteSample):
        load_estimate(now, store)


def test_load_estimate_text_is_rounded():
    estimate = LoadEstimate(one_minute=1234.4, five_minute=999.6, fifteen_minute=0.2)

    assert estimate.as_text() == "1234,1000,0"
