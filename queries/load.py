"""Current load estimation from the cumulative delivered energy register"""
from dataclasses import dataclass
from typing import Iterable, Protocol

from errors import AmbiguousWindow, IncompleteSample, NoData
from sources.base import Record

# Seconds of slack so a sample just outside a window boundary still counts
WINDOW_SLACK = 10

SECONDS_PER_HOUR = 3600
WATTS_PER_KILOWATT = 1000


class RecentRecords(Protocol):
    def newer_than(self, threshold: float) -> list[Record]: ...


@dataclass(frozen=True)
class LoadEstimate:
    """Average power in watts over the trailing 1, 5 and 15 minutes"""
    one_minute: float
    five_minute: float
    fifteen_minute: float

    def as_text(self) -> str:
        return f"{self.one_minute:.0f},{self.five_minute:.0f},{self.fifteen_minute:.0f}"


def window_start(now: float, minutes: int) -> float:
    """Exclusive lower timestamp bound of a lookback window"""
    return now - minutes * 60 - WINDOW_SLACK


def earliest(records: Iterable[Record], after: float, window: int) -> Record:
    candidates = [r for r in records if r.timestamp > after]
    if not candidates:
        raise NoData(f"No samples in the last {window} minute(s)", window=window)
    return min(candidates, key=lambda r: r.timestamp)


def rate_between(a: Record, b: Record, window: int | None = None) -> float:
    """
    Average power in watts between two samples.

    The samples may be passed in either order; the older one is picked
    by timestamp.
    """
    older, newer = sorted((a, b), key=lambda r: r.timestamp)

    if older.timestamp == newer.timestamp:
        raise AmbiguousWindow(
            f"Samples share timestamp {older.timestamp}, no time elapsed",
            window=window,
        )
    if older.delivered_energy_high_tariff is None or newer.delivered_energy_high_tariff is None:
        raise IncompleteSample("Sample lacks delivered energy (high tariff)", window=window)

    delta_kwh = newer.delivered_energy_high_tariff - older.delivered_energy_high_tariff
    elapsed = newer.timestamp - older.timestamp
    return delta_kwh * SECONDS_PER_HOUR / elapsed * WATTS_PER_KILOWATT


def load_estimate(now: float, store: RecentRecords) -> LoadEstimate:
    """
    Estimate current load from the samples of the last fifteen minutes.

    Each window pairs its oldest sample with the newest sample overall.

    Raises:
        NoData: a window holds no samples
        AmbiguousWindow: a window's samples share one timestamp
        IncompleteSample: a selected sample lacks the high tariff register
    """
    records = store.newer_than(window_start(now, 15))
    if not records:
        raise NoData("No samples in the last 15 minute(s)", window=15)

    end = max(records, key=lambda r: r.timestamp)
    start_15 = min(records, key=lambda r: r.timestamp)
    start_5 = earliest(records, window_start(now, 5), 5)
    start_1 = earliest(records, window_start(now, 1), 1)

    return LoadEstimate(
        one_minute=rate_between(start_1, end, window=1),
        five_minute=rate_between(start_5, end, window=5),
        fifteen_minute=rate_between(start_15, end, window=15),
    )
