"""Historical range lookups"""
from typing import Protocol

from errors import MissingRangeBounds
from sources.base import Record


class RecordRange(Protocol):
    def between(self, lo: int, hi: int) -> list[Record]: ...


def records_between(store: RecordRange, start: int | None, end: int | None) -> list[Record]:
    """
    All records with start <= timestamp <= end, oldest first.

    Raises:
        MissingRangeBounds: either bound is missing; the store is not queried.
    """
    if start is None or end is None:
        raise MissingRangeBounds("Both 'from' and 'to' are required")

    records = store.between(start, end)
    return sorted(records, key=lambda r: (r.timestamp, r.id or 0))


def summarize(record: Record) -> dict:
    """The fields exposed by the history endpoint"""
    return {
        "timestamp": record.timestamp,
        "delivered_energy_low_tariff": record.delivered_energy_low_tariff,
        "delivered_energy_high_tariff": record.delivered_energy_high_tariff,
        "current_tariff_indicator": record.current_tariff_indicator,
    }
