"""Base definitions for meter readings - data contracts and protocols"""
from dataclasses import asdict, dataclass, fields
from typing import AsyncIterator, Protocol


@dataclass
class Frame:
    """
    In-progress accumulator for one telegram.

    Every register starts out absent and is only set by lines of the
    telegram currently being assembled.
    """
    delivered_energy_low_tariff: float | None = None
    delivered_energy_high_tariff: float | None = None
    received_energy_low_tariff: float | None = None
    received_energy_high_tariff: float | None = None
    current_tariff_indicator: int | None = None
    instantaneous_power_delivered: float | None = None
    instantaneous_power_received: float | None = None
    max_demand: float | None = None
    switch_position: int | None = None


@dataclass(frozen=True)
class Reading:
    """
    Completed telegram: the registers seen between two terminators.

    Attributes:
        delivered_energy_low_tariff: Cumulative delivered energy, tariff 1 (kWh)
        delivered_energy_high_tariff: Cumulative delivered energy, tariff 2 (kWh)
        received_energy_low_tariff: Cumulative received energy, tariff 1 (kWh)
        received_energy_high_tariff: Cumulative received energy, tariff 2 (kWh)
        current_tariff_indicator: Tariff currently in effect
        instantaneous_power_delivered: Current consumption (kW)
        instantaneous_power_received: Current production (kW)
        max_demand: Maximum demand threshold (kW)
        switch_position: Breaker/switch state code
    """
    delivered_energy_low_tariff: float | None = None
    delivered_energy_high_tariff: float | None = None
    received_energy_low_tariff: float | None = None
    received_energy_high_tariff: float | None = None
    current_tariff_indicator: int | None = None
    instantaneous_power_delivered: float | None = None
    instantaneous_power_received: float | None = None
    max_demand: float | None = None
    switch_position: int | None = None

    @classmethod
    def from_frame(cls, frame: Frame) -> "Reading":
        return cls(**asdict(frame))


# Register columns in storage order
REGISTER_FIELDS = tuple(f.name for f in fields(Reading))


@dataclass(frozen=True)
class Record:
    """
    A persisted reading.

    Attributes:
        timestamp: Capture time in whole seconds since the epoch.
        id: Synthetic row identifier, None until stored.
    """
    timestamp: int
    delivered_energy_low_tariff: float | None = None
    delivered_energy_high_tariff: float | None = None
    received_energy_low_tariff: float | None = None
    received_energy_high_tariff: float | None = None
    current_tariff_indicator: int | None = None
    instantaneous_power_delivered: float | None = None
    instantaneous_power_received: float | None = None
    max_demand: float | None = None
    switch_position: int | None = None
    id: int | None = None

    @classmethod
    def from_reading(cls, reading: Reading, timestamp: int) -> "Record":
        return cls(timestamp=timestamp, **asdict(reading))


class LineSource(Protocol):
    """
    Protocol for telegram line sources (P1 serial port, replayed logs).

    Uses Protocol for duck typing - implementations don't need to inherit,
    just implement the methods with matching signatures.
    """

    async def connect(self) -> None:
        """
        Open the underlying device or file.

        Should raise or hard-fail if the source is unusable.
        """
        ...

    async def reconnect(self) -> None:
        """
        Reopen the source after its line stream ended.

        Should raise, not exit, if the source is still unavailable.
        """
        ...

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield telegram lines as they arrive, stripped of line endings.

        Ends when the source reaches EOF or fails.
        """
        ...

    async def close(self) -> None:
        """Release the underlying device or file."""
        ...
