"""DSMR telegram parsing - register extraction and frame assembly"""
import logging
import math
import re
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator, Optional

from errors import LineNotRecognized, MalformedNumber
from sources.base import Frame, Reading

logger = logging.getLogger(__name__)

# Line marking the end of a telegram
TERMINATOR = "!"

# Decimal float literal: optional sign, optional fraction, optional exponent
NUMBER = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"

# "(00.424*kW)" or "(00.424)" - the unit runs up to the closing parenthesis
VALUE_GROUP = re.compile(rf"\((?P<value>{NUMBER})(?:\*[^)]*)?\)")


@dataclass(frozen=True)
class Register:
    """One OBIS register and the frame field it fills"""
    identifier: str
    field: str
    kind: type = float


REGISTERS = (
    Register("1-0:1.8.1", "delivered_energy_low_tariff"),
    Register("1-0:1.8.2", "delivered_energy_high_tariff"),
    Register("1-0:2.8.1", "received_energy_low_tariff"),
    Register("1-0:2.8.2", "received_energy_high_tariff"),
    Register("0-0:96.14.0", "current_tariff_indicator", int),
    Register("1-0:1.7.0", "instantaneous_power_delivered"),
    Register("1-0:2.7.0", "instantaneous_power_received"),
    Register("0-0:17.0.0", "max_demand"),
    Register("0-0:96.3.10", "switch_position", int),
)


def decode_register(line: str, identifier: str) -> float:
    """
    Decode the value of `identifier` from a telegram line.

    Only the prefix "<identifier>(<number>[*<unit>])" is inspected;
    anything after the closing parenthesis is ignored.

    Raises:
        LineNotRecognized: line does not start with "<identifier>("
        MalformedNumber: the value group is not a valid number
    """
    if not line.startswith(identifier + "("):
        raise LineNotRecognized(line, identifier, f"Line does not carry {identifier}")

    match = VALUE_GROUP.match(line, len(identifier))
    if match is None:
        raise MalformedNumber(line, identifier, f"Malformed value for {identifier}: {line!r}")

    value = float(match.group("value"))
    if not math.isfinite(value):
        raise MalformedNumber(line, identifier, f"Value out of range for {identifier}: {line!r}")

    return value


def extract(line: str, identifier: str) -> Optional[float]:
    """
    Return the value of `identifier` in `line`, or None.

    A line for another register and a corrupt line are treated alike.
    """
    try:
        return decode_register(line, identifier)
    except (LineNotRecognized, MalformedNumber):
        return None


class FrameAssembler:
    """
    Folds telegram lines into completed readings.

    Owns a single in-progress Frame. Register lines overwrite its fields;
    the terminator line swaps it for a fresh Frame and emits the old one
    as a Reading. Line content never makes the assembler fail.
    """

    def __init__(self, on_malformed: Callable[[str, str], None] | None = None):
        """
        Args:
            on_malformed: Optional hook called with (line, identifier) when a
                line carries a known register but an unreadable value.
                Errors raised by the hook are logged and swallowed.
        """
        self.on_malformed = on_malformed
        self.malformed_lines = 0
        self._frame = Frame()

    def feed(self, line: str) -> Optional[Reading]:
        """Consume one line, returning a Reading when it ends a telegram"""
        if line == TERMINATOR:
            frame, self._frame = self._frame, Frame()
            return Reading.from_frame(frame)

        for register in REGISTERS:
            try:
                value = decode_register(line, register.identifier)
            except LineNotRecognized:
                continue
            except MalformedNumber:
                self.malformed_lines += 1
                logger.debug(f"Telegram: Skipping malformed {register.identifier} line: {line!r}")
                if self.on_malformed:
                    try:
                        self.on_malformed(line, register.identifier)
                    except Exception as e:
                        logger.error(f"Telegram: on_malformed hook failed: {e}")
                continue

            setattr(self._frame, register.field, register.kind(value))

        return None

    def assemble(self, lines: Iterable[str]) -> Iterator[Reading]:
        """Lazily turn a line sequence into readings. A trailing partial frame is dropped."""
        for line in lines:
            reading = self.feed(line)
            if reading is not None:
                yield reading

    async def assemble_async(self, lines: AsyncIterable[str]) -> AsyncIterator[Reading]:
        """Async variant of assemble() for live line sources"""
        async for line in lines:
            reading = self.feed(line)
            if reading is not None:
                yield reading
