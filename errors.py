"""Error taxonomy for parsing, persistence and queries"""


class P1LoggerError(Exception):
    """Base class for every error raised by this project"""


class TelegramLineError(P1LoggerError):
    """A telegram line could not be decoded for a given register"""

    def __init__(self, line: str, identifier: str, message: str):
        super().__init__(message)
        self.line = line
        self.identifier = identifier


class LineNotRecognized(TelegramLineError):
    """The line does not carry the requested register"""


class MalformedNumber(TelegramLineError):
    """The line carries the register, but its value is not a number"""


class QueryError(P1LoggerError):
    """
    A load query could not produce a value.

    Attributes:
        window: Lookback window in minutes the failure belongs to.
    """

    def __init__(self, message: str, window: int | None = None):
        super().__init__(message)
        self.window = window


class NoData(QueryError):
    """No samples fall inside the window"""


class AmbiguousWindow(QueryError):
    """Samples exist but no time has elapsed between them"""


class IncompleteSample(QueryError):
    """A selected sample lacks the delivered energy (high tariff) register"""


class StoreUnavailable(P1LoggerError):
    """The record store failed to read or write"""


class MissingRangeBounds(P1LoggerError):
    """A range query was issued without both bounds"""
