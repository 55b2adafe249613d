"""Replay ingress module - reads DSMR telegram lines from a captured log file"""
import asyncio
import logging
import sys
from pathlib import Path
from typing import AsyncIterator

from sources.telegram import TERMINATOR

logger = logging.getLogger(__name__)


class ReplaySource:
    """
    Line source backed by a text file of recorded telegrams.

    Useful to backfill the store from a capture, or to exercise the
    pipeline without a meter attached. Finite: ends at EOF.
    """

    def __init__(self, path: str | Path, delay: float = 0.0):
        """
        Args:
            path: File holding raw telegram lines
            delay: Seconds to wait after each telegram terminator (default: 0.0)
        """
        self.path = Path(path)
        self.delay = delay
        self.handle = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        try:
            self.handle = self.path.open("r", encoding="ascii", errors="ignore")
        except OSError as e:
            logger.error(f"Replay: Cannot open {self.path}: {e}")
            sys.exit(1)
            return

        logger.info(f"Replay: Reading telegrams from {self.path}")

    async def reconnect(self) -> None:
        """Reopen the capture from the start; raises OSError if it is gone"""
        self.handle = self.path.open("r", encoding="ascii", errors="ignore")

    async def close(self) -> None:
        if self.handle:
            self.handle.close()
            self.handle = None

    async def lines(self) -> AsyncIterator[str]:
        if self.handle is None:
            logger.error("Replay: lines() called before connect()")
            return

        for raw in self.handle:
            line = raw.strip()
            if not line:
                continue

            yield line

            if line == TERMINATOR and self.delay:
                await asyncio.sleep(self.delay)

        logger.info(f"Replay: Reached end of {self.path}")
