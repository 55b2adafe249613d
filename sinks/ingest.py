"""Ingestion egress module - timestamps readings and appends them to the store"""
import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable

from errors import StoreUnavailable
from sinks.sqlite_store import RecordStore
from sources.base import Reading, Record

logger = logging.getLogger(__name__)


def _perform_insert(store: RecordStore, record: Record) -> int:
    """
    Executes the blocking insert.
    Is ran in a thread to not block the main loop.
    """
    return store.append(record)


async def persist_reading(
    store: RecordStore,
    reading: Reading,
    clock: Callable[[], float] = time.time
) -> Record:
    """
    Stamps a reading with the time of receipt and appends it once.

    Raises:
        StoreUnavailable: the append failed; it is not retried here.
    """
    record = Record.from_reading(reading, timestamp=int(clock()))
    row_id = await asyncio.to_thread(_perform_insert, store, record)
    return replace(record, id=row_id)


class IngestionSink:
    """
    Hands readings off to the store without holding up the parser.

    Every submitted reading is persisted by its own task, so inserts may
    finish in any order. Failed inserts are logged and dropped.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self.failures = 0
        self._pending: set[asyncio.Task] = set()

    def submit(self, reading: Reading) -> asyncio.Task:
        task = asyncio.create_task(self._persist(reading))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _persist(self, reading: Reading) -> Record | None:
        try:
            record = await persist_reading(self.store, reading, self.clock)
        except StoreUnavailable as e:
            self.failures += 1
            logger.error(f"Store: Failed to persist reading: {e}")
            return None

        logger.info(
            f"[{record.timestamp}] Stored record {record.id}: "
            f"delivering {record.instantaneous_power_delivered} kW, "
            f"receiving {record.instantaneous_power_received} kW"
        )
        return record

    async def drain(self) -> None:
        """Wait for every in-flight insert to finish"""
        if self._pending:
            await asyncio.gather(*self._pending)
