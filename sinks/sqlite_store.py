"""SQLite storage module - append-only table of meter records"""
import logging
import sqlite3
import threading
from pathlib import Path

from errors import StoreUnavailable
from sources.base import REGISTER_FIELDS, Record

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    id                             INTEGER PRIMARY KEY,
    timestamp                      INT NOT NULL,
    delivered_energy_low_tariff    REAL,
    delivered_energy_high_tariff   REAL,
    received_energy_low_tariff     REAL,
    received_energy_high_tariff    REAL,
    current_tariff_indicator       INT,
    instantaneous_power_delivered  REAL,
    instantaneous_power_received   REAL,
    max_demand                     REAL,
    switch_position                INT
);

CREATE INDEX IF NOT EXISTS records_timestamp ON records (timestamp);
"""

COLUMNS = ("timestamp",) + REGISTER_FIELDS
SELECT = f"SELECT id, {', '.join(COLUMNS)} FROM records"
ORDER = "ORDER BY timestamp, id"


class RecordStore:
    """
    Append-only record table.

    One connection is shared between the event loop and worker threads;
    a lock serializes access to it. Every sqlite failure surfaces as
    StoreUnavailable.
    """

    def __init__(self, db_path: str | Path = "p1.db"):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open database {self.db_path}: {e}") from e

    def _ensure_schema(self) -> None:
        with self._lock:
            self.conn.executescript(SCHEMA)
            self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        return Record(**{k: row[k] for k in row.keys()})

    def append(self, record: Record) -> int:
        """Insert one record, returning its row id"""
        placeholders = ", ".join("?" for _ in COLUMNS)
        values = tuple(getattr(record, column) for column in COLUMNS)
        try:
            with self._lock, self.conn:
                cur = self.conn.execute(
                    f"INSERT INTO records ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                return cur.lastrowid
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Insert failed: {e}") from e

    def _select(self, where: str, params: tuple) -> list[Record]:
        try:
            with self._lock:
                rows = self.conn.execute(f"{SELECT} WHERE {where} {ORDER}", params).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Query failed: {e}") from e
        return [self._row_to_record(row) for row in rows]

    def between(self, lo: int, hi: int) -> list[Record]:
        """Records with lo <= timestamp <= hi, oldest first"""
        return self._select("timestamp BETWEEN ? AND ?", (lo, hi))

    def newer_than(self, threshold: float) -> list[Record]:
        """Records with timestamp > threshold, oldest first"""
        return self._select("timestamp > ?", (threshold,))
