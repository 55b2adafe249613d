import argparse
import asyncio
import logging
import os
import sys
import time

import uvicorn
from dotenv import load_dotenv

# Load configuration from single .env file
load_dotenv("p1-meter-logger.env")

from api.server import create_app
from errors import StoreUnavailable
from sinks.ingest import IngestionSink
from sinks.sqlite_store import RecordStore
from sources.p1_serial import P1SerialSource
from sources.replay import ReplaySource
from sources.telegram import FrameAssembler

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

# Stale data timeout (seconds)
STALE_DATA_TIMEOUT = 60

# Pause before reopening a line source that ended (seconds)
RESTART_DELAY = 5


def get_source(source_name: str, replay_file: str | None = None):
    """Initialize the selected line source with hard fail on misconfiguration"""
    if source_name == "serial":
        device = os.getenv("P1_SERIAL_DEVICE", "/dev/ttyUSB0")
        logger.info(f"Using source: P1 Serial ({device})")
        return P1SerialSource(device=device)
    elif source_name == "replay":
        path = replay_file or os.getenv("P1_REPLAY_FILE")
        if not path:
            logger.error("Replay: --replay or P1_REPLAY_FILE not configured in p1-meter-logger.env")
            sys.exit(1)
        logger.info(f"Using source: Replay ({path})")
        return ReplaySource(path=path)
    else:
        logger.error(f"Unknown source: {source_name}")
        sys.exit(1)


def get_store() -> RecordStore:
    """Open the record store with hard fail if the database is unusable"""
    db_path = os.getenv("P1_DATABASE", "p1.db")
    try:
        store = RecordStore(db_path)
    except StoreUnavailable as e:
        logger.error(f"Store: {e}")
        sys.exit(1)
    logger.info(f"Store: Using {db_path}")
    return store


async def run_ingestion(source, sink: IngestionSink, state: dict, restart: bool = True):
    """
    Drive a connected line source through a frame assembler into the sink.

    Each session gets a fresh assembler, so a telegram cut short by the
    source ending is dropped. With restart enabled the source is reopened
    every RESTART_DELAY seconds until it comes back.
    """
    while True:
        assembler = FrameAssembler()
        try:
            async for reading in assembler.assemble_async(source.lines()):
                state["last_reading_time"] = time.time()
                sink.submit(reading)
        except Exception as e:
            logger.error(f"Ingestion error: {e}")
        finally:
            await source.close()

        if assembler.malformed_lines:
            logger.warning(f"Skipped {assembler.malformed_lines} malformed telegram line(s)")

        if not restart:
            logger.info("Line source finished")
            return

        while True:
            logger.warning(f"Line source ended. Reopening in {RESTART_DELAY}s...")
            await asyncio.sleep(RESTART_DELAY)
            try:
                await source.reconnect()
                break
            except Exception as e:
                logger.error(f"Cannot reopen line source: {e}")


async def timeout_monitor(state: dict):
    """Monitor that checks if data has gone stale"""
    while True:
        await asyncio.sleep(10)  # Check every 10 seconds

        time_since_last_reading = time.time() - state["last_reading_time"]

        if time_since_last_reading > STALE_DATA_TIMEOUT:
            if not state["stale_alert_sent"]:
                logger.warning(f"No telegram received for {STALE_DATA_TIMEOUT}s")
                state["stale_alert_sent"] = True
        else:
            # Reset stale flag when data is fresh
            state["stale_alert_sent"] = False


async def main(source_name: str, replay_file: str | None = None):
    source = get_source(source_name, replay_file)
    store = get_store()

    # Bootstrap: hard fail if the source cannot be opened at startup
    await source.connect()
    sink = IngestionSink(store)

    host = os.getenv("P1_HTTP_HOST", "0.0.0.0")
    port = int(os.getenv("P1_HTTP_PORT", "8000"))
    server = uvicorn.Server(uvicorn.Config(create_app(store), host=host, port=port, log_level="info"))

    # Shared state for timeout monitoring
    state = {
        "last_reading_time": time.time(),
        "stale_alert_sent": False
    }

    # Ingestion runs alongside the HTTP server until the server stops
    tasks = [
        asyncio.create_task(run_ingestion(source, sink, state, restart=source_name == "serial")),
        asyncio.create_task(timeout_monitor(state)),
    ]
    try:
        await server.serve()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await sink.drain()
        store.close()


if __name__ == "__main__":
    # Parse command line arguments
    parser = argparse.ArgumentParser(description="P1 Meter Logger")
    parser.add_argument(
        "--source",
        type=str,
        default="serial",
        choices=["serial", "replay"],
        help="Line source to use (default: serial)"
    )
    parser.add_argument(
        "--replay",
        type=str,
        default=None,
        help="Telegram capture to load when --source replay is used"
    )
    args = parser.parse_args()

    try:
        asyncio.run(main(args.source, args.replay))
    except KeyboardInterrupt:
        logger.info("Script stopped by user.")
