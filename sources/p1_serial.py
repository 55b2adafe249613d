"""P1 Serial ingress module - reads DSMR telegram lines via USB serial port"""
import asyncio
import logging
import sys
from typing import AsyncIterator, Optional

import serial

logger = logging.getLogger(__name__)


class P1SerialSource:
    """
    P1 Serial line source.

    Reads DSMR telegram lines directly from the smart meter's P1 port
    via USB serial connection.

    Supports DSMR v2/v3 meters (9600 baud, 7E1), whose telegrams end with
    a bare "!" line. DSMR v4+ telegrams end with "!" plus a CRC and are
    not assembled.
    """

    BAUDRATE = 9600

    def __init__(
        self,
        device: str = "/dev/ttyUSB0",
        timeout: float = 15.0,
        max_retries: int = 5
    ):
        """
        Initialize P1 Serial source.

        Args:
            device: Serial device path (default: /dev/ttyUSB0)
            timeout: Read timeout in seconds (default: 15.0)
            max_retries: Consecutive empty reads before the line stream ends (default: 5)
        """
        self.device = device
        self.timeout = timeout
        self.max_retries = max_retries
        self.ser = None

    async def __aenter__(self):
        """Context manager entry: connect to serial port"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: cleanup resources"""
        await self.close()

    def _open(self) -> None:
        logger.info(f"P1 Serial: Opening {self.device} at {self.BAUDRATE} baud")

        # Open serial port (blocking, but fast)
        self.ser = serial.Serial(
            port=self.device,
            baudrate=self.BAUDRATE,
            bytesize=serial.SEVENBITS,
            parity=serial.PARITY_EVEN,
            stopbits=serial.STOPBITS_ONE,
            timeout=self.timeout
        )

    async def connect(self) -> None:
        """
        Serial Bootstrap.
        Opens the serial port; hard fails if the device is missing or unusable.
        """
        if not self.device:
            logger.error("P1_SERIAL_DEVICE not configured")
            sys.exit(1)
            return  # For test mocking

        try:
            self._open()
        except serial.SerialException as e:
            logger.error(f"P1 Serial: Cannot open {self.device}: {e}")
            logger.error("Check that device exists and you have permissions (add user to 'dialout' group)")
            sys.exit(1)
            return

    async def reconnect(self) -> None:
        """
        Reopen the port after the line stream ended.

        Raises:
            serial.SerialException: the device is still unavailable
        """
        self._open()

    async def close(self) -> None:
        if self.ser and self.ser.is_open:
            self.ser.close()
            logger.info("P1 Serial: Port closed")

    async def lines(self) -> AsyncIterator[str]:
        """
        Serial Reading Stream.

        Yields non-empty telegram lines with line endings stripped.
        Ends on a serial error, or after max_retries consecutive reads
        that time out without data.
        """
        if self.ser is None or not self.ser.is_open:
            logger.error("P1 Serial: lines() called before connect()")
            return

        consecutive_timeouts = 0
        logger.info(f"P1 Serial: Streaming telegrams from {self.device}")

        while True:
            try:
                line = await self._read_line()
            except serial.SerialException as e:
                logger.error(f"P1 Serial: Read error: {e}")
                return

            if line is None:
                consecutive_timeouts += 1
                if consecutive_timeouts >= self.max_retries:
                    logger.error(f"P1 Serial: Max retries ({self.max_retries}) exceeded. No data from device.")
                    return

                logger.warning(f"P1 Serial: Read timed out. Retrying... ({consecutive_timeouts}/{self.max_retries})")
                continue

            consecutive_timeouts = 0
            if line:
                yield line

    async def _read_line(self) -> Optional[str]:
        """
        Read one line from the serial port.

        Returns the decoded line (possibly empty), or None if the read
        timed out before any byte arrived.
        """
        # Run blocking serial read in executor to not block event loop
        loop = asyncio.get_running_loop()
        raw = await loop.run_in_executor(None, self.ser.readline)

        if not raw:
            return None

        return raw.decode('ascii', errors='ignore').strip()
