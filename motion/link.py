"""
Simulated Hardware Link

Stands in for the serial connection to the carriage controller. The
port is opened through pyserial's URL handlers (loop:// by default, a
loopback that echoes every write), then verified by writing a probe
line and reading it back. Nothing else travels over the link; it only
proves the simulated device is present before the core starts.

Author: Carriage Simulator Development
Created: October 2026
"""

import logging
from typing import Optional

import serial

from core.exceptions import create_link_error

logger = logging.getLogger(__name__)


class SimulatedHardwareLink:
    """Opens and verifies the simulated serial link"""

    PROBE = b"?\n"

    def __init__(self, port: str = "loop://", baudrate: int = 115200, timeout: float = 1.0):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.serial_connection: Optional[serial.SerialBase] = None

    def connect(self) -> bool:
        """
        Open the port and check it echoes the probe

        Returns:
            True if the link is open and verified
        """
        self._close_connection()

        try:
            self.serial_connection = serial.serial_for_url(
                self.port,
                baudrate=self.baudrate,
                timeout=self.timeout,
                write_timeout=self.timeout
            )
        except (serial.SerialException, ValueError) as e:
            logger.error(f"Failed to open serial port {self.port}: {e}")
            self.serial_connection = None
            return False

        if not self._test_connection():
            logger.error(f"Failed to open serial port {self.port}: probe not echoed")
            self._close_connection()
            return False

        logger.info(f"Opened serial port {self.port}")
        return True

    def require(self):
        """
        Connect or raise

        Raises:
            HardwareConnectionError: If the link cannot be acquired
        """
        if not self.connect():
            raise create_link_error(f"Failed to open serial port {self.port}", error_code="LINK001")

    def disconnect(self):
        if self.serial_connection is not None:
            logger.info(f"Closing serial port {self.port}")
        self._close_connection()

    def is_connected(self) -> bool:
        return self.serial_connection is not None and self.serial_connection.is_open

    def _test_connection(self) -> bool:
        try:
            self.serial_connection.reset_input_buffer()
            self.serial_connection.write(self.PROBE)
            self.serial_connection.flush()
            echo = self.serial_connection.read(len(self.PROBE))
        except serial.SerialException as e:
            logger.error(f"Link probe failed on {self.port}: {e}")
            return False

        return echo == self.PROBE

    def _close_connection(self):
        try:
            if self.serial_connection is not None and self.serial_connection.is_open:
                self.serial_connection.close()
        except serial.SerialException as e:
            logger.warning(f"Error closing serial port {self.port}: {e}")
        finally:
            self.serial_connection = None
