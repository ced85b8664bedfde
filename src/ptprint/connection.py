"""
USB Connection Handler for P-touch Printers.

The printer shows up as a USB line printer character device
(e.g. /dev/usb/lp1). Each write is one discrete command; nothing is
buffered or coalesced here.
"""

import asyncio
import logging
import os
from typing import Optional

from .exceptions import DeviceIOError, PrinterConnectionError

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "/dev/usb/lp1"


class DeviceConnection:
    """Exclusive read/write connection to the printer device node."""

    def __init__(self, path: str = DEFAULT_DEVICE):
        self.path = path
        self._fd: Optional[int] = None

    def open(self) -> None:
        """
        Open the device for reading and writing.

        Raises:
            PrinterConnectionError: If the device cannot be opened
        """
        if self._fd is not None:
            return
        try:
            self._fd = os.open(self.path, os.O_RDWR)
        except OSError as e:
            raise PrinterConnectionError(f"unable to open printer {self.path}: {e}") from e
        logger.debug("Opened %s", self.path)

    def close(self) -> None:
        """Close the device."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.close(fd)
        except OSError as e:
            logger.warning("Error closing %s: %s", self.path, e)
        logger.debug("Closed %s", self.path)

    @property
    def is_open(self) -> bool:
        """Check if the device is currently open."""
        return self._fd is not None

    def _require_fd(self) -> int:
        if self._fd is None:
            raise PrinterConnectionError(f"printer {self.path} is not open")
        return self._fd

    def _write(self, data: bytes) -> None:
        fd = self._require_fd()
        try:
            written = os.write(fd, data)
        except OSError as e:
            raise DeviceIOError(f"failed writing, wrote 0 bytes, err {e}") from e
        if written != len(data):
            raise DeviceIOError(
                f"failed writing, wrote {written} of {len(data)} bytes"
            )

    def _read(self, size: int) -> bytes:
        fd = self._require_fd()
        try:
            return os.read(fd, size)
        except OSError as e:
            raise DeviceIOError(f"failed reading: {e}") from e

    async def write(self, data: bytes) -> None:
        """
        Write data to the printer in a single write call.

        Raises:
            DeviceIOError: On a short write or OS error
            PrinterConnectionError: If the device is not open
        """
        await asyncio.to_thread(self._write, bytes(data))

    async def read(self, size: int) -> bytes:
        """
        Read up to size bytes.

        Returns:
            The bytes read; b"" means the device signalled end-of-stream

        Raises:
            DeviceIOError: On an OS error
            PrinterConnectionError: If the device is not open
        """
        return await asyncio.to_thread(self._read, size)

    async def __aenter__(self) -> "DeviceConnection":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
