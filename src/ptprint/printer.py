"""
High-Level P-touch Printer Interface.

Opens the device, runs the startup sequence, and then hands the device
over to the health monitor. Everything written after startup goes
through the monitor, so prints and status checks never interleave.
"""

import asyncio
import logging
from typing import Optional

from PIL import Image

from .commands import PTouchCommands
from .config import Settings
from .connection import DeviceConnection
from .exceptions import DeviceIOError, PrinterConnectionError, PrinterError
from .monitor import HealthMonitor, exit_on_failure, log_and_continue
from .protocol import RetryPolicy, StatusProtocol
from .raster import END_OF_PRINT, encode_image
from .render import render_text
from .responses import HardwareVersion, TransientError
from .session import PrinterSession, PrinterState

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    TransientError.NO_TAPE_CARTRIDGE: "No tape inserted!",
    TransientError.TAPE_RAN_OUT: "The tape has run out!",
    TransientError.TAPE_JAMMED: "The tape is jammed!",
    TransientError.COVER_OPEN: "The printer's cover is open!",
}


class PTouchPrinter:
    """
    High-level interface to a PT-2430PC or PT-P700 label printer.

    Usage:
        async with PTouchPrinter(settings) as printer:
            print(printer.status_message())
            await printer.print_image(image)
    """

    def __init__(self, settings: Optional[Settings] = None, connection=None):
        """
        Initialize printer interface.

        Args:
            settings: Driver settings (defaults if omitted)
            connection: Device link to use instead of opening settings.device
        """
        self.settings = settings or Settings()
        self.connection = connection or DeviceConnection(self.settings.device)
        self.protocol = StatusProtocol(
            RetryPolicy(
                max_attempts=self.settings.status_attempts,
                delay=self.settings.status_retry_delay,
            )
        )
        self.session: Optional[PrinterSession] = None
        self.monitor: Optional[HealthMonitor] = None

    async def _send(self, data: bytes, what: str) -> None:
        try:
            await self.connection.write(data)
        except DeviceIOError as e:
            raise DeviceIOError(f"unable to {what}: {e}") from e

    async def open(self) -> PrinterState:
        """
        Open the device, initialize the printer, and start the health monitor.

        Returns:
            The state reported by the startup status check

        Raises:
            PrinterConnectionError: If the device cannot be opened
            PrinterError: If any startup step fails; the device is closed again
        """
        if self.session is not None:
            return self.session.state

        self.connection.open()
        try:
            await self._send(PTouchCommands.wake(), "start communication")
            await self._send(PTouchCommands.reset(), "reset printer")

            try:
                frame, transient_error = await self.protocol.check(self.connection)
            except PrinterError as e:
                raise type(e)(f"status problem: {e}") from e
            state = PrinterState.from_status(frame, transient_error)

            await self._send(PTouchCommands.set_auto_cut(), "set auto-cut")
            await self._send(PTouchCommands.set_full_cut(), "set full cut")
            await self._send(PTouchCommands.set_compression(), "set compression")
        except Exception:
            self.connection.close()
            raise

        self.session = PrinterSession(self.connection, state)
        self.monitor = HealthMonitor(
            self.session,
            protocol=self.protocol,
            interval=self.settings.poll_interval,
            on_failure=exit_on_failure if self.settings.exit_on_poll_failure else log_and_continue,
        )
        self.monitor.start()

        logger.info(
            "Printer initialized successfully. %s, media width is %dmm.",
            state.hardware_version.model,
            state.media_width_mm,
        )
        return state

    async def close(self) -> None:
        """Stop the health monitor and close the device."""
        if self.monitor is not None:
            await self.monitor.stop()
            self.monitor = None
        self.session = None
        self.connection.close()

    async def __aenter__(self) -> "PTouchPrinter":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_session(self) -> PrinterSession:
        if self.session is None:
            raise PrinterConnectionError("Printer is not open")
        return self.session

    @property
    def is_open(self) -> bool:
        return self.session is not None

    @property
    def state(self) -> PrinterState:
        """The latest status snapshot."""
        return self._require_session().state

    @property
    def media_width(self) -> int:
        """Width of the currently inserted tape in mm."""
        return self.state.media_width_mm

    @property
    def transient_error(self) -> TransientError:
        return self.state.transient_error

    @property
    def hardware_version(self) -> HardwareVersion:
        return self.state.hardware_version

    def status_message(self) -> str:
        """Human-readable printer status."""
        state = self.state
        if state.transient_error == TransientError.ALL_IS_WELL:
            message = f"Printer OK, {state.media_width_mm}mm tape inserted"
        else:
            message = STATUS_MESSAGES.get(
                state.transient_error, "Unknown transient error, this should never happen"
            )
        if state.degraded:
            message += " (status check failed, this may be out of date)"
        return message

    async def write(self, data: bytes) -> None:
        """Write raw bytes through the health monitor."""
        self._require_session()
        await self.monitor.submit(data)

    async def print_image(self, image: Image.Image) -> int:
        """
        Print a monochrome bitmap.

        Args:
            image: Bitmap at most 128 pixels wide, width a multiple of 8.
                Pixels whose first channel is 0 are printed.

        Returns:
            Number of raster lines sent

        Raises:
            ImageError: If the bitmap does not meet the encoder preconditions
            DeviceIOError: If a write fails
            PrinterConnectionError: If the printer is not open
        """
        self._require_session()
        lines = encode_image(image)
        logger.debug(
            "Printing %dx%d bitmap as %d raster lines", image.width, image.height, len(lines)
        )

        for line in lines:
            try:
                await self.monitor.submit(line)
            except DeviceIOError as e:
                raise DeviceIOError(f"Error writing print data: {e}") from e
        try:
            await self.monitor.submit(END_OF_PRINT)
        except DeviceIOError as e:
            raise DeviceIOError(f"Error writing end-of-print: {e}") from e

        return len(lines)

    async def render(self, text: str, rotate: bool = True) -> Image.Image:
        """Render text sized for the loaded tape."""
        return await asyncio.to_thread(
            render_text,
            text,
            self.media_width,
            convert=self.settings.convert,
            rotate=rotate,
        )

    async def print_text(self, text: str) -> Image.Image:
        """
        Render and print a line of text.

        Returns:
            The bitmap that was printed
        """
        img = await self.render(text)
        await self.print_image(img)
        return img
