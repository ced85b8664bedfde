"""
Background Health Monitor.

A single asyncio task owns the device link once the printer is open. It
waits on two things at once: write requests from callers, and a timer.
Whichever comes first is handled to completion before the next wait, so
a status query can never interleave with a raster line on the wire.

The timer restarts on every loop iteration. A steady stream of writes
therefore pushes the next status check back, but never skips it once
the printer goes quiet for a full interval.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import PrinterError
from .protocol import StatusProtocol
from .session import PrinterSession, PrinterState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0

# Queued by stop(); the actor exits when it reaches it
_STOP = None


def exit_on_failure(error: PrinterError) -> None:
    """Treat a failed periodic check as unrecoverable and end the process."""
    logger.critical("Regular status inquiry failed: %s", error)
    raise SystemExit(1)


def log_and_continue(error: PrinterError) -> None:
    """Keep running on the last known state; the session is marked degraded."""
    logger.error("Regular status inquiry failed, keeping last known state: %s", error)


@dataclass
class WriteRequest:
    """Bytes waiting to be written, and where to report the outcome."""

    data: bytes
    future: asyncio.Future


class HealthMonitor:
    """Serializes device writes against periodic status checks."""

    def __init__(
        self,
        session: PrinterSession,
        protocol: Optional[StatusProtocol] = None,
        interval: float = DEFAULT_INTERVAL,
        on_failure: Callable[[PrinterError], None] = exit_on_failure,
    ):
        self.session = session
        self.protocol = protocol or StatusProtocol()
        self.interval = interval
        self.on_failure = on_failure
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the monitor task on the running event loop."""
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="ptprint-health-monitor")
        logger.debug("Health monitor started, interval %.1fs", self.interval)

    async def stop(self) -> None:
        """
        Stop the monitor.

        A write or status check already in progress runs to completion
        first. Requests queued behind it fail with PrinterError.
        """
        task, self._task = self._task, None
        if task is None:
            return
        while not self._queue.empty():
            request = self._queue.get_nowait()
            if not request.future.done():
                request.future.set_exception(PrinterError("health monitor stopped"))
        if not task.done():
            self._queue.put_nowait(_STOP)
            await task
        logger.debug("Health monitor stopped")

    async def submit(self, data: bytes) -> None:
        """
        Queue bytes for the device and wait until they have been written.

        Submissions are written in the order they are accepted, each as
        one discrete write.

        Raises:
            PrinterError: If the monitor is not running
            DeviceIOError: If the write failed
        """
        if not self.is_running:
            raise PrinterError("health monitor is not running")
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(WriteRequest(bytes(data), future))
        await future

    async def check_now(self) -> Optional[PrinterState]:
        """
        Run one status check and record its outcome in the session.

        Returns:
            The new state, or None if the check failed and the failure
            policy chose to carry on
        """
        try:
            frame, transient_error = await self.protocol.check(self.session.link)
        except PrinterError as e:
            self.on_failure(e)
            self.session.mark_degraded()
            return None

        state = self.session.update(frame, transient_error)
        logger.info(
            "Status OK, TransientError %s, Media width %d",
            state.transient_error.name,
            state.media_width_mm,
        )
        return state

    async def _serve(self, request: WriteRequest) -> None:
        if request.future.cancelled():
            return
        try:
            await self.session.link.write(request.data)
        except Exception as e:
            if not request.future.done():
                request.future.set_exception(e)
        else:
            if not request.future.done():
                request.future.set_result(None)

    async def _run(self) -> None:
        while True:
            try:
                request = await asyncio.wait_for(self._queue.get(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.check_now()
                continue
            if request is _STOP:
                return
            try:
                await self._serve(request)
            finally:
                if not request.future.done():
                    request.future.set_exception(PrinterError("health monitor stopped"))
