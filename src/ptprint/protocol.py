"""
Status Protocol for P-touch Printers.

Asks the printer for a status frame, reads it back, and turns the two
error bitfields into a single TransientError (or a fatal error).

The printer is slow and its USB interface is buggy: it will report EOF
rather than block, even when the rest of the frame is still on its way.
Reads are therefore retried a bounded number of times on EOF only.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from .commands import PTouchCommands
from .exceptions import DeviceFaultError, DeviceIOError, IncompleteFrameError
from .responses import STATUS_FRAME_LENGTH, Error1, Error2, StatusFrame, TransientError

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """How often, and how patiently, to retry a read that hit EOF.

    Attributes:
        max_attempts: Total number of EOF signals tolerated before giving up
        delay: Pause between attempts in seconds
        sleep: Coroutine used to pause (replaceable with a fake clock)
    """

    max_attempts: int = 10
    delay: float = 0.1
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)


def classify(frame: StatusFrame) -> TransientError:
    """
    Map the frame's error bitfields to a transient error.

    Error1 is checked first. A cover-open report from Error2 never
    overrides a condition already found in Error1.

    Raises:
        DeviceFaultError: For transmission errors, feed errors and any
            bits we do not know about
    """
    error1 = frame.error1
    error2 = frame.error2

    state = TransientError.ALL_IS_WELL
    if error1 & Error1.NO_TAPE_CARTRIDGE:
        state = TransientError.NO_TAPE_CARTRIDGE
    elif error1 & Error1.TAPE_RAN_OUT:
        state = TransientError.TAPE_RAN_OUT
    elif error1 & Error1.TAPE_JAMMED:
        state = TransientError.TAPE_JAMMED
    elif error1:
        raise DeviceFaultError(f"unknown Error1 {error1:02X}")

    if error2 & Error2.TRANSMISSION_ERROR:
        raise DeviceFaultError("transmission error")
    elif error2 & Error2.CANNOT_FEED:
        raise DeviceFaultError("cannot feed print media")
    elif error2 & Error2.COVER_OPEN:
        if state == TransientError.ALL_IS_WELL:
            state = TransientError.COVER_OPEN
    elif error2:
        raise DeviceFaultError(f"unknown Error2 {error2:02X}")

    return state


class StatusProtocol:
    """Status query/response exchange over a device link."""

    def __init__(self, retry: Optional[RetryPolicy] = None):
        self.retry = retry or RetryPolicy()

    async def read_frame(self, link) -> bytes:
        """
        Read exactly one status frame worth of bytes.

        Bytes received before an EOF are kept; only EOF is retried.

        Raises:
            IncompleteFrameError: If EOF was seen max_attempts times
            DeviceIOError: On any other read failure
        """
        buf = bytearray()
        attempt = 0
        while len(buf) < STATUS_FRAME_LENGTH:
            chunk = await link.read(STATUS_FRAME_LENGTH - len(buf))
            if chunk:
                buf.extend(chunk)
                continue

            attempt += 1
            logger.warning(
                "EOF reading status (%d/%d bytes), try %d",
                len(buf),
                STATUS_FRAME_LENGTH,
                attempt,
            )
            if attempt >= self.retry.max_attempts:
                raise IncompleteFrameError(
                    f"could not read status: got {len(buf)} of "
                    f"{STATUS_FRAME_LENGTH} bytes after {attempt} attempts"
                )
            await self.retry.sleep(self.retry.delay)

        return bytes(buf)

    async def query_status(self, link) -> StatusFrame:
        """
        Ask for, read and validate a status frame.

        Raises:
            DeviceIOError: If the query could not be written or read
            ProtocolError: If the frame is malformed
        """
        try:
            await link.write(PTouchCommands.status_query())
        except DeviceIOError as e:
            raise DeviceIOError(f"unable to ask printer for status: {e}") from e

        frame = StatusFrame.parse(await self.read_frame(link))
        version = frame.validate()
        logger.debug("Hardware is a %s", version.model)
        return frame

    async def check(self, link) -> tuple[StatusFrame, TransientError]:
        """Query the printer and classify its error state."""
        frame = await self.query_status(link)
        return frame, classify(frame)
