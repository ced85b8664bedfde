"""Printer session state."""

import time
from dataclasses import dataclass, field, replace

from .responses import HardwareVersion, StatusFrame, TransientError


@dataclass(frozen=True)
class PrinterState:
    """Snapshot of what the last successful status check reported."""

    media_width_mm: int
    transient_error: TransientError
    hardware_version: HardwareVersion
    degraded: bool = False
    checked_at: float = field(default_factory=time.time)

    @classmethod
    def from_status(cls, frame: StatusFrame, transient_error: TransientError) -> "PrinterState":
        return cls(
            media_width_mm=frame.media_width,
            transient_error=transient_error,
            hardware_version=HardwareVersion(frame.hardware_version),
        )


class PrinterSession:
    """
    Long-lived state for one open printer.

    Holds the device link and the latest PrinterState. The state is
    swapped as a whole, so a reader never sees a half-updated record.
    Only the startup sequence and the health monitor call update().
    """

    def __init__(self, link, state: PrinterState):
        self.link = link
        self._state = state

    @property
    def state(self) -> PrinterState:
        return self._state

    def update(self, frame: StatusFrame, transient_error: TransientError) -> PrinterState:
        """Record a successful status check."""
        self._state = PrinterState.from_status(frame, transient_error)
        return self._state

    def mark_degraded(self) -> PrinterState:
        """Flag the stale state after a failed check, keeping its values."""
        self._state = replace(self._state, degraded=True)
        return self._state

    @property
    def media_width_mm(self) -> int:
        return self._state.media_width_mm

    @property
    def transient_error(self) -> TransientError:
        return self._state.transient_error

    @property
    def hardware_version(self) -> HardwareVersion:
        return self._state.hardware_version
