"""
Pytest configuration for P-touch printer tests.

Provides an in-memory device link, a status frame builder, and the
command-line option for hardware tests.
"""

import pytest

from ptprint.commands import PTouchCommands
from ptprint.exceptions import DeviceIOError


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--device",
        action="store",
        default=None,
        help="USB device of the printer for hardware tests (e.g. /dev/usb/lp1)",
    )


@pytest.fixture
def printer_device(request):
    """Get the printer device from command line."""
    device = request.config.getoption("--device")
    if device is None:
        pytest.skip("No printer device provided (use --device=/dev/usb/lpN)")
    return device


def build_frame(
    error1=0x00,
    error2=0x00,
    media_width=12,
    hardware_version=0x5A,
    head_mark=0x80,
    size=32,
    fixed1=0x42,
    fixed2=0x30,
    fixed3=0x30,
    media_type=0x01,
):
    """Build a raw 32-byte status frame."""
    frame = bytearray(32)
    frame[0] = head_mark
    frame[1] = size
    frame[2] = fixed1
    frame[3] = fixed2
    frame[4] = hardware_version
    frame[5] = fixed3
    frame[8] = error1
    frame[9] = error2
    frame[10] = media_width
    frame[11] = media_type
    return bytes(frame)


class FakeLink:
    """In-memory stand-in for DeviceConnection.

    Every status query written to it queues the next status frame for
    reading (the last frame repeats once the list runs out). Items in
    `reads` are returned before any frame; an Exception item is raised.
    """

    def __init__(self, frames=None, reads=None):
        self.frames = list(frames or [])
        self.reads = list(reads or [])
        self.writes = []
        self.write_error = None
        self.opened = False
        self.closed = False
        self.status_queries = 0

    def open(self):
        self.opened = True
        self.closed = False

    def close(self):
        self.closed = True

    @property
    def is_open(self):
        return self.opened and not self.closed

    async def write(self, data):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        if bytes(data) == PTouchCommands.status_query():
            self.status_queries += 1
            if self.frames:
                frame = self.frames.pop(0) if len(self.frames) > 1 else self.frames[0]
                self.reads.append(frame)

    async def read(self, size):
        if not self.reads:
            return b""
        item = self.reads.pop(0)
        if isinstance(item, Exception):
            raise item
        if len(item) > size:
            self.reads.insert(0, item[size:])
            item = item[:size]
        return item

    @property
    def printed(self):
        """Writes other than status queries."""
        return [w for w in self.writes if w != PTouchCommands.status_query()]


@pytest.fixture
def make_frame():
    """Factory for raw status frames."""
    return build_frame


@pytest.fixture
def link():
    """A fake link that always reports a healthy 12mm PT-2430PC."""
    return FakeLink(frames=[build_frame()])


@pytest.fixture
def link_factory():
    """Factory for fake links."""
    return FakeLink


@pytest.fixture
def io_error():
    return DeviceIOError("device went away")


class FakeClock:
    """Records sleeps instead of sleeping."""

    def __init__(self):
        self.sleeps = []

    async def sleep(self, delay):
        self.sleeps.append(delay)


@pytest.fixture
def clock():
    return FakeClock()
