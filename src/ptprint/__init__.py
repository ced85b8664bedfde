"""Brother P-touch (PT-2430PC / PT-P700) Label Printer Driver for Linux."""

__version__ = "0.1.0"

from .commands import PTouchCommands
from .config import Settings, load_settings
from .connection import DeviceConnection
from .exceptions import (
    DeviceFaultError,
    DeviceIOError,
    ImageError,
    IncompleteFrameError,
    PrinterConnectionError,
    PrinterError,
    ProtocolError,
    RenderError,
    UnsupportedHardwareError,
)
from .monitor import HealthMonitor
from .printer import PTouchPrinter
from .protocol import RetryPolicy, StatusProtocol, classify
from .raster import decode_line, encode_image, media_width_to_pixels, padding
from .responses import HardwareVersion, StatusFrame, TransientError
from .session import PrinterSession, PrinterState

__all__ = [
    "PTouchPrinter",
    "PTouchCommands",
    "Settings",
    "load_settings",
    "DeviceConnection",
    "HealthMonitor",
    "StatusProtocol",
    "RetryPolicy",
    "classify",
    "StatusFrame",
    "HardwareVersion",
    "TransientError",
    "PrinterSession",
    "PrinterState",
    "encode_image",
    "decode_line",
    "padding",
    "media_width_to_pixels",
    "PrinterError",
    "PrinterConnectionError",
    "DeviceIOError",
    "IncompleteFrameError",
    "ProtocolError",
    "UnsupportedHardwareError",
    "DeviceFaultError",
    "ImageError",
    "RenderError",
]
