"""
Status Frame Parser for P-touch Printers.

The printer answers a status query (ESC i S) with a fixed 32-byte frame.
Most of it is zeroes; the fields prefixed "reserved" in Brother's
documentation include a few constants that we use as sanity checks to
tell whether we are still in sync with the device.
"""

from dataclasses import dataclass
from enum import IntEnum, IntFlag

from .exceptions import ProtocolError, UnsupportedHardwareError

STATUS_FRAME_LENGTH = 32

PRINT_HEAD_MARK = 0x80
FIXED1 = 0x42
FIXED2 = 0x30
FIXED3 = 0x30


class HardwareVersion(IntEnum):
    """Hardware version byte at offset 4 of the status frame."""

    PT2430PC = 0x5A
    PTP700 = 0x67

    @property
    def model(self) -> str:
        return _MODEL_NAMES[self]


_MODEL_NAMES = {
    HardwareVersion.PT2430PC: "PT-2430PC",
    HardwareVersion.PTP700: "PT-P700",
}


class TransientError(IntEnum):
    """Operator-actionable printer condition. Exactly one is active at a time."""

    ALL_IS_WELL = 0
    NO_TAPE_CARTRIDGE = 1
    TAPE_RAN_OUT = 2
    TAPE_JAMMED = 3
    COVER_OPEN = 4


class Error1(IntFlag):
    """Bits of the first error field."""

    NO_TAPE_CARTRIDGE = 0x01
    TAPE_RAN_OUT = 0x02
    TAPE_JAMMED = 0x04


class Error2(IntFlag):
    """Bits of the second error field."""

    TRANSMISSION_ERROR = 0x04
    COVER_OPEN = 0x10
    CANNOT_FEED = 0x40


@dataclass
class StatusFrame:
    """
    Parsed status frame.

    Frame structure (32 bytes, one byte per field):
        Offset  Field
        0       Print head mark (0x80)
        1       Size (32)
        2       Fixed (0x42)
        3       Fixed (0x30)
        4       Hardware version
        5       Fixed (0x30)
        6-7     Reserved (zero)
        8       Error information 1
        9       Error information 2
        10      Media width (mm)
        11      Media type
        12-16   Reserved (zero)
        17      Media length
        18      Status type
        19      Phase type
        20-21   Phase number (high, low)
        22      Notification number
        23-31   Reserved (zero)
    """

    print_head_mark: int
    size: int
    fixed1: int
    fixed2: int
    hardware_version: int
    fixed3: int
    error1: int
    error2: int
    media_width: int
    media_type: int
    media_length: int = 0
    status_type: int = 0
    phase_type: int = 0
    phase_high: int = 0
    phase_low: int = 0
    notification_number: int = 0
    raw_data: bytes = b""

    @classmethod
    def parse(cls, data: bytes) -> "StatusFrame":
        """
        Parse a status frame.

        Only the length is checked here; call validate() for the fixed fields.

        Raises:
            ProtocolError: If data is not exactly 32 bytes
        """
        if len(data) != STATUS_FRAME_LENGTH:
            raise ProtocolError(
                f"Status frame must be {STATUS_FRAME_LENGTH} bytes, got {len(data)}"
            )

        return cls(
            print_head_mark=data[0],
            size=data[1],
            fixed1=data[2],
            fixed2=data[3],
            hardware_version=data[4],
            fixed3=data[5],
            error1=data[8],
            error2=data[9],
            media_width=data[10],
            media_type=data[11],
            media_length=data[17],
            status_type=data[18],
            phase_type=data[19],
            phase_high=data[20],
            phase_low=data[21],
            notification_number=data[22],
            raw_data=bytes(data),
        )

    def validate(self) -> HardwareVersion:
        """
        Check the fixed fields of the frame.

        Returns:
            The recognized hardware version

        Raises:
            ProtocolError: If any fixed field has an unexpected value
            UnsupportedHardwareError: If the hardware version is unknown
        """
        if self.print_head_mark != PRINT_HEAD_MARK:
            raise ProtocolError(
                f"wanted PrintHeadMark 0x{PRINT_HEAD_MARK:02X}, "
                f"got 0x{self.print_head_mark:02X}"
            )
        if self.size != STATUS_FRAME_LENGTH:
            raise ProtocolError(f"wanted Size {STATUS_FRAME_LENGTH}, got {self.size}")
        if self.fixed1 != FIXED1:
            raise ProtocolError(f"wanted Fixed1 0x{FIXED1:02X}, got 0x{self.fixed1:02X}")
        if self.fixed2 != FIXED2:
            raise ProtocolError(f"wanted Fixed2 0x{FIXED2:02X}, got 0x{self.fixed2:02X}")
        try:
            version = HardwareVersion(self.hardware_version)
        except ValueError:
            raise UnsupportedHardwareError(
                f"unknown hardware version 0x{self.hardware_version:02X}"
            ) from None
        if self.fixed3 != FIXED3:
            raise ProtocolError(f"wanted Fixed3 0x{FIXED3:02X}, got 0x{self.fixed3:02X}")
        return version

    def __str__(self) -> str:
        return (
            f"StatusFrame(hw=0x{self.hardware_version:02X}, "
            f"error1=0x{self.error1:02X}, error2=0x{self.error2:02X}, "
            f"media_width={self.media_width}mm, media_type=0x{self.media_type:02X})"
        )
