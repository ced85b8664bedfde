"""Exception hierarchy for the P-touch driver."""


class PrinterError(Exception):
    """Base exception for all printer errors."""

    pass


class PrinterConnectionError(PrinterError):
    """The device could not be opened, or the link is not open."""

    pass


class DeviceIOError(PrinterError):
    """A write was short or a read failed for a reason other than EOF."""

    pass


class IncompleteFrameError(DeviceIOError):
    """The device kept signalling EOF before a full status frame arrived."""

    pass


class ProtocolError(PrinterError):
    """The status frame did not have the expected fixed fields.

    The byte stream is out of sync with the printer, so this is never retried.
    """

    pass


class UnsupportedHardwareError(ProtocolError):
    """The status frame reported a hardware version we do not recognize."""

    pass


class DeviceFaultError(PrinterError):
    """The printer reported an error condition that an operator cannot clear."""

    pass


class ImageError(PrinterError):
    """Error preparing a bitmap for printing."""

    pass


class RenderError(PrinterError):
    """The external text renderer failed."""

    pass
