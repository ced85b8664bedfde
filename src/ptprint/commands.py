"""
Raster Protocol Commands for Brother P-touch Printers.

Byte-level command builders for the PT-2430PC / PT-P700 raster protocol,
as documented on undocprint.org (Brother P-touch page description language).

Commands are sent one-way; the only reply the printer ever gives is the
32-byte status frame requested with status_query().
"""

ESC = 0x1B

# The printer always takes 128 pixels per raster line, but only prints the
# middle part of it on narrow tape.
LINE_WIDTH_PX = 128
LINE_LENGTH_BYTES = LINE_WIDTH_PX // 8

RASTER_HEADER = bytes([ord("G"), 0x11, 0x00, 0x0F])

WAKE_LENGTH = 200


class PTouchCommands:
    """Command builders for the P-touch raster protocol."""

    @staticmethod
    def wake() -> bytes:
        """Flush whatever the printer was doing with a run of zero bytes."""
        return bytes(WAKE_LENGTH)

    @staticmethod
    def reset() -> bytes:
        """Clear device state (ESC @)."""
        return bytes([ESC, ord("@")])

    @staticmethod
    def status_query() -> bytes:
        """
        Request a status frame (ESC i S).

        Response: 32 bytes (see responses.StatusFrame.parse)
        """
        return bytes([ESC, ord("i"), ord("S")])

    @staticmethod
    def set_auto_cut() -> bytes:
        """Auto cut, small feed amount (ESC i M 0x48)."""
        return bytes([ESC, ord("i"), ord("M"), 0x48])

    @staticmethod
    def set_full_cut() -> bytes:
        """Cut all the way through after every print (ESC i K 0x08)."""
        return bytes([ESC, ord("i"), ord("K"), 0x08])

    @staticmethod
    def set_compression() -> bytes:
        """
        Select RLE compression mode (M 0x02).

        Raster payloads are always sent uncompressed anyway; the printer
        accepts uncompressed lines in this mode.
        """
        return bytes([ord("M"), 0x02])

    @staticmethod
    def raster_line(data: bytes) -> bytes:
        """
        One printed row: 4-byte header plus 16 bytes of pixels.

        Args:
            data: Exactly 16 packed bytes, MSB is the leftmost pixel

        Raises:
            ValueError: If data is not 16 bytes long
        """
        if len(data) != LINE_LENGTH_BYTES:
            raise ValueError(
                f"Raster line needs {LINE_LENGTH_BYTES} bytes, got {len(data)}"
            )
        return RASTER_HEADER + bytes(data)

    @staticmethod
    def end_of_print() -> bytes:
        """Terminate the raster job; the printer cuts and feeds."""
        return bytes([0x1A])
