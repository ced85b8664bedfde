"""
Raster Encoding for P-touch Printers.

Converts a monochrome bitmap into the raster line commands the printer
expects. The print head is always fed 128 pixels per line; narrower
bitmaps are centred on that canvas, and the printer only prints the
middle part that actually lies on the tape.
"""

from typing import Iterator

from PIL import Image

from .commands import LINE_LENGTH_BYTES, LINE_WIDTH_PX, RASTER_HEADER, PTouchCommands
from .exceptions import ImageError

END_OF_PRINT = PTouchCommands.end_of_print()

# Printable pixels for each tape width, in mm
MEDIA_WIDTH_PIXELS = {
    6: 48,
    9: 64,
    12: 96,
}


def media_width_to_pixels(width_mm: int) -> int:
    """Return the printable height in pixels for a tape width in mm."""
    return MEDIA_WIDTH_PIXELS.get(width_mm, LINE_WIDTH_PX)


def padding(width: int) -> tuple[int, int]:
    """
    Blank pixels to the left and right of a bitmap row.

    Any odd remainder goes to the right edge.
    """
    pad_left = (LINE_WIDTH_PX - width) // 2
    pad_right = LINE_WIDTH_PX - (width + pad_left)
    return pad_left, pad_right


def _check_width(width: int) -> None:
    if width % 8 != 0:
        raise ImageError(f"Bitmap width must be a multiple of 8, got {width}")
    if width > LINE_WIDTH_PX:
        raise ImageError(f"Bitmap width must be at most {LINE_WIDTH_PX}, got {width}")


def _ink_channel(image: Image.Image) -> Image.Image:
    """Return the single band whose zero value means ink.

    Images with an alpha band are flattened onto white first, so
    transparent pixels never print.
    """
    if image.mode in ("1", "L"):
        return image
    if "A" in image.getbands():
        flat = Image.new("RGBA", image.size, "white")
        flat.alpha_composite(image.convert("RGBA"))
        image = flat
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image.getchannel("R")


def pack_row(ink: list[bool]) -> bytes:
    """
    Pack one row of ink flags into a 16-byte line payload.

    The row is centred on the 128 pixel canvas; bit 7 of the first
    byte is the leftmost pixel of the canvas.
    """
    pad_left, _ = padding(len(ink))
    bits = 0
    for x, is_ink in enumerate(ink):
        if is_ink:
            bits |= 1 << (LINE_WIDTH_PX - 1 - (pad_left + x))
    return bits.to_bytes(LINE_LENGTH_BYTES, "big")


def iter_lines(image: Image.Image) -> Iterator[bytes]:
    """
    Yield raster line commands for an image, bottom row first.

    The tape comes out of the printer in the opposite direction to the
    image's top-to-bottom order, so the last row is printed first.

    Raises:
        ImageError: If the width is not a multiple of 8 or exceeds 128
    """
    width, height = image.size
    _check_width(width)

    channel = _ink_channel(image)
    pixels = channel.load()

    for y in range(height - 1, -1, -1):
        ink = [pixels[x, y] == 0 for x in range(width)]
        yield PTouchCommands.raster_line(pack_row(ink))


def encode_image(image: Image.Image) -> list[bytes]:
    """Encode an image into the full list of raster line commands."""
    return list(iter_lines(image))


def decode_line(line: bytes, width: int) -> list[bool]:
    """
    Unpack a raster line command back into a row of ink flags.

    Args:
        line: A raster line command, with or without its 4-byte header
        width: Width of the source bitmap, to strip the padding

    Returns:
        One flag per source column, True meaning ink
    """
    if len(line) == len(RASTER_HEADER) + LINE_LENGTH_BYTES:
        if line[: len(RASTER_HEADER)] != RASTER_HEADER:
            raise ValueError("Not a raster line command")
        line = line[len(RASTER_HEADER):]
    if len(line) != LINE_LENGTH_BYTES:
        raise ValueError(f"Raster line payload must be {LINE_LENGTH_BYTES} bytes")

    pad_left, _ = padding(width)
    bits = int.from_bytes(line, "big")
    return [
        bool(bits & (1 << (LINE_WIDTH_PX - 1 - (pad_left + x))))
        for x in range(width)
    ]


def lines_to_image(lines: list[bytes], width: int) -> Image.Image:
    """
    Rebuild a 1-bit preview image from raster lines.

    Undoes the row reversal, so the result has the source orientation.
    """
    height = len(lines)
    img = Image.new("1", (width, height), color=1)
    for i, line in enumerate(lines):
        y = height - 1 - i
        for x, is_ink in enumerate(decode_line(line, width)):
            if is_ink:
                img.putpixel((x, y), 0)
    return img
