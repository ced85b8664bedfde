"""
Text Rendering via ImageMagick.

Turns a line of text into a black-on-white bitmap sized for the loaded
tape by running ImageMagick's convert utility.
"""

import logging
import subprocess
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .config import DEFAULT_CONVERT
from .exceptions import RenderError
from .raster import media_width_to_pixels

logger = logging.getLogger(__name__)


def convert_command(
    text: str, media_width_mm: int, convert: str = DEFAULT_CONVERT, rotate: bool = True
) -> list[str]:
    """Build the convert command line for a label.

    With rotate=True the text runs along the tape, which is what the
    printer wants; without it the result is a human-readable preview.
    """
    cmd = [
        convert,
        "+antialias",
        "-background", "white",
        "-fill", "black",
        "-size", f"x{media_width_to_pixels(media_width_mm)}",
        "-gravity", "South",
    ]
    if rotate:
        cmd += ["-rotate", "-90"]
    cmd += [f"label:{text}", "png:-"]
    return cmd


def render_png(
    text: str, media_width_mm: int, convert: str = DEFAULT_CONVERT, rotate: bool = True
) -> bytes:
    """Render text to PNG bytes.

    Raises:
        RenderError: If convert cannot be run or exits with an error
    """
    cmd = convert_command(text, media_width_mm, convert=convert, rotate=rotate)
    logger.debug("Running command %s", cmd)
    try:
        result = subprocess.run(cmd, capture_output=True, check=True)
    except FileNotFoundError as e:
        raise RenderError(f"convert not found at {convert}") from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        raise RenderError(f"convert failed with status {e.returncode}: {stderr}") from e
    return result.stdout


def render_text(
    text: str, media_width_mm: int, convert: str = DEFAULT_CONVERT, rotate: bool = True
) -> Image.Image:
    """Render text to a PIL image ready for raster encoding.

    Raises:
        RenderError: If rendering fails or the output is not a PNG
    """
    png = render_png(text, media_width_mm, convert=convert, rotate=rotate)
    try:
        img = Image.open(BytesIO(png))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise RenderError(f"Error decoding rendered PNG: {e}") from e
    if img.format != "PNG":
        raise RenderError(f"Error with rendered image, want format 'PNG', got '{img.format}'")
    logger.debug("Read rendered label, width %d, height %d", img.width, img.height)
    return img
