"""
Command-Line Interface for P-touch Printers.

Usage:
    ptprint status            - Show printer status
    ptprint print IMAGE       - Print an image
    ptprint text TEXT         - Render and print a line of text
    ptprint preview TEXT      - Render text to a PNG without printing
    ptprint watch             - Keep the printer open and report its status
"""

import asyncio
import logging
import sys
from typing import Optional

import click
from PIL import Image, UnidentifiedImageError

from .config import load_settings
from .exceptions import ImageError, PrinterError
from .printer import PTouchPrinter
from .raster import encode_image, lines_to_image
from .render import render_text

DEFAULT_PREVIEW_WIDTH_MM = 12


def setup_logging(debug: bool) -> None:
    """Configure root logging once for the CLI process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _load_bitmap(path: str) -> Image.Image:
    try:
        img = Image.open(path)
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageError(f"Failed to load image {path}: {e}") from e
    return img


def _dry_run(img: Image.Image, output: Optional[str]) -> None:
    """Encode without printing, optionally saving what would come out."""
    lines = encode_image(img)
    click.echo(f"{len(lines)} raster lines for a {img.width}x{img.height} bitmap")
    if output:
        try:
            lines_to_image(lines, img.width).save(output)
        except (OSError, ValueError) as e:
            _fail(f"Failed to write preview {output}: {e}")
        click.echo(f"Preview written to {output}")


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.option(
    "--device",
    "-d",
    envvar="PTPRINT_DEVICE",
    help="The USB device of the label printer (default /dev/usb/lp1)",
)
@click.option(
    "--config",
    "config_path",
    envvar="PTPRINT_CONFIG",
    type=click.Path(dir_okay=False),
    help="Settings file (default ~/.config/ptprint/config.json)",
)
@click.option(
    "--convert",
    envvar="PTPRINT_CONVERT",
    help="Path to ImageMagick's convert utility",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0.1),
    help="Seconds between background status checks",
)
@click.option(
    "--exit-on-poll-failure/--degrade-on-poll-failure",
    default=None,
    help="End the process when a background status check fails (default), "
    "or keep running on the last known status",
)
@click.pass_context
def main(ctx, debug, device, config_path, convert, poll_interval, exit_on_poll_failure):
    """Brother P-touch label printer CLI."""
    setup_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(config_path).with_overrides(
        device=device,
        convert=convert,
        poll_interval=poll_interval,
        exit_on_poll_failure=exit_on_poll_failure,
    )


@main.command()
@click.pass_context
def status(ctx):
    """Show printer model, tape width and error state."""

    async def _status():
        printer = PTouchPrinter(ctx.obj["settings"])
        try:
            await printer.open()
            click.echo(f"Model: {printer.hardware_version.model}")
            click.echo(f"Tape: {printer.media_width}mm")
            click.echo(printer.status_message())
        except PrinterError as e:
            _fail(f"Printer error: {e}")
        finally:
            await printer.close()

    asyncio.run(_status())


@main.command("print")
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Encode only, do not touch the printer")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Save a preview PNG (dry run)")
@click.pass_context
def print_image(ctx, image, dry_run, output):
    """Print an image file.

    The image must be at most 128 pixels wide, with a width that is a
    multiple of 8. Black pixels are printed.
    """
    try:
        img = _load_bitmap(image)
        if dry_run:
            _dry_run(img, output)
            return
    except ImageError as e:
        _fail(f"Image error: {e}")

    async def _print():
        printer = PTouchPrinter(ctx.obj["settings"])
        try:
            await printer.open()
            click.echo(printer.status_message())
            click.echo(f"Printing {image}...")
            count = await printer.print_image(img)
            click.echo(f"Print complete! ({count} lines)")
        except ImageError as e:
            _fail(f"Image error: {e}")
        except PrinterError as e:
            _fail(f"Printer error: {e}")
        finally:
            await printer.close()

    asyncio.run(_print())


@main.command()
@click.argument("text")
@click.option("--dry-run", is_flag=True, help="Render and encode only, do not touch the printer")
@click.option(
    "--media-width",
    type=int,
    default=DEFAULT_PREVIEW_WIDTH_MM,
    show_default=True,
    help="Tape width in mm to render for (dry run only)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Save a preview PNG (dry run)")
@click.pass_context
def text(ctx, text, dry_run, media_width, output):
    """Render TEXT with ImageMagick and print it."""
    settings = ctx.obj["settings"]

    if dry_run:
        try:
            img = render_text(text, media_width, convert=settings.convert)
            _dry_run(img, output)
        except PrinterError as e:
            _fail(f"Printer error: {e}")
        return

    async def _text():
        printer = PTouchPrinter(settings)
        try:
            await printer.open()
            click.echo(printer.status_message())
            click.echo(f"Printing {text!r}...")
            await printer.print_text(text)
            click.echo("Print complete!")
        except PrinterError as e:
            _fail(f"Printer error: {e}")
        finally:
            await printer.close()

    asyncio.run(_text())


@main.command()
@click.argument("text")
@click.option("--output", "-o", type=click.Path(dir_okay=False), required=True, help="PNG file to write")
@click.option(
    "--media-width",
    type=int,
    help="Tape width in mm (if omitted, asks the printer)",
)
@click.pass_context
def preview(ctx, text, output, media_width):
    """Render TEXT as it would look on the tape, without printing."""
    settings = ctx.obj["settings"]

    async def _media_width() -> int:
        printer = PTouchPrinter(settings)
        try:
            await printer.open()
            return printer.media_width
        finally:
            await printer.close()

    try:
        if media_width is None:
            media_width = asyncio.run(_media_width())
        img = render_text(text, media_width, convert=settings.convert, rotate=False)
    except PrinterError as e:
        _fail(f"Printer error: {e}")
    try:
        img.save(output)
    except (OSError, ValueError) as e:
        _fail(f"Failed to write preview {output}: {e}")
    click.echo(f"Preview for {media_width}mm tape written to {output}")


@main.command()
@click.option("--interval", default=10.0, type=click.FloatRange(min=0.1), help="Seconds between reports")
@click.pass_context
def watch(ctx, interval):
    """Keep the printer open and report its status until interrupted."""

    async def _watch():
        printer = PTouchPrinter(ctx.obj["settings"])
        try:
            await printer.open()
            last = None
            while True:
                message = printer.status_message()
                if message != last:
                    click.echo(message)
                    last = message
                await asyncio.sleep(interval)
        except PrinterError as e:
            _fail(f"Printer error: {e}")
        finally:
            await printer.close()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        click.echo("Stopped.")


if __name__ == "__main__":
    main()
