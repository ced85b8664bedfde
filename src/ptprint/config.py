"""
Settings for the P-touch driver.

Defaults can be overridden by a JSON file at
~/.config/ptprint/config.json, and the CLI can override both.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

from .connection import DEFAULT_DEVICE
from .monitor import DEFAULT_INTERVAL

logger = logging.getLogger(__name__)

# Config directory location
CONFIG_DIR = Path.home() / ".config" / "ptprint"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_CONVERT = "/usr/bin/convert"


@dataclass(frozen=True)
class Settings:
    """Driver settings.

    Attributes:
        device: Path of the printer's USB character device
        convert: Path to ImageMagick's convert utility
        poll_interval: Seconds of idle time between status checks
        status_attempts: EOF retries allowed while reading a status frame
        status_retry_delay: Seconds to wait between those retries
        exit_on_poll_failure: End the process when a periodic check fails;
            otherwise mark the printer degraded and keep polling
    """

    device: str = DEFAULT_DEVICE
    convert: str = DEFAULT_CONVERT
    poll_interval: float = DEFAULT_INTERVAL
    status_attempts: int = 10
    status_retry_delay: float = 0.1
    exit_on_poll_failure: bool = True

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a JSON file.

    Args:
        path: Settings file. Defaults to ~/.config/ptprint/config.json.

    Returns:
        Settings from the file, or defaults if it is missing or invalid.
        Unknown keys are ignored.
    """
    path = Path(path) if path is not None else CONFIG_FILE
    if not path.exists():
        return Settings()

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring invalid settings file %s: %s", path, e)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return Settings()

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown settings in %s: %s", path, ", ".join(unknown))

    try:
        return Settings(**{k: v for k, v in data.items() if k in known})
    except TypeError as e:
        logger.warning("Ignoring invalid settings file %s: %s", path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Union[str, Path]] = None) -> Path:
    """Write settings to a JSON file, creating its directory if needed."""
    path = Path(path) if path is not None else CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.to_dict(), indent=2))
    return path
