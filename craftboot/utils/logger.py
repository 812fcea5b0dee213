"""Logging setup."""

import logging
from pathlib import Path
from typing import Optional

LOG_FILE = "launcher.log"

_HANDLER_NAMES = ("craftboot.file", "craftboot.console")


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None):
    """Log everything to launcher.log and `level` and above to the console.

    Calling it again replaces the handlers installed by a previous call.
    """
    log_dir = log_dir or (Path.home() / ".cache" / "craftboot")
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in [h for h in root.handlers if h.get_name() in _HANDLER_NAMES]:
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8")
    file_handler.set_name("craftboot.file")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.set_name("craftboot.console")
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(console_handler)

    # aiohttp is chatty at debug level
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    return root
