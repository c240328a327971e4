from __future__ import annotations

import logging
from pathlib import Path

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "lxc-toolbox.log"

_FILE_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)
# build progress on the console reads like the shell output users expect
_CONSOLE_FORMAT = logging.Formatter(fmt="%(message)s")


def _open_log_file(log_path: str) -> tuple[logging.Handler, str]:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send build logs to a file and, optionally, the console.

    Every external command (``CMD ...``) and build decision lands in the file.
    /var/log is only writable inside the builder container; elsewhere the log
    goes to ./lxc-toolbox.log instead.

    Safe to call more than once; returns the log file actually used.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_lxc_toolbox_configured", False):
        return getattr(root, "_lxc_toolbox_log_path", log_path)

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setFormatter(_FILE_FORMAT)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(_CONSOLE_FORMAT)
        root.addHandler(console)

    setattr(root, "_lxc_toolbox_configured", True)
    setattr(root, "_lxc_toolbox_log_path", chosen_path)

    if chosen_path != log_path:
        logging.getLogger(__name__).warning("Cannot write %s; logging to %s", log_path, chosen_path)
    logging.getLogger(__name__).debug("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
