from __future__ import annotations

import logging
from pathlib import Path
from typing import List

DEFAULT_LOG_PATH = "/var/log/prootfix.log"
FALLBACK_LOG_NAME = "prootfix.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(path: str) -> logging.FileHandler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path)


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Attach file (and optionally console) handlers to the root logger.

    Inside proot /var/log is normally writable since everything runs as root.
    Against another --root, or as a normal user, it may not be; then the log
    goes to ./prootfix.log instead. Calling this again is a no-op.

    Returns the path actually written to.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_prootfix_configured", False):
        return getattr(root, "_prootfix_log_path", log_path)

    try:
        file_handler = _open_log_file(log_path)
        chosen_path = log_path
    except OSError:
        chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
        file_handler = logging.FileHandler(chosen_path)

    handlers: List[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)

    setattr(root, "_prootfix_configured", True)
    setattr(root, "_prootfix_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
