from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .lib.command import command_exists
from .lib.textpatch import inject_after_shebang

logger = logging.getLogger(__name__)

WAKE_LOCK = "termux-wake-lock"
DEFAULT_START_SCRIPT = "start-ubuntu22.sh"


def default_script_path() -> Path:
    return Path(os.path.expanduser("~")) / DEFAULT_START_SCRIPT


def add_wakelock(path: Optional[str] = None, *, dry_run: bool = False) -> int:
    """Make a proot start script take a Termux wake lock. Returns an exit code."""

    target = Path(path) if path else default_script_path()
    if not target.is_file():
        logger.error("File not found: %s (pass the path to your proot start script)", str(target))
        return 1

    if not command_exists(WAKE_LOCK):
        logger.warning("%s not found; install it with: pkg install termux-api (and the Termux:API app)", WAKE_LOCK)

    where = inject_after_shebang(target, WAKE_LOCK, dry_run=dry_run)
    if where == "present":
        logger.info("%s is already present in %s; nothing to do", WAKE_LOCK, str(target))
    elif where == "after_shebang":
        logger.info("Added %s after the shebang in %s", WAKE_LOCK, str(target))
    else:
        logger.info("Added %s at the top of %s", WAKE_LOCK, str(target))
    return 0
