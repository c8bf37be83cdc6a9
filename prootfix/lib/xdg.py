from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from .chroot import is_host_root, root_argv, under_root
from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)

APPLICATIONS_DIR = "/usr/share/applications"
WEB_MIME_TYPES = ("x-scheme-handler/http", "x-scheme-handler/https", "text/html")


def _tool_available(root: str | Path, name: str) -> bool:
    if is_host_root(root):
        return command_exists(name)
    return any(under_root(root, d).joinpath(name).exists() for d in ("/usr/bin", "/bin", "/usr/local/bin"))


def set_default_browser(
    desktop_names: Sequence[str],
    applications_dir: str | Path | None = None,
    *,
    root: str | Path = "/",
    dry_run: bool = False,
) -> Optional[str]:
    """Register the first existing .desktop entry as the web browser.

    The xdg tools run inside *root* (through chroot for a staged tree), so the
    operator's own settings are only touched when root is /.
    Best-effort: missing xdg tools and failing commands only produce warnings.
    Returns the desktop entry used, or None.
    """

    apps = Path(applications_dir) if applications_dir is not None else under_root(root, APPLICATIONS_DIR)
    desktop = next((d for d in desktop_names if (apps / d).is_file()), None)
    if desktop is None:
        logger.warning("None of %s found under %s; not setting a default browser", ", ".join(desktop_names), str(apps))
        return None

    if _tool_available(root, "xdg-settings"):
        argv = root_argv(root, ["xdg-settings", "set", "default-web-browser", desktop])
        r = run_cmd(argv, check=False, dry_run=dry_run)
        if not r.ok:
            logger.warning("xdg-settings failed (%s); set the default browser manually", r.returncode)
    else:
        logger.warning("xdg-settings not found in %s (apt-get install xdg-utils)", str(root))

    if _tool_available(root, "xdg-mime"):
        for mime in WEB_MIME_TYPES:
            r = run_cmd(root_argv(root, ["xdg-mime", "default", desktop, mime]), check=False, dry_run=dry_run)
            if not r.ok:
                logger.warning("xdg-mime default %s %s failed", desktop, mime)
    else:
        logger.warning("xdg-mime not found in %s (apt-get install xdg-utils)", str(root))

    return desktop
