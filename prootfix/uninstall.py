from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from .lib.chroot import under_root
from .lib.pkg import apt_remove, remove_vendor_repo
from .lib.wrapper import remove_wrapper
from .state_store import record_warning
from .steps.step_10_wrap_chromium import CHROMIUM_BINARIES
from .steps.step_20_install_vscode import MICROSOFT_KEYRING, VSCODE_LIST
from .steps.step_30_wrap_vscode import CODE_BINARY

logger = logging.getLogger(__name__)

WRAPPED_BINARIES = (CODE_BINARY, *CHROMIUM_BINARIES, "/usr/bin/firefox", "/usr/bin/firefox-esr")


def uninstall(state: Dict[str, Any]) -> Dict[str, Any]:
    """Remove wrappers and the VSCode repository; backups and user settings stay."""

    cfg = state.get("config") or {}
    root = str(cfg.get("root", "/"))
    dry_run = bool(cfg.get("dry_run", False))
    suffix = str(cfg.get("wrapper_suffix", ".real"))

    removed: List[str] = []
    for binary in WRAPPED_BINARIES:
        p = under_root(root, binary)
        try:
            if remove_wrapper(p, dry_run=dry_run):
                removed.append(binary)
                backup = Path(str(p) + suffix)
                if backup.exists():
                    logger.info("Original kept at %s", str(backup))
        except PermissionError as e:
            record_warning(state, "uninstall", f"cannot remove {binary}: {e}; fix manually")

    removed += remove_vendor_repo(root, list_name=VSCODE_LIST, keyring=MICROSOFT_KEYRING, dry_run=dry_run)

    if cfg.get("apt") and cfg.get("vscode", True):
        try:
            apt_remove(root, ["code"], dry_run=dry_run)
            removed.append("package:code")
        except RuntimeError as e:
            record_warning(state, "uninstall", f"apt-get remove code failed ({e}); remove it manually")

    logger.info("VSCode settings and extensions are preserved (~/.config/Code, ~/.vscode)")
    state.setdefault("execution", {}).setdefault("decisions", {})["uninstall"] = {"removed": removed}
    return state
