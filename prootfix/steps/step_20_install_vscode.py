from __future__ import annotations

import logging
import os
from typing import Any, Dict

from ..lib.arch import detect_deb_arch
from ..lib.chroot import under_root
from ..lib.pkg import add_vendor_repo, apt_install, apt_update
from ..state_store import record_decision, record_warning

logger = logging.getLogger(__name__)

MICROSOFT_KEY_URL = "https://packages.microsoft.com/keys/microsoft.asc"
MICROSOFT_KEYRING = "/usr/share/keyrings/microsoft-archive-keyring.gpg"
VSCODE_LIST = "vscode.list"

VSCODE_PACKAGES = [
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "gnupg",
    "libsecret-1-0",
    "libgbm1",
    "libasound2",
    "code",
]


def vscode_repo_line(arch: str, keyring: str = MICROSOFT_KEYRING) -> str:
    return f"deb [arch={arch} signed-by={keyring}] https://packages.microsoft.com/repos/code stable main"


class InstallVSCodeStep:
    step_id = "20_install_vscode"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        if os.path.lexists(under_root(root, "/usr/bin/code")):
            logger.info("VSCode already installed")
            record_decision(state, "vscode_install", {"status": "present"})
            return state

        if not cfg.get("apt"):
            record_warning(
                state,
                self.step_id,
                "VSCode not installed and package installation is disabled; install the code package manually",
            )
            record_decision(state, "vscode_install", {"status": "missing"})
            return state

        arch = detect_deb_arch(root)
        try:
            add_vendor_repo(
                root,
                list_name=VSCODE_LIST,
                line=vscode_repo_line(arch),
                key_url=MICROSOFT_KEY_URL,
                keyring=MICROSOFT_KEYRING,
                dry_run=dry_run,
            )
            apt_update(root, dry_run=dry_run)
            apt_install(root, VSCODE_PACKAGES, dry_run=dry_run)
        except RuntimeError as e:
            record_warning(
                state,
                self.step_id,
                f"VSCode installation failed ({e}); download the .deb from https://code.visualstudio.com "
                "and install it with: apt-get install ./code_*.deb",
            )
            record_decision(state, "vscode_install", {"status": "failed", "arch": arch})
            return state

        record_decision(state, "vscode_install", {"status": "installed", "arch": arch})
        return state
