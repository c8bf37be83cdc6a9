from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import under_root
from ..lib.pkg import apt_install
from ..lib.textpatch import ensure_export, ensure_line, set_env_var
from ..state_store import ENVIRONMENT, record_decision, record_warning

logger = logging.getLogger(__name__)

XDG_BASE_DIRS = {
    "XDG_CONFIG_HOME": "$HOME/.config",
    "XDG_DATA_HOME": "$HOME/.local/share",
    "XDG_CACHE_HOME": "$HOME/.cache",
}

KEYRING_PACKAGES = ["libsecret-1-0", "gnome-keyring"]


class EnvTweaksStep:
    step_id = "50_env_tweaks"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        environment = under_root(root, "/etc/environment")
        env_actions = {
            name: set_env_var(environment, name, str(value), dry_run=dry_run)
            for name, value in (cfg.get("environment") or ENVIRONMENT).items()
        }

        bashrc = under_root(root, str(cfg.get("root_home", "/root"))) / ".bashrc"
        bashrc_added = []
        if ensure_line(bashrc, "export ELECTRON_DISABLE_SANDBOX=1", marker="ELECTRON_DISABLE_SANDBOX", dry_run=dry_run):
            bashrc_added.append("ELECTRON_DISABLE_SANDBOX")
        for name, value in XDG_BASE_DIRS.items():
            if ensure_export(bashrc, name, value, dry_run=dry_run):
                bashrc_added.append(name)

        keyring = "skipped"
        if cfg.get("apt"):
            try:
                apt_install(root, KEYRING_PACKAGES, dry_run=dry_run)
                keyring = "installed"
            except RuntimeError as e:
                record_warning(
                    state,
                    self.step_id,
                    f"keyring packages failed to install ({e}); run: apt-get install {' '.join(KEYRING_PACKAGES)}",
                )
                keyring = "failed"

        record_decision(
            state,
            "environment",
            {"etc_environment": env_actions, "bashrc_added": bashrc_added, "keyring": keyring},
        )
        return state
