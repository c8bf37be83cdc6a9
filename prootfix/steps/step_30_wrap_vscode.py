from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import under_root
from ..lib.textpatch import substitute_lines
from ..lib.wrapper import install_wrapper
from ..state_store import CODE_FLAGS, record_decision, record_warning

logger = logging.getLogger(__name__)

CODE_BINARY = "/usr/bin/code"
CODE_DESKTOP = "/usr/share/applications/code.desktop"

# Both Exec= forms shipped by the package end up calling the wrapper.
DESKTOP_RULES = [
    (r"^Exec=/usr/share/code/code\b", "Exec=/usr/bin/code"),
    (r"^Exec=code\b", "Exec=/usr/bin/code"),
]


class WrapVSCodeStep:
    step_id = "30_wrap_vscode"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        result = install_wrapper(
            under_root(root, CODE_BINARY),
            list(cfg.get("code_flags") or CODE_FLAGS),
            suffix=str(cfg.get("wrapper_suffix", ".real")),
            description=["VSCode in proot: no sandbox, no GPU, basic password store"],
            dry_run=dry_run,
        )
        if result.status == "missing":
            record_warning(state, self.step_id, f"{CODE_BINARY} not found; install VSCode first")

        decision: Dict[str, Any] = {"status": result.status, "real": result.real, "backup": result.backup}

        if cfg.get("patch_desktop"):
            n = substitute_lines(
                under_root(root, CODE_DESKTOP),
                DESKTOP_RULES,
                backup_suffix=str(cfg.get("backup_suffix", ".bak.prootfix")),
                dry_run=dry_run,
            )
            decision["desktop"] = "missing" if n is None else n

        record_decision(state, "vscode_wrapper", decision)
        return state
