from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from ..lib.chroot import under_root
from ..lib.pkg import apt_has_package, apt_install
from ..lib.textpatch import substitute_lines
from ..lib.wrapper import install_wrapper
from ..lib.xdg import set_default_browser
from ..state_store import CHROMIUM_FLAGS, record_decision, record_warning

logger = logging.getLogger(__name__)

CHROMIUM_BINARIES = ("/usr/bin/chromium", "/usr/bin/chromium-browser")
CHROMIUM_DESKTOPS = ("chromium.desktop", "chromium-browser.desktop")


def find_first(root: str, candidates: List[str] | tuple[str, ...]) -> Optional[str]:
    """First candidate system path that exists (or is a link) under root."""

    for c in candidates:
        if os.path.lexists(under_root(root, c)):
            return c
    return None


class WrapChromiumStep:
    step_id = "10_wrap_chromium"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        binary = find_first(root, CHROMIUM_BINARIES)
        if binary is None:
            record_warning(state, self.step_id, "chromium not found; install it with: apt-get install chromium")
            record_decision(state, "chromium", {"status": "missing"})
            return state

        result = install_wrapper(
            under_root(root, binary),
            list(cfg.get("chromium_flags") or CHROMIUM_FLAGS),
            suffix=str(cfg.get("wrapper_suffix", ".real")),
            description=["Chromium in proot: no namespaces, no GPU, running as root"],
            dry_run=dry_run,
        )
        decision: Dict[str, Any] = {"status": result.status, "path": binary, "real": result.real}

        apps = under_root(root, "/usr/share/applications")
        if cfg.get("patch_desktop"):
            patched = {}
            for name in CHROMIUM_DESKTOPS:
                n = substitute_lines(
                    apps / name,
                    [(r"^Exec=.*", f"Exec={binary} %U")],
                    backup_suffix=str(cfg.get("backup_suffix", ".bak.prootfix")),
                    dry_run=dry_run,
                )
                if n is not None:
                    patched[name] = n
            decision["desktop"] = patched

        if cfg.get("xdg") and cfg.get("browser", "chromium") == "chromium":
            decision["default_browser"] = set_default_browser(CHROMIUM_DESKTOPS, apps, root=root, dry_run=dry_run)

        if cfg.get("with_atspi"):
            if cfg.get("apt"):
                try:
                    if not apt_has_package(root, "at-spi2-core", dry_run=dry_run):
                        raise RuntimeError("at-spi2-core is not available from the configured sources")
                    apt_install(root, ["at-spi2-core"], dry_run=dry_run)
                    decision["atspi"] = "installed"
                except RuntimeError as e:
                    record_warning(state, self.step_id, f"at-spi2-core install failed ({e}); install it manually")
                    decision["atspi"] = "failed"
            else:
                logger.info("Skipping at-spi2-core (package installation disabled)")
                decision["atspi"] = "skipped"

        record_decision(state, "chromium", decision)
        return state
