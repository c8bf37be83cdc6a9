from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import under_root
from ..lib.wrapper import install_wrapper
from ..lib.xdg import set_default_browser
from ..state_store import FIREFOX_ENV, record_decision, record_warning
from .step_10_wrap_chromium import find_first

logger = logging.getLogger(__name__)

FIREFOX_BINARIES = {
    "firefox": ("/usr/bin/firefox",),
    "firefox-esr": ("/usr/bin/firefox-esr", "/usr/bin/firefox"),
}


class WrapFirefoxStep:
    step_id = "15_wrap_firefox"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        browser = str(cfg.get("browser", "chromium"))
        if browser not in FIREFOX_BINARIES:
            logger.info("Browser is %s; Firefox wrapper not needed", browser)
            return state

        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        binary = find_first(root, FIREFOX_BINARIES[browser])
        if binary is None:
            record_warning(state, self.step_id, f"{browser} not found; install it with: apt-get install {browser}")
            record_decision(state, "firefox", {"status": "missing"})
            return state

        # Firefox has no sandbox flags; its sandboxes are switched off through the environment.
        result = install_wrapper(
            under_root(root, binary),
            [],
            env=dict(cfg.get("firefox_env") or FIREFOX_ENV),
            suffix=str(cfg.get("wrapper_suffix", ".real")),
            description=["Firefox in proot: content/GMP/NPAPI sandboxes disabled"],
            dry_run=dry_run,
        )
        decision: Dict[str, Any] = {"status": result.status, "path": binary, "real": result.real}

        if cfg.get("xdg"):
            decision["default_browser"] = set_default_browser(
                (f"{browser}.desktop", "firefox.desktop"),
                root=root,
                dry_run=dry_run,
            )

        record_decision(state, "firefox", decision)
        return state
