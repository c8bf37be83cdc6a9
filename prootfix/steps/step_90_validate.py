from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Tuple

from ..lib.chroot import under_root
from ..lib.jsonmerge import discover_config_dirs
from ..lib.wrapper import detect_wrapper
from ..state_store import ENVIRONMENT
from .step_10_wrap_chromium import CHROMIUM_BINARIES, find_first
from .step_15_wrap_firefox import FIREFOX_BINARIES
from .step_30_wrap_vscode import CODE_BINARY
from .step_40_vscode_config import ARGV_JSON

logger = logging.getLogger(__name__)

Check = Tuple[str, str, str]  # (name, "pass"|"fail"|"warn", detail)


def _check_wrapped(root: str, name: str, path: str | None) -> Check:
    if path is None or not os.path.lexists(under_root(root, path)):
        return (name, "warn", "not installed")
    marker = detect_wrapper(under_root(root, path))
    if marker is None:
        return (name, "fail", f"{path} is not wrapped")
    if marker.legacy:
        return (name, "pass", f"{path} wrapped (legacy header)")
    return (name, "pass", f"{path} wrapped, calls {marker.real}")


def _check_argv(config_dir: str) -> Check:
    p = os.path.join(config_dir, ARGV_JSON)
    name = f"argv.json ({config_dir})"
    try:
        with open(p, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return (name, "warn", "missing")
    except (OSError, ValueError) as e:
        return (name, "fail", f"unreadable: {e}")
    if isinstance(data, dict) and data.get("password-store") == "basic":
        return (name, "pass", "password-store=basic")
    return (name, "fail", "password-store is not basic")


def _check_environment(root: str, names: List[str]) -> Check:
    p = under_root(root, "/etc/environment")
    if not p.exists():
        return ("/etc/environment", "fail", "missing")
    text = p.read_text(encoding="utf-8", errors="replace")
    absent = [n for n in names if f"\n{n}=" not in "\n" + text]
    if absent:
        return ("/etc/environment", "fail", "missing " + ", ".join(absent))
    return ("/etc/environment", "pass", f"{len(names)} variable(s) set")


class ValidateStep:
    step_id = "90_validate"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))

        checks: List[Check] = []
        checks.append(_check_wrapped(root, "chromium", find_first(root, CHROMIUM_BINARIES)))
        browser = str(cfg.get("browser", "chromium"))
        if browser in FIREFOX_BINARIES:
            checks.append(_check_wrapped(root, browser, find_first(root, FIREFOX_BINARIES[browser])))
        if cfg.get("vscode", True):
            checks.append(_check_wrapped(root, "code", CODE_BINARY))
            for d in discover_config_dirs(
                root,
                root_home=str(cfg.get("root_home", "/root")),
                home_base=str(cfg.get("home_base", "/home")),
            ):
                checks.append(_check_argv(str(d)))
        checks.append(_check_environment(root, list((cfg.get("environment") or ENVIRONMENT).keys())))

        summary = {"passed": 0, "failed": 0, "warnings": 0}
        for name, status, detail in checks:
            if status == "pass":
                summary["passed"] += 1
                logger.info("[ok]   %s: %s", name, detail)
            elif status == "fail":
                summary["failed"] += 1
                logger.warning("[fail] %s: %s", name, detail)
            else:
                summary["warnings"] += 1
                logger.warning("[warn] %s: %s", name, detail)

        state.setdefault("execution", {})["validation"] = {
            "summary": summary,
            "checks": [{"name": n, "status": s, "detail": d} for n, s, d in checks],
        }
        return state
