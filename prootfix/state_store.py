from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


CHROMIUM_FLAGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--no-zygote",
]

CODE_FLAGS = [
    "--no-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-software-rasterizer",
    "--password-store=basic",
]

FIREFOX_ENV = {
    "MOZ_DISABLE_CONTENT_SANDBOX": "1",
    "MOZ_DISABLE_GMP_SANDBOX": "1",
    "MOZ_DISABLE_NPAPI_SANDBOX": "1",
}

# /etc/environment entries that keep Electron/Chromium quiet without a GPU.
ENVIRONMENT = {
    "LIBGL_ALWAYS_SOFTWARE": "1",
    "ELECTRON_DISABLE_GPU": "1",
    "ELECTRON_DISABLE_SECURITY_WARNINGS": "1",
    "VSCODE_KEYTAR_USE_BASIC_TEXT_ENCRYPTION": "1",
    "NO_AT_BRIDGE": "1",
    "ELECTRON_DISABLE_SANDBOX": "1",
}

VSCODE_ARGV = {"password-store": "basic"}
VSCODE_ARGV_DEFAULTS = {"enable-crash-reporter": False}
VSCODE_SETTINGS = {
    "diffEditor.maxComputationTime": 0,
    "github.copilot.chat.tools.autoApprove": True,
}

BROWSERS = ("chromium", "firefox", "firefox-esr", "none")

_DEFAULT_CONFIG: Dict[str, Any] = {
    "root": "/",
    "dry_run": False,
    "apt": True,
    "xdg": True,
    "vscode": True,
    "patch_desktop": False,
    "with_atspi": False,
    "browser": "chromium",
    "backup_suffix": ".bak.prootfix",
    "wrapper_suffix": ".real",
    "chromium_flags": CHROMIUM_FLAGS,
    "code_flags": CODE_FLAGS,
    "firefox_env": FIREFOX_ENV,
    "environment": ENVIRONMENT,
    "vscode_argv": VSCODE_ARGV,
    "vscode_argv_defaults": VSCODE_ARGV_DEFAULTS,
    "vscode_settings": VSCODE_SETTINGS,
    "home_base": "/home",
    "root_home": "/root",
}


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def _yaml():
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError(
            "YAML config requested but PyYAML is not available. "
            "Use a JSON file or install PyYAML."
        ) from e
    return yaml


def load_state(path: str) -> Dict[str, Any]:
    """Read a JSON or YAML mapping; a missing file is an empty mapping."""

    p = Path(path)
    if not p.exists():
        return {}

    fmt = _detect_format(p)
    data: Dict[str, Any]

    if fmt in {"yaml", "yml"}:
        data = _yaml().safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"Config file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        p.write_text(_yaml().safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")


def state_from_file(path: str | None) -> Dict[str, Any]:
    """Wrap a config file into a state mapping.

    Accepts both a bare config mapping and a previously written report that
    has a top-level ``config`` key.
    """

    if not path:
        return {}
    data = load_state(path)
    if "config" in data and isinstance(data["config"], dict):
        return {"config": dict(data["config"])}
    return {"config": data}


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with sane defaults (without overriding user values)."""

    state.setdefault("version", "1")
    state.setdefault("config", {})
    state.setdefault("execution", {})

    cfg = state["config"]
    for key, value in _DEFAULT_CONFIG.items():
        cfg.setdefault(key, copy.deepcopy(value))

    if cfg["browser"] not in BROWSERS:
        raise ValueError(f"browser must be one of {', '.join(BROWSERS)}, got {cfg['browser']!r}")

    exe = state["execution"]
    exe.setdefault("current_step", None)
    exe.setdefault("decisions", {})
    exe.setdefault("warnings", [])
    exe.setdefault("errors", [])

    return state


def record_decision(state: Dict[str, Any], key: str, value: Any) -> None:
    state.setdefault("execution", {}).setdefault("decisions", {})[key] = value


def record_warning(state: Dict[str, Any], step_id: str, message: str) -> None:
    logger.warning("%s: %s", step_id, message)
    state.setdefault("execution", {}).setdefault("warnings", []).append({"step": step_id, "warning": message})
