from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..lib.jsonmerge import ProfileOutcome, discover_config_dirs, merge_into_profiles
from ..state_store import VSCODE_ARGV, VSCODE_ARGV_DEFAULTS, VSCODE_SETTINGS, record_decision, record_warning

logger = logging.getLogger(__name__)

ARGV_JSON = "Code/argv.json"
SETTINGS_JSON = "Code/User/settings.json"


def _summarize(outcomes: List[ProfileOutcome]) -> List[Dict[str, Any]]:
    out = []
    for o in outcomes:
        entry: Dict[str, Any] = {"config_dir": o.config_dir, "ok": o.ok}
        if o.result is not None:
            entry["created"] = o.result.created
            entry["recovered"] = o.result.recovered
        if o.error:
            entry["error"] = o.error
        out.append(entry)
    return out


class VSCodeConfigStep:
    step_id = "40_vscode_config"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        dirs = discover_config_dirs(
            root,
            root_home=str(cfg.get("root_home", "/root")),
            home_base=str(cfg.get("home_base", "/home")),
        )
        logger.info("VSCode profiles: %s", ", ".join(str(d) for d in dirs))

        argv = merge_into_profiles(
            dirs,
            ARGV_JSON,
            dict(cfg.get("vscode_argv") or VSCODE_ARGV),
            defaults=dict(cfg.get("vscode_argv_defaults") or VSCODE_ARGV_DEFAULTS),
            dry_run=dry_run,
        )
        settings = merge_into_profiles(
            dirs,
            SETTINGS_JSON,
            dict(cfg.get("vscode_settings") or VSCODE_SETTINGS),
            dry_run=dry_run,
        )

        for o in argv + settings:
            if o.result is not None and o.result.recovered:
                record_warning(state, self.step_id, f"{o.result.path} was not valid JSON and has been rewritten")
            if not o.ok:
                record_warning(state, self.step_id, f"{o.config_dir}: {o.error} (fix manually)")

        record_decision(state, "vscode_config", {"argv": _summarize(argv), "settings": _summarize(settings)})
        return state
