from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import under_root
from ..lib.sources import fix_sources_file, missing_signing_keys
from ..state_store import record_decision, record_warning

logger = logging.getLogger(__name__)


class FixSourcesStep:
    step_id = "00_fix_sources"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        root = str(cfg.get("root", "/"))
        dry_run = bool(cfg.get("dry_run", False))

        sources = under_root(root, "/etc/apt/sources.list")
        report = fix_sources_file(sources, backup_suffix=str(cfg.get("backup_suffix", ".bak.prootfix")), dry_run=dry_run)
        if report is None:
            record_decision(state, "sources", {"status": "missing", "path": str(sources)})
        else:
            record_decision(
                state,
                "sources",
                {
                    "status": "fixed",
                    "path": report.path,
                    "replaced": report.replaced,
                    "deb_lines_before": report.before,
                    "deb_lines_after": report.after,
                    "commented": report.commented,
                },
            )

        for list_file, key in missing_signing_keys(under_root(root, "/etc/apt/sources.list.d"), root=root):
            record_warning(
                state,
                self.step_id,
                f"{list_file} references missing key {key}; apt-get update will fail for it",
            )

        return state
