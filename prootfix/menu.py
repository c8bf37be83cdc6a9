from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .pipeline import PipelineResult, run_pipeline
from .session import InstalledComponents
from .steps import (
    EnvTweaksStep,
    FixSourcesStep,
    InstallVSCodeStep,
    ValidateStep,
    VSCodeConfigStep,
    WrapChromiumStep,
    WrapFirefoxStep,
    WrapVSCodeStep,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuEntry:
    key: str
    component: str
    label: str
    steps: Tuple[Any, ...]


def default_entries() -> List[MenuEntry]:
    return [
        MenuEntry("1", "sources", "Fix apt sources (mirrors, duplicate lines)", (FixSourcesStep(),)),
        MenuEntry(
            "2",
            "vscode",
            "Install and configure VSCode",
            (InstallVSCodeStep(), WrapVSCodeStep(), VSCodeConfigStep()),
        ),
        MenuEntry("3", "browser", "Wrap the web browser (Chromium / Firefox)", (WrapChromiumStep(), WrapFirefoxStep())),
        MenuEntry("4", "environment", "Environment tweaks (/etc/environment, ~/.bashrc)", (EnvTweaksStep(),)),
        MenuEntry("5", "validate", "Validate the setup", (ValidateStep(),)),
    ]


def render_menu(entries: Sequence[MenuEntry], session: InstalledComponents) -> str:
    lines = ["", "prootfix: proot desktop fixes", ""]
    for e in entries:
        tick = "[x]" if session.is_installed(e.component) else "[ ]"
        lines.append(f"  {e.key}) {tick} {e.label}")
    lines.append("  9) Run all")
    lines.append("  0) Exit")
    return "\n".join(lines)


def _run_entries(
    state: Dict[str, Any],
    entries: Sequence[MenuEntry],
    session: InstalledComponents,
) -> PipelineResult:
    steps = [s for e in entries for s in e.steps]
    result = run_pipeline(state=state, steps=steps)
    for e in entries:
        if all(s.step_id in result.ran_steps for s in e.steps):
            session.mark(e.component)
    return result


def run_menu(
    state: Dict[str, Any],
    *,
    input_fn: Optional[Callable[[str], str]] = None,
    output_fn: Callable[[str], None] = print,
    entries: Optional[Sequence[MenuEntry]] = None,
    session: Optional[InstalledComponents] = None,
) -> InstalledComponents:
    """Numbered menu loop. Returns the session map when the user exits."""

    input_fn = input_fn or input
    entries = list(entries) if entries is not None else default_entries()
    session = session if session is not None else InstalledComponents()
    by_key = {e.key: e for e in entries}

    while True:
        output_fn(render_menu(entries, session))
        try:
            choice = input_fn("Select an option: ").strip()
        except EOFError:
            output_fn("")
            return session

        if choice == "0":
            return session
        if choice == "9":
            result = _run_entries(state, entries, session)
        elif choice in by_key:
            result = _run_entries(state, [by_key[choice]], session)
        else:
            output_fn(f"Invalid option: {choice!r}")
            continue

        state = result.state
        if result.failed_steps:
            output_fn("Finished with errors in: " + ", ".join(result.failed_steps) + " (see the log)")
        else:
            output_fn("Done.")
