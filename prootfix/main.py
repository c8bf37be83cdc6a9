from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Callable, Dict, Optional

from .launcher import LauncherPrefs, StartSequence, TermuxBridge, VncViewer
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .menu import run_menu
from .pipeline import PipelineResult, run_pipeline
from .state_store import BROWSERS, ensure_defaults, load_state, save_state, state_from_file
from .steps import build_steps, step_enabled
from .uninstall import uninstall
from .wakelock import add_wakelock

logger = logging.getLogger(__name__)


def require_root(state: Dict[str, Any]) -> bool:
    """Changing / needs uid 0; an alternate --root prefix does not."""

    root = str((state.get("config") or {}).get("root", "/"))
    if root != "/":
        return True
    if os.geteuid() != 0:
        logger.error("Run as root inside the proot environment (or pass --root for a staged tree)")
        return False
    return True


def build_state(args: argparse.Namespace) -> Dict[str, Any]:
    """Config file first, then command line flags, then defaults."""

    state = state_from_file(args.config)
    cfg = state.setdefault("config", {})

    if args.root is not None:
        cfg["root"] = args.root
    if args.dry_run:
        cfg["dry_run"] = True
    if getattr(args, "no_apt", False):
        cfg["apt"] = False
    if getattr(args, "no_xdg", False):
        cfg["xdg"] = False
    if getattr(args, "no_vscode", False):
        cfg["vscode"] = False
    if getattr(args, "patch_desktop", False):
        cfg["patch_desktop"] = True
    if getattr(args, "with_atspi", False):
        cfg["with_atspi"] = True
    if getattr(args, "browser", None):
        cfg["browser"] = args.browser

    return ensure_defaults(state)


def _finish(args: argparse.Namespace, state: Dict[str, Any]) -> None:
    if args.report:
        save_state(args.report, state)
        logger.info("Report written to %s", args.report)


def run(
    state: Dict[str, Any],
    *,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run the provisioning steps. Step failures are recorded, never raised."""

    result = run_pipeline(
        state=state,
        steps=build_steps(),
        start_at=start_at,
        stop_after=stop_after,
        enabled=step_enabled,
    )
    summary = result.state.setdefault("execution", {}).setdefault("summary", {})
    summary["ran_steps"] = result.ran_steps
    summary["skipped_steps"] = result.skipped_steps
    summary["failed_steps"] = result.failed_steps
    return result


def cmd_fix(args: argparse.Namespace) -> int:
    state = build_state(args)
    if not require_root(state):
        return 1
    try:
        result = run(state, start_at=args.start_at, stop_after=args.stop_after)
        state = result.state
    finally:
        _finish(args, state)

    exe = state.get("execution") or {}
    validation = (exe.get("validation") or {}).get("summary")
    if validation:
        logger.info(
            "Validation: %s passed, %s failed, %s warnings",
            validation["passed"],
            validation["failed"],
            validation["warnings"],
        )
    if result.failed_steps:
        logger.warning("Finished with errors in: %s", ", ".join(result.failed_steps))
    else:
        logger.info("All steps finished")
    return 0


def cmd_menu(args: argparse.Namespace, *, input_fn: Optional[Callable[[str], str]] = None) -> int:
    state = build_state(args)
    if not require_root(state):
        return 1
    try:
        session = run_menu(state, input_fn=input_fn)
        state.setdefault("execution", {})["session_installed"] = session.installed()
    finally:
        _finish(args, state)
    return 0


def cmd_uninstall(args: argparse.Namespace, *, input_fn: Optional[Callable[[str], str]] = None) -> int:
    state = build_state(args)
    if not require_root(state):
        return 1
    if not args.yes:
        print("This removes the browser/VSCode wrappers and the VSCode apt repository.")
        print("Backups (*.real) and your VSCode settings (~/.config/Code, ~/.vscode) are kept.")
        try:
            confirm = (input_fn or input)("Are you sure you want to uninstall? (yes/no): ").strip().lower()
        except EOFError:
            confirm = ""
        if confirm != "yes":
            logger.info("Uninstall cancelled")
            return 0
    try:
        state = uninstall(state)
    finally:
        _finish(args, state)
    return 0


def cmd_wakelock(args: argparse.Namespace) -> int:
    return add_wakelock(args.script, dry_run=args.dry_run)


def load_launcher_prefs(path: Optional[str]) -> LauncherPrefs:
    if not path:
        return LauncherPrefs()
    data = load_state(path)
    section = data.get("launcher")
    return LauncherPrefs.from_mapping(section if isinstance(section, dict) else data)


def cmd_launch(args: argparse.Namespace) -> int:
    prefs = load_launcher_prefs(args.config)
    bridge = TermuxBridge(dry_run=args.dry_run)
    viewer = VncViewer(preferred=prefs.vnc_viewer_package, dry_run=args.dry_run)

    if args.action == "vnc":
        return 0 if viewer.launch("localhost", prefs.vnc_port) else 1

    if not args.dry_run and not bridge.is_installed():
        logger.error("Termux is not installed (https://f-droid.org/en/packages/com.termux/)")
        return 1

    seq = StartSequence(prefs, bridge=bridge, viewer=viewer)
    if args.action == "stop":
        seq.stop()
        return 0

    seq.start()
    if args.no_wait:
        seq.cancel()
        return 0
    try:
        seq.wait()
    except KeyboardInterrupt:
        seq.cancel()
        return 130
    return 0


def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--config", default=None, help="Config file (json|yaml)")
    sp.add_argument("--report", default=None, help="Write the final run state to this path (json|yaml)")
    sp.add_argument("--root", default=None, help="Filesystem prefix to operate on (default: /)")
    sp.add_argument("--dry-run", action="store_true", help="Log what would change without changing it")
    sp.add_argument("--no-apt", action="store_true", help="Never install or remove packages")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="prootfix")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to log file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("fix", help="Apply all fixes non-interactively")
    _add_common(sp)
    sp.add_argument("--no-xdg", action="store_true", help="Do not register a default web browser")
    sp.add_argument("--no-vscode", action="store_true", help="Skip VSCode install, wrapper and settings")
    sp.add_argument("--patch-desktop", action="store_true", help="Rewrite Exec= lines of .desktop files")
    sp.add_argument("--with-atspi", action="store_true", help="Install at-spi2-core")
    sp.add_argument("--browser", choices=BROWSERS, default=None, help="Browser to configure (default: chromium)")
    sp.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_wrap_vscode)")
    sp.add_argument("--stop-after", default=None, help="Stop after step_id")
    sp.set_defaults(func=cmd_fix)

    sp = sub.add_parser("menu", help="Interactive numbered menu")
    _add_common(sp)
    sp.add_argument("--browser", choices=BROWSERS, default=None, help="Browser to configure (default: chromium)")
    sp.set_defaults(func=cmd_menu)

    sp = sub.add_parser("uninstall", help="Remove wrappers and the VSCode repository")
    _add_common(sp)
    sp.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    sp.set_defaults(func=cmd_uninstall)

    sp = sub.add_parser("wakelock", help="Add termux-wake-lock to a proot start script")
    sp.add_argument("script", nargs="?", default=None, help="Start script (default: ~/start-ubuntu22.sh)")
    sp.add_argument("--dry-run", action="store_true")
    sp.set_defaults(func=cmd_wakelock)

    sp = sub.add_parser("launch", help="Start/stop the proot desktop from Android")
    sp.add_argument("action", choices=("start", "stop", "vnc"))
    sp.add_argument("--config", default=None, help="Launcher settings file (json|yaml)")
    sp.add_argument("--dry-run", action="store_true", help="Log the intents without sending them")
    sp.add_argument("--no-wait", action="store_true", help="Send the start command only; do not open the VNC viewer")
    sp.set_defaults(func=cmd_launch)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        return int(args.func(args))
    except Exception:
        logger.exception("prootfix %s failed", args.subcmd)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
