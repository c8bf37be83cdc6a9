from __future__ import annotations

import logging
from typing import Callable, List

from ..lib.command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

TERMUX_PACKAGE = "com.termux"
TERMUX_RUN_COMMAND_SERVICE = "com.termux.app.RunCommandService"
TERMUX_RUN_COMMAND_ACTION = "com.termux.RUN_COMMAND"
TERMUX_ACTIVITY = "com.termux.app.TermuxActivity"

EXTRA_COMMAND_PATH = "com.termux.RUN_COMMAND_PATH"
EXTRA_ARGUMENTS = "com.termux.RUN_COMMAND_ARGUMENTS"
EXTRA_WORKDIR = "com.termux.RUN_COMMAND_WORKDIR"
EXTRA_BACKGROUND = "com.termux.RUN_COMMAND_BACKGROUND"
EXTRA_SESSION_ACTION = "com.termux.RUN_COMMAND_SESSION_ACTION"

TERMUX_BASH = "/data/data/com.termux/files/usr/bin/bash"
TERMUX_HOME = "/data/data/com.termux/files/home"

# RUN_COMMAND session actions.
SESSION_NEW_FOREGROUND = 0
SESSION_BACKGROUND = 2

FDROID_TERMUX_URL = "https://f-droid.org/en/packages/com.termux/"

Runner = Callable[..., CmdResult]


def escape_array_item(item: str) -> str:
    """`am --esa` splits on commas; literal commas must be escaped."""

    return item.replace(",", r"\,")


def package_installed(package: str, *, runner: Runner = run_cmd) -> bool:
    r = runner(["pm", "path", package], check=False)
    return r.ok and "package:" in r.stdout


def am_failed(r: CmdResult) -> bool:
    # am reports some failures on stdout/stderr with a zero exit status.
    return (not r.ok) or "Error:" in r.stdout or "Error:" in r.stderr


class TermuxBridge:
    """Send shell commands to the Termux app through its RUN_COMMAND service.

    Termux must have ``allow-external-apps=true`` in ~/.termux/termux.properties.
    Delivery is fire-and-forget: Termux does not report whether the command
    itself succeeded.
    """

    def __init__(self, *, runner: Runner = run_cmd, dry_run: bool = False) -> None:
        self._run = runner
        self.dry_run = dry_run

    def is_installed(self) -> bool:
        return package_installed(TERMUX_PACKAGE, runner=self._run)

    def run_command_argv(self, command: str, *, background: bool = False) -> List[str]:
        return [
            "am",
            "startservice",
            "-n",
            f"{TERMUX_PACKAGE}/{TERMUX_RUN_COMMAND_SERVICE}",
            "-a",
            TERMUX_RUN_COMMAND_ACTION,
            "--es",
            EXTRA_COMMAND_PATH,
            TERMUX_BASH,
            "--esa",
            EXTRA_ARGUMENTS,
            ",".join(escape_array_item(a) for a in ("-c", command)),
            "--es",
            EXTRA_WORKDIR,
            TERMUX_HOME,
            "--ez",
            EXTRA_BACKGROUND,
            "true" if background else "false",
            "--ei",
            EXTRA_SESSION_ACTION,
            str(SESSION_BACKGROUND if background else SESSION_NEW_FOREGROUND),
        ]

    def launch(self) -> bool:
        """Bring the Termux activity to the foreground."""

        r = self._run(["am", "start", "-n", f"{TERMUX_PACKAGE}/{TERMUX_ACTIVITY}"], check=False, dry_run=self.dry_run)
        if am_failed(r):
            logger.warning("Could not open Termux (install it from %s)", FDROID_TERMUX_URL)
            return False
        return True

    def execute(self, command: str, *, background: bool = False) -> bool:
        """Returns True when the intent was delivered."""

        self.launch()
        r = self._run(self.run_command_argv(command, background=background), check=False, dry_run=self.dry_run)
        if not am_failed(r):
            logger.info("Sent to Termux: %s", command)
            return True

        logger.warning(
            "RUN_COMMAND was rejected (%s); opening Termux instead. "
            "Set allow-external-apps=true in ~/.termux/termux.properties and run: %s",
            (r.stderr or r.stdout).strip() or r.returncode,
            command,
        )
        self.launch()
        return False
