from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def is_host_root(root: str | Path) -> bool:
    return str(Path(root)) == "/"


def under_root(root: str | Path, path: str | Path) -> Path:
    """Map an absolute system path (e.g. /usr/bin/code) into *root*."""

    return Path(root) / str(path).lstrip("/")


def root_argv(root: str | Path, argv: Sequence[str]) -> List[str]:
    """argv to run inside *root*: unchanged for /, chroot-prefixed otherwise."""

    if is_host_root(root):
        return list(argv)
    return ["chroot", str(root), *argv]


def chroot_cmd(
    root: str | Path,
    argv: Sequence[str],
    *,
    check: bool = True,
    env: dict[str, str] | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside root."""

    return run_cmd(root_argv(root, argv), check=check, env=env, dry_run=dry_run)
