from __future__ import annotations

import logging
import platform

from .chroot import root_argv
from .command import run_cmd

logger = logging.getLogger(__name__)


def normalize_arch(machine: str) -> str:
    """Map a kernel/dpkg machine name to a Debian arch; unknown values become amd64."""

    m = machine.strip().lower()
    arch = {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armhf",
        "armv6l": "armhf",
        "armhf": "armhf",
    }.get(m)
    if arch is None:
        logger.warning("Unknown architecture %r; defaulting to amd64", machine)
        return "amd64"
    return arch


def detect_deb_arch(root: str = "/") -> str:
    r = run_cmd(root_argv(root, ["dpkg", "--print-architecture"]), check=False)
    if r.ok and r.stdout.strip():
        return normalize_arch(r.stdout)
    return normalize_arch(platform.machine())
