from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


MARKER_TAG = "prootfix-wrapper"
MARKER_VERSION = 1

# Only the head of a file is inspected; wrappers put the marker on line 2.
MARKER_SCAN_LINES = 6
MARKER_SCAN_BYTES = 4096

DEFAULT_REAL_SUFFIX = ".real"

_MARKER_RE = re.compile(r"^# " + re.escape(MARKER_TAG) + r": v(?P<version>[0-9]+)(?: real=(?P<real>\S.*))?$")

# Header comments written by the earlier shell installers, e.g.
#   # proot VSCode wrapper - installed by install.sh
_LEGACY_RE = re.compile(r"^# proot [A-Za-z][\w .-]* wrapper\b")

WrapStatus = Literal["wrapped", "already_wrapped", "missing"]


class WrapperError(RuntimeError):
    pass


@dataclass(frozen=True)
class WrapperMarker:
    version: int
    real: Optional[str] = None

    @property
    def legacy(self) -> bool:
        return self.version == 0


@dataclass(frozen=True)
class WrapResult:
    path: str
    status: WrapStatus
    real: Optional[str] = None
    backup: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.status == "wrapped"


def format_marker(real: str, *, version: int = MARKER_VERSION) -> str:
    return f"# {MARKER_TAG}: v{version} real={real}"


def parse_marker(line: str) -> Optional[WrapperMarker]:
    """Parse a single marker line; anything but an exact match returns None."""

    m = _MARKER_RE.match(line.rstrip("\r\n"))
    if not m:
        return None
    return WrapperMarker(version=int(m.group("version")), real=m.group("real"))


def _read_head(path: Path, *, max_lines: int, max_bytes: int) -> list[str]:
    with path.open("rb") as f:
        data = f.read(max_bytes)
    text = data.decode("utf-8", errors="replace")
    return text.splitlines()[:max_lines]


def detect_wrapper(
    path: str | Path,
    *,
    max_lines: int = MARKER_SCAN_LINES,
    max_bytes: int = MARKER_SCAN_BYTES,
) -> Optional[WrapperMarker]:
    """Return the wrapper marker found in the head of *path*, if any.

    Missing files, dangling symlinks, directories and unreadable files are
    reported as "not wrapped".
    """

    p = Path(path)
    try:
        head = _read_head(p, max_lines=max_lines, max_bytes=max_bytes)
    except OSError as e:
        logger.debug("Cannot read %s for marker detection: %s", str(p), e)
        return None

    for line in head:
        marker = parse_marker(line)
        if marker is not None:
            return marker
    for line in head:
        if _LEGACY_RE.match(line):
            return WrapperMarker(version=0)
    return None


def resolve_real_target(path: str | Path) -> Optional[Path]:
    """Resolve a symlink to its final real file; None if it dangles or loops."""

    try:
        real = Path(path).resolve(strict=True)
    except (OSError, RuntimeError):
        return None
    if not real.is_file():
        return None
    return real


def wrapper_script(
    real: str,
    args: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    description: Sequence[str] = (),
) -> str:
    lines = ["#!/bin/sh", format_marker(real)]
    lines += [f"# {d}" for d in description]
    for name, value in (env or {}).items():
        lines.append(f"export {name}={shlex.quote(str(value))}")
    exec_argv = " ".join(shlex.quote(a) for a in [real, *args])
    lines.append(f'exec {exec_argv} "$@"')
    return "\n".join(lines) + "\n"


def _replace_with_script(p: Path, script: str) -> None:
    # The old entry (file or symlink) stays in place until the rename.
    tmp = p.with_name(f".{p.name}.prootfix-tmp")
    try:
        tmp.write_text(script, encoding="utf-8")
        tmp.chmod(0o755)
        os.replace(tmp, p)
    except OSError:
        if os.path.lexists(tmp):
            tmp.unlink()
        raise


def install_wrapper(
    path: str | Path,
    args: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    suffix: str = DEFAULT_REAL_SUFFIX,
    description: Sequence[str] = (),
    dry_run: bool = False,
) -> WrapResult:
    """Make every future invocation of *path* receive *args* first.

    - Already carrying a marker: nothing to do.
    - Symlink to an existing file: the link is replaced by the wrapper and the
      resolved file is left untouched.
    - Regular file (or a link that cannot be resolved): copied once to
      ``<path><suffix>``; an existing copy is never overwritten.

    PermissionError and other OSErrors propagate to the caller.
    """

    p = Path(path)
    if not os.path.lexists(p):
        logger.warning("%s not found; skipping wrapper", str(p))
        return WrapResult(path=str(p), status="missing")

    marker = detect_wrapper(p)
    if marker is not None:
        logger.info("%s already wrapped (marker v%s)", str(p), marker.version)
        return WrapResult(path=str(p), status="already_wrapped", real=marker.real)

    if p.is_dir():
        raise WrapperError(f"{p} is a directory, not an executable")

    backup: Optional[Path] = None
    real = resolve_real_target(p) if p.is_symlink() else None

    if real is not None:
        logger.info("%s is a symlink -> %s", str(p), str(real))
    else:
        backup = p.with_name(p.name + suffix)
        if os.path.lexists(backup):
            logger.info("Backup %s already exists (not overwriting)", str(backup))
        elif dry_run:
            logger.info("Would back up %s -> %s", str(p), str(backup))
        else:
            shutil.copy2(p, backup, follow_symlinks=False)
            logger.info("Backed up %s -> %s", str(p), str(backup))
        real = backup

    script = wrapper_script(str(real), args, env=env, description=description)
    if dry_run:
        logger.info("Would write wrapper %s (exec %s)", str(p), str(real))
    else:
        _replace_with_script(p, script)
        logger.info("Wrapper installed at %s (calls %s)", str(p), str(real))

    return WrapResult(
        path=str(p),
        status="wrapped",
        real=str(real),
        backup=str(backup) if backup is not None else None,
    )


def remove_wrapper(path: str | Path, *, dry_run: bool = False) -> bool:
    """Delete *path* if it is one of our wrappers. Backups stay in place."""

    p = Path(path)
    if not os.path.lexists(p):
        return False
    if p.is_symlink() or detect_wrapper(p) is None:
        logger.info("%s is not a wrapper; leaving it alone", str(p))
        return False
    if dry_run:
        logger.info("Would remove wrapper %s", str(p))
    else:
        p.unlink()
        logger.info("Removed wrapper %s", str(p))
    return True
