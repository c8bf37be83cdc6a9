from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


def read_lines(path: str | Path) -> Tuple[List[str], bool]:
    """Return (lines without their "\\n", whether the file ended with one).

    Only "\\n" separates lines; "\\r" and other control characters stay part
    of the line they are on.
    """

    with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
        text = f.read()
    if not text:
        return [], True
    lines = text.split("\n")
    trailing = lines[-1] == ""
    if trailing:
        lines.pop()
    return lines, trailing


def write_lines(path: str | Path, lines: Sequence[str], *, trailing_newline: bool = True) -> None:
    text = "\n".join(lines)
    if lines and trailing_newline:
        text += "\n"
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(text)


def backup_once(path: str | Path, suffix: str, *, dry_run: bool = False) -> Optional[Path]:
    """Copy *path* to ``<path><suffix>`` unless that copy already exists."""

    p = Path(path)
    backup = p.with_name(p.name + suffix)
    if os.path.lexists(backup):
        logger.debug("Backup already exists: %s", str(backup))
        return backup
    if dry_run:
        logger.info("Would back up %s -> %s", str(p), str(backup))
        return backup
    shutil.copy2(p, backup)
    logger.info("Backup created: %s", str(backup))
    return backup


def set_env_var(path: str | Path, name: str, value: str, *, dry_run: bool = False) -> str:
    """Set ``NAME=value`` in an /etc/environment style file.

    Returns "updated", "added" or "unchanged".
    """

    p = Path(path)
    entry = f"{name}={value}"
    lines, trailing = read_lines(p) if p.exists() else ([], True)

    rx = re.compile(r"^" + re.escape(name) + "=")
    action = "added"
    out: List[str] = []
    for line in lines:
        if rx.match(line):
            action = "unchanged" if line == entry and action == "added" else "updated"
            out.append(entry)
        else:
            out.append(line)
    if action == "added":
        out.append(entry)
        trailing = True

    if action != "unchanged" and not dry_run:
        p.parent.mkdir(parents=True, exist_ok=True)
        write_lines(p, out, trailing_newline=trailing)
    logger.info("%s: %s (%s)", str(p), entry, action)
    return action


def _append_line(p: Path, line: str, *, dry_run: bool) -> None:
    if dry_run:
        logger.info("Would append to %s: %s", str(p), line)
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    prefix = ""
    if p.exists():
        current = p.read_text(encoding="utf-8", errors="surrogateescape")
        if current and not current.endswith("\n"):
            prefix = "\n"
    with p.open("a", encoding="utf-8") as f:
        f.write(prefix + line + "\n")


def _contains(p: Path, needle: str) -> bool:
    if not p.exists():
        return False
    return needle in p.read_text(encoding="utf-8", errors="surrogateescape")


def ensure_line(path: str | Path, line: str, *, marker: Optional[str] = None, dry_run: bool = False) -> bool:
    """Append *line* unless *marker* (default: the line itself) is already in the file."""

    p = Path(path)
    if _contains(p, marker or line):
        return False
    _append_line(p, line, dry_run=dry_run)
    return True


def ensure_export(path: str | Path, name: str, value: str, *, dry_run: bool = False) -> bool:
    return ensure_line(path, f'export {name}="{value}"', marker=f"export {name}=", dry_run=dry_run)


def substitute_lines(
    path: str | Path,
    rules: Sequence[Tuple[str, str]],
    *,
    backup_suffix: Optional[str] = ".bak.prootfix",
    dry_run: bool = False,
) -> Optional[int]:
    """Apply regex (pattern, replacement) rules line by line.

    Returns the number of replacements, or None when the file is missing.
    """

    p = Path(path)
    if not p.is_file():
        logger.warning("%s not found; skipping", str(p))
        return None

    if backup_suffix:
        backup_once(p, backup_suffix, dry_run=dry_run)

    lines, trailing = read_lines(p)
    compiled = [(re.compile(pat), repl) for pat, repl in rules]
    total = 0
    out: List[str] = []
    for line in lines:
        for rx, repl in compiled:
            line, n = rx.subn(repl, line)
            total += n
        out.append(line)

    if total and not dry_run:
        write_lines(p, out, trailing_newline=trailing)
    logger.info("%s: %d line substitution(s)", str(p), total)
    return total


def inject_after_shebang(path: str | Path, line: str, *, dry_run: bool = False) -> str:
    """Insert *line* after a ``#!`` first line, or at the very top.

    Returns "present", "after_shebang" or "top".
    """

    p = Path(path)
    lines, trailing = read_lines(p)
    if any(existing.startswith(line) for existing in lines):
        return "present"

    if lines and lines[0].startswith("#!"):
        out = [lines[0], line, *lines[1:]]
        where = "after_shebang"
    else:
        out = [line, *lines]
        where = "top"

    if not dry_run:
        write_lines(p, out, trailing_newline=trailing or len(lines) <= 1)
    return where
