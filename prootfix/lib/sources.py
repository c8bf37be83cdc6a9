from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .textpatch import backup_once, read_lines, write_lines

logger = logging.getLogger(__name__)


DUPLICATE_PREFIX = "# [duplicate removed] "
DEB_LINE = r"^\s*deb"

# ftp.<cc>.ubuntu.com mirrors are often blocked inside proot/containers.
FTP_MIRROR_RULE: Tuple[str, str] = (r"ftp[^\s]*\.ubuntu\.com", "archive.ubuntu.com")

_BLANK = re.compile(r"^\s*$")
_COMMENT = re.compile(r"^\s*#")
_SIGNED_BY = re.compile(r"signed-by=([^\]\s]+)")


@dataclass(frozen=True)
class SourcesReport:
    path: str
    replaced: int
    before: int
    after: int

    @property
    def commented(self) -> int:
        return self.before - self.after


def substitute(lines: Iterable[str], pattern: str, replacement: str) -> Tuple[List[str], int]:
    """Replace *pattern* on every line. Returns (lines, number of replacements)."""

    rx = re.compile(pattern)
    out: List[str] = []
    total = 0
    for line in lines:
        new, n = rx.subn(replacement, line)
        out.append(new)
        total += n
    return out, total


def comment_duplicates(lines: Iterable[str], *, prefix: str = DUPLICATE_PREFIX) -> List[str]:
    """Comment out repeated content lines, keeping the first occurrence.

    Blank and already-commented lines are passed through untouched and never
    take part in duplicate detection. Comparison is exact.
    """

    seen: set[str] = set()
    out: List[str] = []
    for line in lines:
        if _BLANK.match(line) or _COMMENT.match(line):
            out.append(line)
        elif line in seen:
            out.append(prefix + line)
        else:
            seen.add(line)
            out.append(line)
    return out


def count_matching(lines: Iterable[str], pattern: str = DEB_LINE) -> int:
    rx = re.compile(pattern)
    return sum(1 for line in lines if rx.search(line))


def fix_sources_file(
    path: str | Path,
    *,
    backup_suffix: str = ".bak.prootfix",
    substitutions: Sequence[Tuple[str, str]] = (FTP_MIRROR_RULE,),
    dry_run: bool = False,
) -> Optional[SourcesReport]:
    """Normalize mirror URLs and neutralize duplicate entries in an apt list file."""

    p = Path(path)
    if not p.is_file():
        logger.warning("%s not found; skipping sources fixes", str(p))
        return None

    backup_once(p, backup_suffix, dry_run=dry_run)

    lines, trailing_newline = read_lines(p)
    replaced = 0
    for pattern, replacement in substitutions:
        lines, n = substitute(lines, pattern, replacement)
        replaced += n
    if replaced:
        logger.info("Replaced %d mirror URL(s) in %s", replaced, str(p))
    else:
        logger.info("No mirror URLs to replace in %s", str(p))

    before = count_matching(lines)
    lines = comment_duplicates(lines)
    after = count_matching(lines)

    if not dry_run:
        write_lines(p, lines, trailing_newline=trailing_newline)

    report = SourcesReport(path=str(p), replaced=replaced, before=before, after=after)
    if report.commented > 0:
        logger.info("Commented out %d duplicate deb/deb-src line(s) in %s", report.commented, str(p))
    else:
        logger.info("No duplicate deb/deb-src lines in %s", str(p))
    return report


def missing_signing_keys(list_dir: str | Path, *, root: str | Path = "/") -> List[Tuple[str, str]]:
    """(list file, key path) for every ``signed-by=`` key that does not exist."""

    d = Path(list_dir)
    if not d.is_dir():
        return []
    missing: List[Tuple[str, str]] = []
    for f in sorted(d.glob("*.list")):
        try:
            text = f.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        m = _SIGNED_BY.search(text)
        if not m:
            continue
        key = m.group(1)
        if not (Path(root) / key.lstrip("/")).exists():
            missing.append((str(f), key))
    return missing
