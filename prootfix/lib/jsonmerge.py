from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    path: str
    created: bool
    recovered: bool
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProfileOutcome:
    config_dir: str
    ok: bool
    result: Optional[MergeResult] = None
    error: Optional[str] = None


def _load_object(p: Path) -> tuple[Dict[str, Any], bool]:
    """Return (data, recovered). Unparseable or non-object content becomes {}."""

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("%s is not valid JSON (%s); starting from an empty object", str(p), e)
        return {}, True
    if not isinstance(data, dict):
        logger.warning("%s does not contain a JSON object; starting from an empty object", str(p))
        return {}, True
    return data, False


def merge_json_keys(
    path: str | Path,
    values: Mapping[str, Any],
    *,
    defaults: Mapping[str, Any] | None = None,
    dry_run: bool = False,
) -> MergeResult:
    """Enforce *values* in a JSON object file, keeping every other key.

    *defaults* are only set when the key is absent. A missing file is created
    with just these keys. Content that does not parse is discarded.
    """

    p = Path(path)
    created = not p.exists()
    recovered = False

    if created:
        data: Dict[str, Any] = {}
    else:
        data, recovered = _load_object(p)

    data.update(values)
    for key, value in (defaults or {}).items():
        data.setdefault(key, value)

    if dry_run:
        logger.info("Would write %s", str(p))
    else:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data, indent=4) + "\n", encoding="utf-8")
        logger.info("%s %s", "Created" if created else "Merged", str(p))

    return MergeResult(path=str(p), created=created, recovered=recovered, data=data)


def discover_config_dirs(
    root: str | Path = "/",
    *,
    root_home: str = "/root",
    home_base: str = "/home",
) -> List[Path]:
    """Config roots for the privileged account plus every home directory."""

    r = Path(root)
    dirs = [r / root_home.lstrip("/") / ".config"]
    homes = r / home_base.lstrip("/")
    if homes.is_dir():
        for home in sorted(homes.iterdir(), key=lambda h: h.name):
            if home.is_dir():
                dirs.append(home / ".config")
    return dirs


def merge_into_profiles(
    config_dirs: Sequence[str | Path],
    relpath: str,
    values: Mapping[str, Any],
    *,
    defaults: Mapping[str, Any] | None = None,
    dry_run: bool = False,
) -> List[ProfileOutcome]:
    """Apply merge_json_keys to ``<config_dir>/<relpath>`` for each profile.

    Profiles are independent: a failure in one is recorded and the rest still run.
    """

    outcomes: List[ProfileOutcome] = []
    for config_dir in config_dirs:
        target = Path(config_dir) / relpath
        try:
            result = merge_json_keys(target, values, defaults=defaults, dry_run=dry_run)
            outcomes.append(ProfileOutcome(config_dir=str(config_dir), ok=True, result=result))
        except OSError as e:
            logger.warning("Could not update %s: %s (fix manually)", str(target), e)
            outcomes.append(ProfileOutcome(config_dir=str(config_dir), ok=False, error=str(e)))
    return outcomes
