from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

DEFAULT_PROOT_SCRIPT = "./start-ubuntu22.sh"
DEFAULT_VNC_DISPLAY = ":1"
DEFAULT_VNC_RESOLUTION = "1920x1080"
DEFAULT_VNC_START_CMD = "vncserver-start"
DEFAULT_VNC_STOP_CMD = "vncserver-stop"
DEFAULT_VNC_DELAY = 5
DEFAULT_VNC_VIEWER = "com.gaurav.avnc"

VNC_BASE_PORT = 5900


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class LauncherPrefs:
    """Launcher settings, keyed like the Android app's shared preferences."""

    proot_start_script: str = DEFAULT_PROOT_SCRIPT
    proot_start_custom_cmd: str = ""
    vnc_display: str = DEFAULT_VNC_DISPLAY
    vnc_resolution: str = DEFAULT_VNC_RESOLUTION
    vnc_start_cmd: str = DEFAULT_VNC_START_CMD
    vnc_stop_cmd: str = DEFAULT_VNC_STOP_CMD
    auto_connect_vnc: bool = True
    vnc_connection_delay: int = DEFAULT_VNC_DELAY
    vnc_viewer_package: str = DEFAULT_VNC_VIEWER
    pre_start_cmd: str = ""
    post_start_cmd: str = ""
    custom_env_vars: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "LauncherPrefs":
        """Build from a loose mapping; unknown keys are ignored, bad numbers fall back."""

        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown launcher settings: %s", ", ".join(unknown))

        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            value = data[f.name]
            if f.name == "auto_connect_vnc":
                kwargs[f.name] = _as_bool(value)
            elif f.name == "vnc_connection_delay":
                kwargs[f.name] = _as_int(value, DEFAULT_VNC_DELAY)
            else:
                kwargs[f.name] = str(value)
        return cls(**kwargs)

    @property
    def vnc_port(self) -> int:
        """5900 + display number (``:2`` -> 5902); an unparseable display counts as 1."""

        return VNC_BASE_PORT + _as_int(self.vnc_display.strip().removeprefix(":"), 1)

    def build_start_command(self) -> str:
        parts = []
        if self.custom_env_vars.strip():
            parts.append(self.custom_env_vars)
        if self.pre_start_cmd.strip():
            parts.append(self.pre_start_cmd)
        if self.proot_start_custom_cmd.strip():
            parts.append(self.proot_start_custom_cmd)
        else:
            # The start script drops into a proot shell; the VNC server runs inside it.
            parts.append(f"{self.proot_start_script} -- {self.vnc_start_cmd}")
        if self.post_start_cmd.strip():
            parts.append(self.post_start_cmd)
        return " && ".join(parts)

    def build_stop_command(self) -> str:
        return f"{self.proot_start_script} -- {self.vnc_stop_cmd}; exit"
