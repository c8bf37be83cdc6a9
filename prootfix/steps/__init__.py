from .step_00_fix_sources import FixSourcesStep
from .step_10_wrap_chromium import WrapChromiumStep
from .step_15_wrap_firefox import WrapFirefoxStep
from .step_20_install_vscode import InstallVSCodeStep
from .step_30_wrap_vscode import WrapVSCodeStep
from .step_40_vscode_config import VSCodeConfigStep
from .step_50_env_tweaks import EnvTweaksStep
from .step_90_validate import ValidateStep

VSCODE_STEPS = frozenset({"20_install_vscode", "30_wrap_vscode", "40_vscode_config"})


def build_steps():
    return [
        FixSourcesStep(),
        WrapChromiumStep(),
        WrapFirefoxStep(),
        InstallVSCodeStep(),
        WrapVSCodeStep(),
        VSCodeConfigStep(),
        EnvTweaksStep(),
        ValidateStep(),
    ]


def step_enabled(step, state) -> bool:
    cfg = state.get("config") or {}
    if step.step_id in VSCODE_STEPS:
        return bool(cfg.get("vscode", True))
    return True


__all__ = [
    "FixSourcesStep",
    "WrapChromiumStep",
    "WrapFirefoxStep",
    "InstallVSCodeStep",
    "WrapVSCodeStep",
    "VSCodeConfigStep",
    "EnvTweaksStep",
    "ValidateStep",
    "VSCODE_STEPS",
    "build_steps",
    "step_enabled",
]
