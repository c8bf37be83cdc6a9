from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import pytest

from prootfix.lib.command import CmdResult
from prootfix.state_store import ensure_defaults

ORIGINAL_SCRIPT = "#!/bin/sh\nprintf '%s\\n' \"$@\"\n"


def write_exe(path: Path, text: str = ORIGINAL_SCRIPT) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    path.chmod(0o755)
    return path


class FakeRunner:
    """Stands in for run_cmd: records argv, answers `pm path` from a package list."""

    def __init__(self, installed: Iterable[str] = (), reject: Iterable[str] = ()) -> None:
        self.installed = set(installed)
        self.reject = set(reject)
        self.calls: List[List[str]] = []

    def __call__(self, argv, *, check: bool = True, dry_run: bool = False, **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        if argv[:2] == ["pm", "path"]:
            pkg = argv[2]
            if pkg in self.installed:
                return CmdResult(argv=argv, returncode=0, stdout=f"package:/data/app/{pkg}/base.apk\n", stderr="")
            return CmdResult(argv=argv, returncode=1, stdout="", stderr="")
        if any(word in argv for word in self.reject):
            return CmdResult(argv=argv, returncode=0, stdout="Error: Not allowed to start service Intent\n", stderr="")
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def staged_root(tmp_path):
    """A small proot-like tree: apt sources, chromium binary, VSCode behind a symlink."""

    root = tmp_path / "rootfs"
    sources = root / "etc/apt/sources.list"
    sources.parent.mkdir(parents=True)
    sources.write_text(
        "deb http://ftp.de.ubuntu.com/ubuntu jammy main universe\n"
        "deb http://archive.ubuntu.com/ubuntu jammy main universe\n"
        "\n"
        "# deb-src http://archive.ubuntu.com/ubuntu jammy main\n"
        "deb http://ports.ubuntu.com/ubuntu-ports jammy-updates main\n",
        encoding="utf-8",
    )

    write_exe(root / "usr/bin/chromium")
    code_real = write_exe(root / "usr/share/code/code")
    (root / "usr/bin/code").symlink_to(code_real)

    apps = root / "usr/share/applications"
    apps.mkdir(parents=True)
    (apps / "code.desktop").write_text(
        "[Desktop Entry]\n"
        "Name=Visual Studio Code\n"
        "Exec=/usr/share/code/code %F\n"
        "\n"
        "[Desktop Action new-empty-window]\n"
        "Exec=/usr/share/code/code --new-window %F\n",
        encoding="utf-8",
    )

    (root / "root").mkdir()
    (root / "home/alice").mkdir(parents=True)
    return root


@pytest.fixture
def make_state(staged_root):
    def _make(**overrides):
        cfg = {"root": str(staged_root), "apt": False, "xdg": False}
        cfg.update(overrides)
        return ensure_defaults({"config": cfg})

    return _make
