from __future__ import annotations

import json

from prootfix.lib.command import CmdResult
from prootfix.lib.sources import DUPLICATE_PREFIX
from prootfix.lib.wrapper import detect_wrapper, install_wrapper
from prootfix.main import run
from prootfix.steps import (
    EnvTweaksStep,
    FixSourcesStep,
    InstallVSCodeStep,
    ValidateStep,
    VSCodeConfigStep,
    WrapChromiumStep,
    WrapFirefoxStep,
    WrapVSCodeStep,
)
from prootfix.steps import step_20_install_vscode
from prootfix.uninstall import uninstall


def _json(p):
    return json.loads(p.read_text(encoding="utf-8"))


def test_fix_sources_step(make_state, staged_root):
    state = FixSourcesStep().run(make_state())

    text = (staged_root / "etc/apt/sources.list").read_text(encoding="utf-8")
    assert "ftp.de.ubuntu.com" not in text
    assert DUPLICATE_PREFIX + "deb http://archive.ubuntu.com/ubuntu jammy main universe" in text
    decision = state["execution"]["decisions"]["sources"]
    assert decision["replaced"] == 1
    assert decision["commented"] == 1


def test_fix_sources_step_missing_file(make_state, staged_root):
    (staged_root / "etc/apt/sources.list").unlink()
    state = FixSourcesStep().run(make_state())
    assert state["execution"]["decisions"]["sources"]["status"] == "missing"


def test_chromium_wrapper(make_state, staged_root):
    state = WrapChromiumStep().run(make_state())

    chromium = staged_root / "usr/bin/chromium"
    marker = detect_wrapper(chromium)
    assert marker is not None and marker.real == str(chromium) + ".real"
    assert chromium.read_text().splitlines()[-1].endswith(
        "--no-sandbox --disable-dev-shm-usage --disable-gpu --disable-software-rasterizer --no-zygote \"$@\""
    )
    assert state["execution"]["decisions"]["chromium"]["status"] == "wrapped"


def test_chromium_missing_is_a_warning(make_state, staged_root):
    (staged_root / "usr/bin/chromium").unlink()
    state = WrapChromiumStep().run(make_state())
    assert state["execution"]["decisions"]["chromium"] == {"status": "missing"}
    assert state["execution"]["warnings"][0]["step"] == "10_wrap_chromium"


def test_chromium_desktop_patch(make_state, staged_root):
    desktop = staged_root / "usr/share/applications/chromium.desktop"
    desktop.write_text("[Desktop Entry]\nExec=/usr/lib/chromium/chromium %U\n", encoding="utf-8")

    WrapChromiumStep().run(make_state(patch_desktop=True))

    assert desktop.read_text(encoding="utf-8") == "[Desktop Entry]\nExec=/usr/bin/chromium %U\n"


def test_firefox_only_for_firefox_browser(make_state, staged_root):
    firefox = staged_root / "usr/bin/firefox-esr"
    firefox.write_text("#!/bin/sh\n", encoding="utf-8")

    WrapFirefoxStep().run(make_state())
    assert detect_wrapper(firefox) is None

    state = WrapFirefoxStep().run(make_state(browser="firefox-esr"))
    text = firefox.read_text(encoding="utf-8")
    assert "export MOZ_DISABLE_CONTENT_SANDBOX=1" in text
    assert "export MOZ_DISABLE_GMP_SANDBOX=1" in text
    assert "export MOZ_DISABLE_NPAPI_SANDBOX=1" in text
    assert state["execution"]["decisions"]["firefox"]["path"] == "/usr/bin/firefox-esr"


def test_vscode_wrapper_keeps_symlink_target(make_state, staged_root):
    real = staged_root / "usr/share/code/code"
    before = real.read_bytes()

    state = WrapVSCodeStep().run(make_state(patch_desktop=True))

    assert real.read_bytes() == before
    assert not (staged_root / "usr/bin/code.real").exists()
    assert detect_wrapper(staged_root / "usr/bin/code").real == str(real.resolve())
    desktop = (staged_root / "usr/share/applications/code.desktop").read_text(encoding="utf-8")
    assert "Exec=/usr/bin/code %F" in desktop
    assert "Exec=/usr/bin/code --new-window %F" in desktop
    assert state["execution"]["decisions"]["vscode_wrapper"]["desktop"] == 2


def test_install_vscode_skipped_when_present(make_state):
    state = InstallVSCodeStep().run(make_state())
    assert state["execution"]["decisions"]["vscode_install"] == {"status": "present"}


def test_install_vscode_without_apt_warns(make_state, staged_root):
    (staged_root / "usr/bin/code").unlink()
    state = InstallVSCodeStep().run(make_state())
    assert state["execution"]["decisions"]["vscode_install"] == {"status": "missing"}
    assert state["execution"]["warnings"]


def test_install_vscode_adds_repo_and_installs(make_state, staged_root, monkeypatch):
    (staged_root / "usr/bin/code").unlink()
    calls = []
    monkeypatch.setattr(step_20_install_vscode, "detect_deb_arch", lambda root: "arm64")
    monkeypatch.setattr(
        step_20_install_vscode,
        "add_vendor_repo",
        lambda root, **kw: calls.append(("repo", kw["line"])) or True,
    )
    monkeypatch.setattr(step_20_install_vscode, "apt_update", lambda root, **kw: calls.append(("update",)))
    monkeypatch.setattr(
        step_20_install_vscode, "apt_install", lambda root, pkgs, **kw: calls.append(("install", list(pkgs)))
    )

    state = InstallVSCodeStep().run(make_state(apt=True))

    assert calls[0] == (
        "repo",
        "deb [arch=arm64 signed-by=/usr/share/keyrings/microsoft-archive-keyring.gpg] "
        "https://packages.microsoft.com/repos/code stable main",
    )
    assert calls[1] == ("update",)
    assert calls[2][1][-1] == "code"
    assert state["execution"]["decisions"]["vscode_install"] == {"status": "installed", "arch": "arm64"}


def test_install_vscode_failure_is_a_warning(make_state, staged_root, monkeypatch):
    (staged_root / "usr/bin/code").unlink()

    def fail(*args, **kwargs):
        raise RuntimeError("Command failed (100): apt-get update")

    monkeypatch.setattr(step_20_install_vscode, "detect_deb_arch", lambda root: "amd64")
    monkeypatch.setattr(step_20_install_vscode, "add_vendor_repo", fail)

    state = InstallVSCodeStep().run(make_state(apt=True))

    assert state["execution"]["decisions"]["vscode_install"]["status"] == "failed"
    assert "code.visualstudio.com" in state["execution"]["warnings"][0]["warning"]


def test_vscode_config_per_profile(make_state, staged_root):
    settings = staged_root / "root/.config/Code/User/settings.json"
    settings.parent.mkdir(parents=True)
    settings.write_text("{ not json", encoding="utf-8")
    alice_argv = staged_root / "home/alice/.config/Code/argv.json"
    alice_argv.parent.mkdir(parents=True)
    alice_argv.write_text(json.dumps({"enable-crash-reporter": True, "locale": "fr"}), encoding="utf-8")

    state = VSCodeConfigStep().run(make_state())

    assert _json(staged_root / "root/.config/Code/argv.json") == {
        "password-store": "basic",
        "enable-crash-reporter": False,
    }
    assert _json(alice_argv) == {"enable-crash-reporter": True, "locale": "fr", "password-store": "basic"}
    assert _json(settings) == {"diffEditor.maxComputationTime": 0, "github.copilot.chat.tools.autoApprove": True}
    assert any("not valid JSON" in w["warning"] for w in state["execution"]["warnings"])


def test_env_tweaks(make_state, staged_root):
    env = staged_root / "etc/environment"
    env.write_text('PATH="/usr/local/sbin:/usr/bin"\nNO_AT_BRIDGE=0\n', encoding="utf-8")

    EnvTweaksStep().run(make_state())
    EnvTweaksStep().run(make_state())

    lines = env.read_text(encoding="utf-8").splitlines()
    assert lines[0] == 'PATH="/usr/local/sbin:/usr/bin"'
    assert "NO_AT_BRIDGE=1" in lines
    assert "LIBGL_ALWAYS_SOFTWARE=1" in lines
    assert len(lines) == 7
    bashrc = (staged_root / "root/.bashrc").read_text(encoding="utf-8")
    assert bashrc.count("ELECTRON_DISABLE_SANDBOX") == 1
    assert 'export XDG_CONFIG_HOME="$HOME/.config"' in bashrc


def test_full_run_is_idempotent(make_state, staged_root):
    result = run(make_state(patch_desktop=True))
    assert result.failed_steps == []
    assert result.skipped_steps == []
    assert result.state["execution"]["validation"]["summary"] == {"passed": 5, "failed": 0, "warnings": 0}

    tracked = [
        "usr/bin/chromium",
        "usr/bin/code",
        "etc/apt/sources.list",
        "etc/environment",
        "root/.bashrc",
        "root/.config/Code/argv.json",
        "home/alice/.config/Code/User/settings.json",
        "usr/share/applications/code.desktop",
    ]
    snapshot = {rel: (staged_root / rel).read_bytes() for rel in tracked}

    again = run(make_state(patch_desktop=True))

    assert again.failed_steps == []
    assert {rel: (staged_root / rel).read_bytes() for rel in tracked} == snapshot
    assert again.state["execution"]["decisions"]["chromium"]["status"] == "already_wrapped"
    assert sorted(p.name for p in (staged_root / "usr/bin").iterdir()) == ["chromium", "chromium.real", "code"]


def test_no_vscode_skips_vscode_steps(make_state):
    result = run(make_state(vscode=False))
    assert result.skipped_steps == ["20_install_vscode", "30_wrap_vscode", "40_vscode_config"]


def test_validate_reports_unwrapped(make_state):
    state = ValidateStep().run(make_state())
    summary = state["execution"]["validation"]["summary"]
    assert summary["failed"] >= 2


def test_uninstall_removes_wrappers_keeps_backups(make_state, staged_root):
    install_wrapper(staged_root / "usr/bin/chromium", ["--no-sandbox"])
    WrapVSCodeStep().run(make_state())
    list_file = staged_root / "etc/apt/sources.list.d/vscode.list"
    list_file.parent.mkdir(parents=True)
    list_file.write_text("deb https://packages.microsoft.com/repos/code stable main\n")

    state = uninstall(make_state())

    assert not (staged_root / "usr/bin/chromium").exists()
    assert (staged_root / "usr/bin/chromium.real").exists()
    assert not (staged_root / "usr/bin/code").exists()
    assert (staged_root / "usr/share/code/code").exists()
    assert not list_file.exists()
    assert "/usr/bin/code" in state["execution"]["decisions"]["uninstall"]["removed"]


def test_uninstall_leaves_unwrapped_binaries(make_state, staged_root):
    uninstall(make_state())
    assert (staged_root / "usr/bin/chromium").exists()
    assert (staged_root / "usr/bin/code").is_symlink()


def test_apt_runs_inside_staged_root(make_state, staged_root, monkeypatch):
    from prootfix.lib import chroot

    seen = []

    def fake_run_cmd(argv, **kwargs):
        seen.append((list(argv), kwargs.get("env")))
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    monkeypatch.setattr(chroot, "run_cmd", fake_run_cmd)

    EnvTweaksStep().run(make_state(apt=True))

    argv, env = seen[-1]
    assert argv[:2] == ["chroot", str(staged_root)]
    assert argv[2:] == ["apt-get", "install", "-y", "libsecret-1-0", "gnome-keyring"]
    assert env == {"DEBIAN_FRONTEND": "noninteractive"}


def test_default_browser_is_set_inside_staged_root(make_state, staged_root, monkeypatch, fake_runner):
    from prootfix.lib import xdg

    for tool in ("xdg-settings", "xdg-mime"):
        (staged_root / "usr/bin" / tool).write_text("#!/bin/sh\n", encoding="utf-8")
    (staged_root / "usr/share/applications/chromium.desktop").write_text(
        "[Desktop Entry]\nExec=/usr/bin/chromium %U\n", encoding="utf-8"
    )
    (staged_root / "usr/share/applications/firefox.desktop").write_text(
        "[Desktop Entry]\nExec=firefox %u\n", encoding="utf-8"
    )
    (staged_root / "usr/bin/firefox").write_text("#!/bin/sh\n", encoding="utf-8")
    runner = fake_runner()
    monkeypatch.setattr(xdg, "run_cmd", runner)

    state = WrapChromiumStep().run(make_state(xdg=True))
    assert state["execution"]["decisions"]["chromium"]["default_browser"] == "chromium.desktop"
    WrapFirefoxStep().run(make_state(xdg=True, browser="firefox"))

    assert len(runner.calls) == 8
    assert all(argv[:2] == ["chroot", str(staged_root)] for argv in runner.calls)
    assert runner.calls[0][2:] == ["xdg-settings", "set", "default-web-browser", "chromium.desktop"]
    assert runner.calls[4][2:] == ["xdg-settings", "set", "default-web-browser", "firefox.desktop"]


def test_default_browser_without_xdg_tools_in_root(make_state, staged_root, monkeypatch, fake_runner, caplog):
    from prootfix.lib import xdg

    (staged_root / "usr/share/applications/chromium.desktop").write_text("[Desktop Entry]\n", encoding="utf-8")
    runner = fake_runner()
    monkeypatch.setattr(xdg, "run_cmd", runner)

    WrapChromiumStep().run(make_state(xdg=True))

    assert runner.calls == []
    assert "xdg-settings not found" in caplog.text
