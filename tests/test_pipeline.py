from __future__ import annotations

import json

import pytest

from prootfix.lib.arch import normalize_arch
from prootfix.pipeline import run_pipeline
from prootfix.state_store import ensure_defaults, load_state, save_state, state_from_file


class _Step:
    def __init__(self, step_id, error=None):
        self.step_id = step_id
        self.error = error

    def run(self, state):
        state.setdefault("seen", []).append(self.step_id)
        if self.error is not None:
            raise self.error
        return state


def test_runs_in_order():
    result = run_pipeline(state={}, steps=[_Step("a"), _Step("b"), _Step("c")])
    assert result.ran_steps == ["a", "b", "c"]
    assert result.state["seen"] == ["a", "b", "c"]
    assert result.ok
    assert result.state["execution"]["current_step"] is None


def test_permission_error_does_not_stop_siblings(caplog):
    steps = [_Step("a"), _Step("b", PermissionError("/usr/bin/code: Permission denied")), _Step("c")]

    result = run_pipeline(state={}, steps=steps)

    assert result.ran_steps == ["a", "c"]
    assert result.failed_steps == ["b"]
    errors = result.state["execution"]["errors"]
    assert errors == [{"step": "b", "kind": "permission", "error": "/usr/bin/code: Permission denied"}]
    assert "fix manually" in caplog.text


def test_other_errors_are_recorded():
    result = run_pipeline(state={}, steps=[_Step("a", RuntimeError("boom")), _Step("b")])
    assert result.failed_steps == ["a"]
    assert result.ran_steps == ["b"]
    assert result.state["execution"]["errors"][0]["kind"] == "error"
    assert not result.ok


def test_start_at_and_stop_after():
    steps = [_Step("a"), _Step("b"), _Step("c"), _Step("d")]
    result = run_pipeline(state={}, steps=steps, start_at="b", stop_after="c")
    assert result.ran_steps == ["b", "c"]


def test_disabled_steps_are_skipped():
    result = run_pipeline(
        state={},
        steps=[_Step("a"), _Step("b")],
        enabled=lambda step, state: step.step_id != "b",
    )
    assert result.ran_steps == ["a"]
    assert result.skipped_steps == ["b"]


class TestStateStore:
    def test_defaults_do_not_override(self):
        state = ensure_defaults({"config": {"apt": False, "chromium_flags": ["--no-sandbox"]}})
        cfg = state["config"]
        assert cfg["apt"] is False
        assert cfg["chromium_flags"] == ["--no-sandbox"]
        assert cfg["root"] == "/"
        assert cfg["backup_suffix"] == ".bak.prootfix"
        assert cfg["code_flags"][-1] == "--password-store=basic"
        assert state["execution"]["errors"] == []

    def test_defaults_are_copies(self):
        a = ensure_defaults({})
        a["config"]["environment"]["EXTRA"] = "1"
        b = ensure_defaults({})
        assert "EXTRA" not in b["config"]["environment"]

    def test_unknown_browser(self):
        with pytest.raises(ValueError):
            ensure_defaults({"config": {"browser": "lynx"}})

    def test_json_round_trip(self, tmp_path):
        p = tmp_path / "report.json"
        save_state(str(p), {"config": {"apt": False}})
        assert json.loads(p.read_text()) == {"config": {"apt": False}}
        assert load_state(str(p)) == {"config": {"apt": False}}

    def test_yaml_config(self, tmp_path):
        p = tmp_path / "prootfix.yaml"
        p.write_text("apt: false\nbrowser: firefox-esr\n", encoding="utf-8")
        assert state_from_file(str(p)) == {"config": {"apt": False, "browser": "firefox-esr"}}

    def test_report_as_config(self, tmp_path):
        p = tmp_path / "report.json"
        p.write_text(json.dumps({"config": {"xdg": False}, "execution": {"errors": []}}))
        assert state_from_file(str(p)) == {"config": {"xdg": False}}

    def test_missing_file_is_empty(self, tmp_path):
        assert load_state(str(tmp_path / "none.json")) == {}
        assert state_from_file(None) == {}


@pytest.mark.parametrize(
    "machine,arch",
    [("x86_64", "amd64"), ("aarch64", "arm64"), ("armv7l", "armhf"), ("arm64\n", "arm64"), ("riscv64", "amd64")],
)
def test_normalize_arch(machine, arch):
    assert normalize_arch(machine) == arch
