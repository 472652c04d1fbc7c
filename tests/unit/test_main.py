# tests/unit/test_main.py — v2
"""Tests for main.py: CLI entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from cacheplan.main import _build_parser, main


@pytest.fixture(autouse=True)
def _isolated_cli(monkeypatch, tmp_path):
    """Keep ~ and CI trigger variables away from the host running the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in ("GITHUB_EVENT_NAME", "GITHUB_REF", "GITHUB_BASE_REF"):
        monkeypatch.delenv(name, raising=False)
    yield
    root = logging.getLogger("cacheplan")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()


@pytest.fixture
def cli(make_settings):
    """Run main() with isolated settings; overrides apply to Settings."""

    def _run(argv: list[str], **overrides) -> int:
        with patch("cacheplan.main._load_settings", return_value=make_settings(**overrides)):
            return main(argv)

    return _run


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_plan_subcommand(self):
        args = _build_parser().parse_args(["plan", "--date", "2024-01-01", "--platform", "p"])
        assert args.command == "plan"
        assert args.date == "2024-01-01"
        assert args.root == Path(".")

    def test_restore_requires_state(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["restore"])

    def test_summary_requires_results(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["summary"])


class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_configuration_error(self, cargo_project):
        with patch("cacheplan.main._load_settings", side_effect=ValueError("bad config")):
            assert main(["plan", "--root", str(cargo_project)]) == 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

class TestPlanCommand:
    def test_prints_keys(self, cli, cargo_project, capsys):
        rc = cli([
            "plan", "--root", str(cargo_project),
            "--date", "2024-01-01", "--platform", "ubuntu-latest",
        ])
        assert rc == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["date_stamp"] == "2024-01-01"
        assert payload["manifest_files"] == ["Cargo.toml", "crates/core/Cargo.toml"]
        fp = payload["fingerprint"]
        assert [c["key"] for c in payload["caches"]] == [
            f"cargo-registry-{fp}-2024-01-01",
            f"cargo-index-{fp}-2024-01-01",
            f"cargo-build-target-{fp}-2024-01-01",
        ]
        assert payload["caches"][2]["restore_keys"] == [f"cargo-build-target-{fp}"]

    def test_namespaced_keys(self, cli, cargo_project, capsys):
        rc = cli(
            ["plan", "--root", str(cargo_project), "--date", "2024-01-01", "--platform", "macos-latest"],
            cache_namespace_by_platform=True,
        )
        assert rc == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["caches"][0]["key"].startswith("macos-latest-cargo-registry-")

    def test_missing_manifest_fails(self, cli, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert cli(["plan", "--root", str(empty), "--date", "2024-01-01"]) == 1

    def test_invalid_date_fails(self, cli, cargo_project):
        assert cli(["plan", "--root", str(cargo_project), "--date", "2024-13-01"]) == 1


class TestRestoreSaveCommands:
    def test_round_trip(self, cli, cargo_project, tmp_path, capsys):
        state = tmp_path / "state.json"
        common = ["--root", str(cargo_project), "--date", "2024-01-01", "--platform", "ubuntu-latest"]

        assert cli(["restore", "--state", str(state), *common]) == 0
        assert "cargo-build-target: miss" in capsys.readouterr().out
        assert state.exists()

        assert cli(["save", "--state", str(state)]) == 0
        out = capsys.readouterr().out
        assert "cargo-build-target: saved" in out
        assert "cargo-registry: missing_path" in out

        assert cli(["restore", "--state", str(state), *common]) == 0
        assert "cargo-build-target: exact" in capsys.readouterr().out

        assert cli(["save", "--state", str(state)]) == 0
        assert "cargo-build-target: exact_hit" in capsys.readouterr().out

    def test_next_day_restores_by_prefix(self, cli, cargo_project, tmp_path, capsys):
        state = tmp_path / "state.json"
        common = ["--root", str(cargo_project), "--platform", "ubuntu-latest"]
        cli(["restore", "--state", str(state), "--date", "2024-01-01", *common])
        cli(["save", "--state", str(state)])
        capsys.readouterr()

        assert cli(["restore", "--state", str(state), "--date", "2024-01-02", *common]) == 0
        assert "cargo-build-target: restore" in capsys.readouterr().out

    def test_save_without_state(self, cli, tmp_path):
        assert cli(["save", "--state", str(tmp_path / "absent.json")]) == 1

    def test_caching_disabled(self, cli, cargo_project, tmp_path):
        state = tmp_path / "state.json"
        rc = cli(
            ["restore", "--state", str(state), "--root", str(cargo_project), "--date", "2024-01-01"],
            cache_enabled=False,
        )
        assert rc == 0
        assert json.loads(state.read_text())["outcomes"] == []


class TestRunCommand:
    def test_successful_run_writes_result(self, cli, cargo_project, tmp_path, capsys):
        result_file = tmp_path / "results" / "ubuntu.json"
        rc = cli([
            "run", "--root", str(cargo_project), "--date", "2024-01-01",
            "--platform", "ubuntu-latest", "--result", str(result_file),
        ])
        assert rc == 0
        assert "[OK] ubuntu-latest" in capsys.readouterr().out
        data = json.loads(result_file.read_text())
        assert data["success"] is True
        assert data["date_stamp"] == "2024-01-01"

    def test_failed_build_exits_nonzero(self, cli, cargo_project, python_cmd):
        rc = cli(
            ["run", "--root", str(cargo_project), "--date", "2024-01-01", "--platform", "windows-latest"],
            build_command=python_cmd("import sys; sys.exit(2)"),
        )
        assert rc == 1

    def test_untracked_branch_skipped(self, cli, cargo_project, monkeypatch, capsys):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
        monkeypatch.setenv("GITHUB_REF", "refs/heads/feature")
        assert cli(["run", "--root", str(cargo_project), "--date", "2024-01-01"]) == 0
        assert "Skipped" in capsys.readouterr().out


class TestSummaryCommand:
    def _write_result(self, cli, cargo_project, path, platform, **overrides):
        cli(
            ["run", "--root", str(cargo_project), "--date", "2024-01-01",
             "--platform", platform, "--result", str(path)],
            **overrides,
        )

    def test_all_succeeded(self, cli, cargo_project, tmp_path, capsys):
        a, b = tmp_path / "a.json", tmp_path / "b.json"
        self._write_result(cli, cargo_project, a, "ubuntu-latest")
        self._write_result(cli, cargo_project, b, "macos-latest")
        capsys.readouterr()
        assert cli(["summary", str(a), str(b)]) == 0
        assert "All 2 job(s) succeeded" in capsys.readouterr().out

    def test_one_failed(self, cli, cargo_project, tmp_path, capsys, python_cmd):
        a, b = tmp_path / "a.json", tmp_path / "b.json"
        self._write_result(cli, cargo_project, a, "ubuntu-latest")
        self._write_result(
            cli, cargo_project, b, "windows-latest",
            test_command=python_cmd("import sys; sys.exit(101)"),
        )
        capsys.readouterr()
        assert cli(["summary", str(a), str(b)]) == 1
        assert "Failed platforms: windows-latest" in capsys.readouterr().out

    def test_missing_result_file(self, cli, tmp_path):
        assert cli(["summary", str(tmp_path / "absent.json")]) == 1


class TestMatrixCommand:
    def test_prints_strategy(self, cli, capsys):
        assert cli(["matrix"], matrix_platforms="ubuntu-latest, windows-latest, ubuntu-latest") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload == {"platform": ["ubuntu-latest", "windows-latest"], "fail-fast": False}

    def test_fail_fast_setting(self, cli, capsys):
        assert cli(["matrix"], matrix_fail_fast=True) == 0
        assert json.loads(capsys.readouterr().out)["fail-fast"] is True


class TestRunAllPlatforms:
    def test_writes_one_result_per_platform(self, cli, cargo_project, tmp_path, capsys):
        results = tmp_path / "results"
        rc = cli(
            ["run", "--root", str(cargo_project), "--date", "2024-01-01",
             "--all-platforms", "--result", str(results)],
            matrix_platforms="ubuntu-latest,macos-latest",
            cache_namespace_by_platform=True,
        )
        assert rc == 0
        out = capsys.readouterr().out
        assert "[OK] ubuntu-latest" in out and "[OK] macos-latest" in out
        assert sorted(p.name for p in results.iterdir()) == ["macos-latest.json", "ubuntu-latest.json"]
        assert cli(["summary", *map(str, sorted(results.iterdir()))]) == 0

    def test_fail_fast_passed_to_matrix(self, cli, cargo_project, python_cmd, capsys):
        from cacheplan.pipeline import matrix

        with patch("cacheplan.pipeline.matrix.run_matrix", wraps=matrix.run_matrix) as run_matrix:
            rc = cli(
                ["run", "--root", str(cargo_project), "--date", "2024-01-01", "--all-platforms"],
                matrix_platforms="ubuntu-latest,macos-latest",
                matrix_fail_fast=True,
                build_command=python_cmd("import sys; sys.exit(1)"),
            )
        assert rc == 1
        assert run_matrix.call_args.kwargs["fail_fast"] is True
        assert "Failed platforms" in capsys.readouterr().out
