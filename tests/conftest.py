# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a throwaway Cargo project tree, fixed run contexts and settings
that never read a developer's .env file.
"""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from cacheplan.config.settings import Settings
from cacheplan.core.models import CacheClass, DateStamp, ManifestFingerprint, RunContext
from cacheplan.logging.context import clear_context


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def cargo_project(tmp_path: Path) -> Path:
    """Workspace with a root manifest, one member crate and a target dir."""
    root = tmp_path / "project"
    (root / "crates" / "core").mkdir(parents=True)
    (root / "Cargo.toml").write_text(
        '[workspace]\nmembers = ["crates/core"]\n', encoding="utf-8"
    )
    (root / "crates" / "core" / "Cargo.toml").write_text(
        '[package]\nname = "core"\nversion = "0.1.0"\n', encoding="utf-8"
    )
    (root / "target" / "release").mkdir(parents=True)
    (root / "target" / "release" / "core.rlib").write_bytes(b"\x00compiled")
    return root


@pytest.fixture
def registry_class() -> CacheClass:
    return CacheClass(name="registry", path="registry-dir")


@pytest.fixture
def index_class() -> CacheClass:
    return CacheClass(name="index", path="index-dir")


@pytest.fixture
def run_context() -> RunContext:
    """Fingerprint F1 on 2024-01-01."""
    return RunContext(
        date_stamp=DateStamp(value="2024-01-01"),
        fingerprint=ManifestFingerprint(value="F1"),
        platform="ubuntu-latest",
        run_id="20240101_0900_abcde",
    )


def python_command(code: str) -> str:
    """Shell-style command running *code* with the current interpreter."""
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


@pytest.fixture
def make_settings(tmp_path: Path):
    """Settings factory isolated from .env and pointed at a temp cache."""

    def _make(**overrides) -> Settings:
        values = {
            "cache_root": tmp_path / "cache",
            "build_command": python_command("print('build ok')"),
            "test_command": python_command("print('test ok')"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def python_cmd():
    """Expose :func:`python_command` to tests."""
    return python_command
