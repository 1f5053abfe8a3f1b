from __future__ import annotations

from pathlib import Path

import sys
import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from harvester.cli import main
from harvester.storage import resolve_storage_root


def test_resolve_storage_root_prefers_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    override = tmp_path / "custom"
    monkeypatch.setenv("HARVEST_DATA_ROOT", str(override))

    result = resolve_storage_root(Path("/ignored/base"))

    assert result == override.resolve()


def test_resolve_storage_root_handles_site_packages(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("HARVEST_DATA_ROOT", raising=False)
    package_root = tmp_path / "lib" / "python3.12" / "site-packages" / "harvester"
    package_root.mkdir(parents=True)

    working_dir = tmp_path / "runtime"
    working_dir.mkdir()
    monkeypatch.chdir(working_dir)

    result = resolve_storage_root(package_root)

    assert result == working_dir.resolve()


def test_resolve_storage_root_defaults_to_package_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("HARVEST_DATA_ROOT", raising=False)
    package_root = tmp_path / "harvester"
    package_root.mkdir()

    result = resolve_storage_root(package_root)

    assert result == package_root.resolve()


def test_relative_data_root_resolves_against_working_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("HARVEST_DATA_ROOT", "corpus")
    monkeypatch.chdir(tmp_path)

    result = resolve_storage_root(Path("/ignored/base"))

    assert result == (tmp_path / "corpus").resolve()
    assert result.is_absolute()


def test_cli_data_root_beats_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    flag_root = tmp_path / "flag"
    env_root = tmp_path / "env"
    monkeypatch.setenv("HARVEST_DATA_ROOT", str(env_root))

    assert main(["--data-root", str(flag_root), "list"]) == 0

    output = capsys.readouterr().out
    assert f"Storage root: {flag_root.resolve()}" in output
    assert str(env_root) not in output
