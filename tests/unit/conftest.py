"""Pytest configuration and fixtures for vncslots tests."""

import os
import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import yaml

tests_root = Path(__file__).parent.parent
if str(tests_root.parent) not in sys.path:
    sys.path.insert(0, str(tests_root.parent))

from tests.fakes import FakeLauncher  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Keep tests away from the user's real config and state files.

    Yields
    ------
    None
        Control back to test with VNCSLOTS_* variables pointing into tmp_path
    """
    monkeypatch.setenv("VNCSLOTS_CONFIG", str(tmp_path / "vncslots.yaml"))
    monkeypatch.setenv("VNCSLOTS_STATE", str(tmp_path / "state" / "state.json"))
    monkeypatch.delenv("VNCSLOTS_DEBUG", raising=False)

    yield


@pytest.fixture
def config_file() -> Path:
    """Path of the config file the loader reads by default."""
    return Path(os.environ["VNCSLOTS_CONFIG"])


@pytest.fixture
def state_file() -> Path:
    """Path of the state file the registry writes by default."""
    return Path(os.environ["VNCSLOTS_STATE"])


@pytest.fixture
def write_config(config_file: Path):
    """Helper fixture to write config data to file.

    Parameters
    ----------
    config_file : Path
        Path to config file from config_file fixture

    Returns
    -------
    callable
        Function that takes config_data dict and writes to file
    """

    def _write(config_data: dict[str, Any]) -> None:
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

    return _write


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    """Launcher that starts every display successfully."""
    return FakeLauncher()


@pytest.fixture
def vncslots(fake_launcher: FakeLauncher):
    """Create VncSlots instance that never starts a real display server.

    Parameters
    ----------
    fake_launcher : FakeLauncher
        Launcher double shared with the test

    Returns
    -------
    VncSlots
        VncSlots on host "agent-1" with a Linux executor
    """
    from vncslots.__main__ import VncSlots
    from vncslots.core.run_executor import RunExecutor

    def executor_factory(registry):
        return RunExecutor(
            registry,
            launcher_factory=lambda config, workdir: fake_launcher,
            platform_system=lambda: "Linux",
        )

    return VncSlots(executor_factory=executor_factory, host_name_getter=lambda: "agent-1")
