import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tests.fakes import FakeLauncher
from vncslots.cli.parsing import (
    apply_cli_overrides,
    parse_bool_parameter,
    parse_display_number,
    parse_int_parameter,
)
from vncslots.core.registry import SessionRegistry
from vncslots.exceptions import LaunchFailed, ResourceExhausted


def completed(returncode: int = 0) -> MagicMock:
    return MagicMock(returncode=returncode)


def test_vncslots_run_method_exists(vncslots) -> None:
    assert callable(vncslots.run)


def test_run_with_defaults(vncslots, fake_launcher: FakeLauncher) -> None:
    with patch("subprocess.run", return_value=completed()) as mock_run:
        result = vncslots.run(command="make test")

    assert result["host"] == "agent-1"
    assert 10 <= result["display"] <= 99
    assert result["exit_code"] == 0
    assert fake_launcher.started == [result["display"]]
    assert mock_run.call_args.kwargs["env"]["DISPLAY"] == f":{result['display']}"


def test_run_with_config_file_range(vncslots, write_config) -> None:
    write_config({"defaults": {"min_display_number": 30, "max_display_number": 30}})

    with patch("subprocess.run", return_value=completed()):
        result = vncslots.run(command="true")

    assert result["display"] == 30


def test_run_with_host_section(vncslots, write_config) -> None:
    write_config(
        {
            "defaults": {"min_display_number": 30, "max_display_number": 30},
            "hosts": {"agent-2": {"min_display_number": 31, "max_display_number": 31}},
        }
    )

    with patch("subprocess.run", return_value=completed()):
        result = vncslots.run(command="true", host="agent-2")

    assert result == {"host": "agent-2", "display": 31, "exit_code": 0}


def test_config_hierarchy_cli_takes_precedence(vncslots, write_config) -> None:
    write_config({"defaults": {"min_display_number": 30, "max_display_number": 30}})

    with patch("subprocess.run", return_value=completed()):
        result = vncslots.run(command="true", min_display="50", max_display=50)

    assert result["display"] == 50


def test_run_returns_json(vncslots) -> None:
    with patch("subprocess.run", return_value=completed(4)):
        output = vncslots.run(command="false", json_output=True)

    assert json.loads(output)["exit_code"] == 4


def test_run_persists_released_display(vncslots, state_file: Path) -> None:
    with patch("subprocess.run", return_value=completed()):
        vncslots.run(command="true")

    data = json.loads(state_file.read_text())
    assert data["hosts"]["agent-1"]["allocated"] == []


def test_run_without_command(vncslots) -> None:
    with pytest.raises(ValueError, match="command is required"):
        vncslots.run()


def test_run_with_invalid_range(vncslots) -> None:
    with pytest.raises(ValueError, match="must not be greater than"):
        vncslots.run(command="true", min_display=60, max_display=50)


def test_run_with_invalid_clean_up(vncslots) -> None:
    with pytest.raises(ValueError, match="clean_up must be 'true' or 'false'"):
        vncslots.run(command="true", clean_up="maybe")


def test_run_with_failed_server(vncslots, fake_launcher: FakeLauncher) -> None:
    fake_launcher.fail_all = True

    with pytest.raises(LaunchFailed):
        vncslots.run(command="true", retries=2)

    assert len(fake_launcher.started) == 3


def test_run_with_exhausted_host(vncslots, state_file: Path) -> None:
    SessionRegistry(state_file, 20, 20).get("agent-1").allocate()

    with pytest.raises(ResourceExhausted):
        vncslots.run(command="true", min_display=20, max_display=20)


def test_status_no_allocations(vncslots, capsys: pytest.CaptureFixture) -> None:
    vncslots.status()

    assert "No display allocations recorded" in capsys.readouterr().out


def test_status_lists_hosts(vncslots, state_file: Path, capsys: pytest.CaptureFixture) -> None:
    registry = SessionRegistry(state_file, 10, 20)
    registry.get("agent-1", 12, 12).allocate()
    registry.get("agent-2").blacklist(15)

    vncslots.status()

    out = capsys.readouterr().out
    assert "HOST" in out
    assert "agent-1" in out and ":12" in out
    assert "agent-2" in out and ":15" in out


def test_status_json(vncslots, state_file: Path) -> None:
    SessionRegistry(state_file, 10, 20).get("agent-1").blacklist(11)

    report = json.loads(vncslots.status(json_output=True))

    assert report["agent-1"] == {"range": [10, 20], "allocated": [], "blacklisted": [11]}


def test_status_unknown_host(vncslots) -> None:
    report = json.loads(vncslots.status(host="agent-9", json_output=True))

    assert report == {"agent-9": {"allocated": [], "blacklisted": []}}


def test_free_allocated_display(
    vncslots, state_file: Path, capsys: pytest.CaptureFixture
) -> None:
    SessionRegistry(state_file, 10, 10).get("agent-1").allocate()

    vncslots.free(":10")

    assert "Freed display :10 on agent-1" in capsys.readouterr().out
    data = json.loads(state_file.read_text())
    assert data["hosts"]["agent-1"]["allocated"] == []


def test_free_display_not_allocated(
    vncslots, state_file: Path, capsys: pytest.CaptureFixture
) -> None:
    SessionRegistry(state_file, 10, 20).get("agent-1").allocate()

    vncslots.free(99)

    assert "Display :99 is not allocated on agent-1" in capsys.readouterr().out


def test_free_unknown_host(vncslots) -> None:
    with pytest.raises(SystemExit) as exc_info:
        vncslots.free(10, host="agent-9")

    assert exc_info.value.code == 1


def test_free_invalid_display(vncslots) -> None:
    with pytest.raises(ValueError, match="not numeric"):
        vncslots.free("abc")


def test_init_creates_config(vncslots, config_file: Path) -> None:
    vncslots.init()

    content = config_file.read_text()
    assert "min_display_number: 10" in content
    assert "max_display_number: 99" in content


def test_init_refuses_to_overwrite(vncslots, config_file: Path) -> None:
    config_file.write_text("defaults: {}\n")

    with pytest.raises(SystemExit):
        vncslots.init()

    assert config_file.read_text() == "defaults: {}\n"


def test_init_force_overwrites(vncslots, config_file: Path) -> None:
    config_file.write_text("defaults: {}\n")

    vncslots.init(force=True)

    assert "retries: 10" in config_file.read_text()


def test_init_config_loads_and_validates(vncslots) -> None:
    vncslots.init()

    config = vncslots._config_loader.load_config()
    merged = vncslots._config_loader.get_host_config(config, "agent-1")
    vncslots._config_loader.validate_config(merged)

    assert merged["use_xauthority"] is True


class TestParsing:
    """Test CLI parameter conversion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (False, False), ("true", True), ("False", False), ("TRUE", True)],
    )
    def test_parse_bool_parameter(self, value, expected: bool) -> None:
        assert parse_bool_parameter("clean_up", value) is expected

    def test_parse_bool_parameter_invalid_string(self) -> None:
        with pytest.raises(ValueError, match="clean_up must be 'true' or 'false'"):
            parse_bool_parameter("clean_up", "yes")

    def test_parse_bool_parameter_invalid_type(self) -> None:
        with pytest.raises(ValueError, match="must be a boolean"):
            parse_bool_parameter("clean_up", 1)

    def test_parse_int_parameter(self) -> None:
        assert parse_int_parameter("retries", 3) == 3
        assert parse_int_parameter("retries", " 7 ") == 7

    def test_parse_int_parameter_rejects_bool(self) -> None:
        with pytest.raises(ValueError):
            parse_int_parameter("retries", True)

    def test_parse_int_parameter_non_numeric(self) -> None:
        with pytest.raises(ValueError, match="Invalid retries value: 'many' is not numeric"):
            parse_int_parameter("retries", "many")

    @pytest.mark.parametrize(("value", "expected"), [(42, 42), ("42", 42), (":42", 42)])
    def test_parse_display_number(self, value, expected: int) -> None:
        assert parse_display_number(value) == expected

    def test_parse_display_number_negative(self) -> None:
        with pytest.raises(ValueError, match="must not be negative"):
            parse_display_number(-1)

    def test_apply_cli_overrides(self) -> None:
        config = {"min_display_number": 10, "retries": 10, "clean_up": False}

        result = apply_cli_overrides(
            config,
            min_display="20",
            retries=0,
            xvnc="Xvnc :$DISPLAY_NUMBER",
            clean_up="true",
        )

        assert result is config
        assert config == {
            "min_display_number": 20,
            "retries": 0,
            "clean_up": True,
            "command": "Xvnc :$DISPLAY_NUMBER",
        }

    def test_apply_cli_overrides_none_leaves_config(self) -> None:
        config = {"use_xauthority": True}

        apply_cli_overrides(config)

        assert config == {"use_xauthority": True}
