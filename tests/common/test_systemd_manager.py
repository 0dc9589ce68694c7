import subprocess
from unittest.mock import MagicMock

import pytest

from common.systemd_manager import SystemdManager
from portproxy.exceptions import ExternalToolFailure, NotFound


@pytest.fixture
def systemd(app_settings, mock_logger, mocker):
    mock_tool = mocker.patch("common.systemd_manager.run_external_tool")
    mock_run = mocker.patch("common.systemd_manager.run_command")
    return SystemdManager(app_settings, logger=mock_logger), mock_tool, mock_run


def test_write_and_remove_unit(systemd, app_settings):
    manager, _, _ = systemd

    path = manager.write_unit("socat-a-udp.service", "[Unit]\n")

    assert path.read_text() == "[Unit]\n"
    assert oct(path.stat().st_mode & 0o777) == "0o644"
    assert manager.unit_exists("socat-a-udp.service")
    assert manager.list_units("socat-*.service") == ["socat-a-udp.service"]

    manager.remove_unit("socat-a-udp.service")

    assert not manager.unit_exists("socat-a-udp.service")
    assert manager.list_units("socat-*.service") == []


def test_write_unit_overwrites(systemd):
    manager, _, _ = systemd

    manager.write_unit("u.service", "old")
    manager.write_unit("u.service", "new")

    assert manager.unit_path("u.service").read_text() == "new"


def test_remove_missing_unit(systemd):
    manager, _, _ = systemd

    with pytest.raises(NotFound, match="systemd unit 'nope.service' not found"):
        manager.remove_unit("nope.service")


def test_list_units_without_directory(systemd):
    manager, _, _ = systemd

    assert manager.list_units("*.service") == []


def test_daemon_reload(systemd, app_settings, mock_logger):
    manager, mock_tool, _ = systemd

    manager.daemon_reload()

    mock_tool.assert_called_once_with(
        ["systemctl", "daemon-reload"], app_settings, current_logger=mock_logger
    )


def test_enable_now_enables_then_restarts(systemd, app_settings, mock_logger):
    manager, mock_tool, _ = systemd

    manager.enable_now("socat-a-udp.service")

    assert [c.args[0] for c in mock_tool.call_args_list] == [
        ["systemctl", "enable", "socat-a-udp.service"],
        ["systemctl", "restart", "socat-a-udp.service"],
    ]


def test_enable_with_start(systemd):
    manager, mock_tool, _ = systemd

    manager.enable("nftables.service", now=True)

    assert mock_tool.call_args.args[0] == [
        "systemctl",
        "enable",
        "--now",
        "nftables.service",
    ]


def test_enable_failure_propagates(systemd):
    manager, mock_tool, _ = systemd
    mock_tool.side_effect = ExternalToolFailure(["systemctl"], 1, "boom")

    with pytest.raises(ExternalToolFailure):
        manager.enable_now("x.service")


def test_disable_now_is_best_effort(systemd, mock_logger):
    manager, _, mock_run = systemd

    mock_run.return_value = MagicMock(returncode=0)
    assert manager.disable_now("x.service")

    mock_run.return_value = MagicMock(returncode=1)
    assert not manager.disable_now("x.service")

    mock_run.side_effect = FileNotFoundError("systemctl")
    assert not manager.disable_now("x.service")
    mock_logger.warning.assert_called_once()


def test_status_never_raises(systemd, mock_logger):
    manager, _, mock_run = systemd

    mock_run.return_value = MagicMock(stdout="  active (running)\n")
    assert manager.status("x.service") == "active (running)"

    mock_run.side_effect = subprocess.SubprocessError("timeout")
    assert manager.status("x.service") == ""
    mock_logger.warning.assert_called_once()
