from unittest.mock import MagicMock

import pytest

from modular.artifacts import RuleSet, ServiceUnit
from modular.components.nftables.nftables_installer import NftablesInstaller
from modular.components.socat.socat_installer import SocatInstaller
from modular.orchestrator import InstallerOrchestrator
from portproxy.exceptions import NotFound, PortProxyError, PrivilegeError

LISTENING_514 = ["udp   UNCONN 0      0            0.0.0.0:514        0.0.0.0:*"]


def _deny():
    raise PrivilegeError("Please run as root.")


@pytest.fixture
def sockets(mocker):
    return mocker.patch("modular.orchestrator.list_listening_sockets", return_value=[])


@pytest.fixture
def orchestrator(app_settings, fake_tools, mock_logger, sockets):
    return InstallerOrchestrator(
        app_settings,
        host_tools=fake_tools,
        logger=mock_logger,
        privilege_check=lambda: None,
    )


def test_installers_are_registered(orchestrator):
    installers = orchestrator.get_available_installers()

    assert installers["relay"] is SocatInstaller
    assert installers["redirect"] is NftablesInstaller


def test_dispatch_by_mode(orchestrator, relay_udp, redirect_udp):
    assert isinstance(orchestrator.get_installer(relay_udp), SocatInstaller)
    assert isinstance(orchestrator.get_installer(redirect_udp), NftablesInstaller)


def test_install_requires_privileges(app_settings, fake_tools, relay_udp, sockets):
    orchestrator = InstallerOrchestrator(
        app_settings, host_tools=fake_tools, privilege_check=_deny
    )

    with pytest.raises(PrivilegeError):
        orchestrator.install(relay_udp)

    fake_tools.packages.install.assert_not_called()
    sockets.assert_not_called()


def test_uninstall_requires_privileges(app_settings, fake_tools, relay_udp, sockets):
    orchestrator = InstallerOrchestrator(
        app_settings, host_tools=fake_tools, privilege_check=_deny
    )

    with pytest.raises(PrivilegeError):
        orchestrator.uninstall(relay_udp)

    fake_tools.supervisor.remove_unit.assert_not_called()


def test_busy_port_only_warns(orchestrator, fake_tools, relay_udp, sockets, mock_logger):
    sockets.return_value = LISTENING_514

    report = orchestrator.install(relay_udp)

    assert report.warnings[0].startswith("Port 514 appears to be in use")
    assert report.installed == ["socat-syslog514to1514-udp.service"]
    fake_tools.supervisor.enable_now.assert_called_once()


def test_install_logs_health_report(orchestrator, relay_udp, sockets, mock_logger):
    sockets.return_value = [
        "udp   UNCONN 0      0          127.0.0.1:1514       0.0.0.0:*",
        "tcp   LISTEN 0      128          0.0.0.0:22         0.0.0.0:*",
    ]

    orchestrator.install(relay_udp)

    logged = [c.args[0] for c in mock_logger.info.call_args_list]
    assert "  udp   UNCONN 0      0          127.0.0.1:1514       0.0.0.0:*" in logged
    assert not any(":22 " in line for line in logged)
    assert '  echo "<13>TEST via socat" | nc -u -w1 127.0.0.1 514' in logged


def test_install_logs_installer_description(orchestrator, redirect_udp, mock_logger):
    orchestrator.install(redirect_udp)

    mock_logger.debug.assert_any_call(
        "redirect: nftables destination-port redirect (sender address preserved)"
    )


def test_uninstall_with_nothing_installed(orchestrator, fake_tools, relay_udp_tcp):
    def missing(name):
        raise NotFound("systemd unit", name)

    fake_tools.supervisor.remove_unit.side_effect = missing

    report = orchestrator.uninstall(relay_udp_tcp)

    assert report.removed == []
    assert report.not_found == [
        "socat-syslog514to1514-udp.service",
        "socat-syslog514to1514-tcp.service",
    ]


def test_render_needs_no_privileges(app_settings, fake_tools, relay_udp_tcp, redirect_udp):
    check = MagicMock(side_effect=PrivilegeError("Please run as root."))
    orchestrator = InstallerOrchestrator(
        app_settings, host_tools=fake_tools, privilege_check=check
    )

    units = orchestrator.render(relay_udp_tcp)
    rulesets = orchestrator.render(redirect_udp)

    assert all(isinstance(u, ServiceUnit) for u in units) and len(units) == 2
    assert len(rulesets) == 1 and isinstance(rulesets[0], RuleSet)
    check.assert_not_called()
    fake_tools.supervisor.write_unit.assert_not_called()


def test_status(orchestrator, fake_tools, redirect_udp):
    fake_tools.packet_filter.table_exists.return_value = False
    assert not orchestrator.status(redirect_udp)

    fake_tools.packet_filter.table_exists.return_value = True
    assert orchestrator.status(redirect_udp)


def test_unknown_mode(orchestrator, relay_udp):
    bogus = relay_udp.model_construct(**{**relay_udp.model_dump(), "mode": "tunnel"})

    with pytest.raises(PortProxyError, match="No installer available for mode 'tunnel'"):
        orchestrator.get_installer(bogus)
