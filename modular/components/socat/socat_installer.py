# modular/components/socat/socat_installer.py
# -*- coding: utf-8 -*-
"""
Relay mode: one supervised socat process per protocol.

Each relay listens on the source address/port and forwards to the
destination, so the receiver sees the proxy host as the sender. The
processes run as a dedicated system account holding only
CAP_NET_BIND_SERVICE.
"""

import ipaddress
import logging
from typing import List, Optional

from common.command_utils import log_portproxy
from common.host_tools import HostTools
from modular.artifacts import InstallReport, ServiceUnit, UninstallReport
from modular.base_installer import BaseInstaller
from modular.registry import InstallerRegistry
from portproxy.config_models import (
    UNIT_PREFIX,
    AppSettings,
    Mode,
    Protocol,
    ProxyConfig,
)
from portproxy.exceptions import ExternalToolFailure, NotFound

UNIT_TEMPLATE = """\
[Unit]
Description=Socat {proto_upper} proxy {src_ip}:{src_port} -> {dst_host}:{dst_port} ({name})
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
User={user}
Group={user}
AmbientCapabilities=CAP_NET_BIND_SERVICE
CapabilityBoundingSet=CAP_NET_BIND_SERVICE
NoNewPrivileges=true
ExecStart={exec_start}
Restart=always
RestartSec={restart_sec}
StandardOutput=journal
StandardError=journal

[Install]
WantedBy=multi-user.target
"""


def _socat_host(address: str) -> str:
    """Bracket IPv6 literals for use inside a socat address."""
    try:
        if ipaddress.ip_address(address).version == 6:
            return f"[{address}]"
    except ValueError:
        pass
    return address


@InstallerRegistry.register(
    name=Mode.RELAY.value,
    metadata={
        "packages": ["socat"],
        "description": "socat relay services supervised by systemd (source address becomes the proxy host)",
    },
)
class SocatInstaller(BaseInstaller):
    """
    Installer for relay mode.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        host_tools: HostTools,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, host_tools, logger)
        self.service_user = app_settings.service_user

    @staticmethod
    def unit_name(config: ProxyConfig, protocol: Protocol) -> str:
        return f"{UNIT_PREFIX}-{config.instance_name}-{protocol.value}.service"

    def artifact_names(self, config: ProxyConfig) -> List[str]:
        return [self.unit_name(config, p) for p in config.protocols]

    def exec_start(self, config: ProxyConfig, protocol: Protocol) -> str:
        socat = self.app_settings.socat_binary
        bind = _socat_host(config.source_address)
        listen_family = ",pf=ip6" if config.source_is_ipv6 else ""
        target = (
            f"{_socat_host(config.destination_host)}:{config.destination_port}"
        )
        if protocol is Protocol.UDP:
            return (
                f"{socat} -s -u UDP-LISTEN:{config.source_port},fork,reuseaddr,"
                f"so-reuseport,bind={bind}{listen_family} UDP:{target}"
            )
        return (
            f"{socat} -s TCP-LISTEN:{config.source_port},fork,reuseaddr,"
            f"keepalive,bind={bind}{listen_family} TCP:{target}"
        )

    def render(self, config: ProxyConfig) -> List[ServiceUnit]:
        self._require(config)
        units = []
        for protocol in config.protocols:
            content = UNIT_TEMPLATE.format(
                proto_upper=protocol.value.upper(),
                src_ip=config.source_address,
                src_port=config.source_port,
                dst_host=config.destination_host,
                dst_port=config.destination_port,
                name=config.instance_name,
                user=self.service_user,
                exec_start=self.exec_start(config, protocol),
                restart_sec=self.app_settings.restart_sec,
            )
            units.append(
                ServiceUnit(
                    name=self.unit_name(config, protocol),
                    protocol=protocol,
                    content=content,
                )
            )
        return units

    def install(self, config: ProxyConfig) -> InstallReport:
        units = self.render(config)
        report = InstallReport(mode=config.mode)

        self._install_packages()

        if self.tools.identities.create_system_account(self.service_user):
            log_portproxy(
                f"{self.symbols.get('success', '✅')} Created system user '{self.service_user}'.",
                "success",
                self.logger,
                self.app_settings,
            )

        for unit in units:
            self.tools.supervisor.write_unit(unit.name, unit.content)

        self.tools.supervisor.daemon_reload()

        for unit in units:
            self.tools.supervisor.enable_now(unit.name)
            report.installed.append(unit.name)
            status_text = self.tools.supervisor.status(unit.name)
            if status_text:
                log_portproxy(
                    f"{self.symbols.get('info', 'ℹ️')} {unit.name} status:\n{status_text}",
                    "info",
                    self.logger,
                    self.app_settings,
                )

        log_portproxy(
            f"{self.symbols.get('success', '✅')} socat relay services enabled: {', '.join(report.installed)}",
            "success",
            self.logger,
            self.app_settings,
        )
        return report

    def uninstall(self, config: ProxyConfig) -> UninstallReport:
        report = UninstallReport(mode=config.mode)
        supervisor = self.tools.supervisor

        for name in self.artifact_names(config):
            supervisor.disable_now(name)
            try:
                supervisor.remove_unit(name)
                report.removed.append(name)
            except NotFound as e:
                log_portproxy(
                    f"{self.symbols.get('info', 'ℹ️')} {e}; nothing to remove.",
                    "info",
                    self.logger,
                    self.app_settings,
                )
                report.not_found.append(name)

        if report.removed:
            try:
                supervisor.daemon_reload()
            except ExternalToolFailure as e:
                report.warnings.append(str(e))
                log_portproxy(
                    f"{self.symbols.get('warning', '!')} {e}",
                    "warning",
                    self.logger,
                    self.app_settings,
                )

        self._remove_service_user(report)
        return report

    def _remove_service_user(self, report: UninstallReport) -> None:
        remaining = self.tools.supervisor.list_units(f"{UNIT_PREFIX}-*.service")
        if remaining:
            message = (
                f"User {self.service_user} kept; still used by: {', '.join(remaining)}"
            )
            report.warnings.append(message)
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} {message}",
                "info",
                self.logger,
                self.app_settings,
            )
            return
        if self.tools.identities.delete_account(self.service_user):
            report.removed.append(f"user {self.service_user}")
        elif self.tools.identities.user_exists(self.service_user):
            message = (
                f"User {self.service_user} may remain if used elsewhere."
            )
            report.warnings.append(message)
            log_portproxy(
                f"{self.symbols.get('warning', '!')} {message}",
                "warning",
                self.logger,
                self.app_settings,
            )

    def is_installed(self, config: ProxyConfig) -> bool:
        return all(
            self.tools.supervisor.unit_exists(name)
            for name in self.artifact_names(config)
        )

    def probe_commands(self, config: ProxyConfig) -> List[str]:
        hints = []
        if Protocol.UDP in config.protocols:
            hints.append(
                f'echo "<13>TEST via socat" | nc -u -w1 127.0.0.1 {config.source_port}'
            )
        if Protocol.TCP in config.protocols:
            hints.append(
                f'logger -T -n 127.0.0.1 -P {config.source_port} "TEST via socat"'
            )
        return hints
