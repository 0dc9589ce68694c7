"""
Orchestrator for the mode installers.

This module provides the InstallerOrchestrator class, which checks
preconditions, dispatches to the installer registered for the configured
mode, and reports on the result.
"""

import importlib
import logging
import pkgutil
from typing import Any, Callable, Dict, List, Optional, Type

from common.command_utils import get_symbols, log_portproxy
from common.host_tools import HostTools
from common.system_utils import (
    ensure_root,
    list_listening_sockets,
    sockets_on_ports,
)
from modular.artifacts import InstallReport, UninstallReport
from modular.base_installer import BaseInstaller
from modular.registry import InstallerRegistry
from portproxy.config_models import AppSettings, ProxyConfig
from portproxy.exceptions import PortProxyError


class InstallerOrchestrator:
    """
    Runs the install/uninstall lifecycle for one configuration.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        host_tools: Optional[HostTools] = None,
        logger: Optional[logging.Logger] = None,
        privilege_check: Callable[[], None] = ensure_root,
    ):
        """
        Initialize the orchestrator.

        Args:
            app_settings: The application settings.
            host_tools: Host collaborators. The real ones are built when omitted.
            logger: Optional logger instance. If not provided, a new logger will be created.
            privilege_check: Callable raising ``PrivilegeError`` when the
                caller may not change the host.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.host_tools = host_tools or HostTools.for_host(
            app_settings, logger=self.logger
        )
        self.privilege_check = privilege_check
        self.symbols = get_symbols(app_settings)

        # Import all component modules to ensure they are registered
        self._import_component_modules()

    def _import_component_modules(self) -> None:
        """
        Import every package under ``modular.components`` so that their
        installers register themselves with the InstallerRegistry.
        """
        import modular.components

        for _, module_name, _ in pkgutil.iter_modules(
            modular.components.__path__
        ):
            importlib.import_module(f"modular.components.{module_name}")
            self.logger.debug(f"Imported component package: {module_name}")

    def get_available_installers(self) -> Dict[str, Type[BaseInstaller]]:
        return InstallerRegistry.get_all_installers()

    def get_installer(self, config: ProxyConfig) -> BaseInstaller:
        """
        Instantiate the installer registered for ``config.mode``.

        Raises:
            PortProxyError: If no installer is registered for the mode.
        """
        try:
            installer_class = InstallerRegistry.get_installer(config.mode)
        except KeyError as e:
            raise PortProxyError(
                f"No installer available for mode '{config.mode}'"
            ) from e
        return installer_class(self.app_settings, self.host_tools, self.logger)

    def render(self, config: ProxyConfig) -> List[Any]:
        """
        Generate the artifacts for ``config`` without touching the host.
        """
        return self.get_installer(config).render(config)

    def status(self, config: ProxyConfig) -> bool:
        """Whether the artifacts for ``config`` are present on the host."""
        installer = self.get_installer(config)
        installed = installer.is_installed(config)
        state = "installed" if installed else "not installed"
        log_portproxy(
            f"{self.symbols.get('info', 'ℹ️')} {config.mode} ({', '.join(installer.artifact_names(config))}): {state}",
            "info",
            self.logger,
            self.app_settings,
        )
        return installed

    def install(self, config: ProxyConfig) -> InstallReport:
        """
        Install and activate the artifacts for ``config``.

        Raises:
            PrivilegeError: If not running with sufficient privileges.
            ExternalToolFailure: If a host tool fails.
            TemplateError: If the artifacts cannot be rendered.
        """
        self.privilege_check()
        installer = self.get_installer(config)

        advisory = self._check_source_port(config)

        log_portproxy(
            f"{self.symbols.get('step', '➡️')} Installing {config.mode} mode: "
            f"{config.source_address}:{config.source_port} -> "
            f"{config.destination_host}:{config.destination_port} "
            f"({', '.join(p.value for p in config.protocols)})",
            "info",
            self.logger,
            self.app_settings,
        )
        description = installer.get_description()
        if description:
            self.logger.debug(f"{config.mode}: {description}")
        report = installer.install(config)
        if advisory:
            report.warnings.insert(0, advisory)

        self._health_report(config, installer)
        log_portproxy(
            f"{self.symbols.get('success', '✅')} Done.",
            "success",
            self.logger,
            self.app_settings,
        )
        return report

    def uninstall(self, config: ProxyConfig) -> UninstallReport:
        """
        Remove the artifacts for ``config``. Artifacts that are already
        absent are listed in the report; they do not cause a failure.

        Raises:
            PrivilegeError: If not running with sufficient privileges.
        """
        self.privilege_check()
        installer = self.get_installer(config)

        log_portproxy(
            f"{self.symbols.get('step', '➡️')} Removing {config.mode} mode artifacts...",
            "info",
            self.logger,
            self.app_settings,
        )
        report = installer.uninstall(config)

        if report.removed:
            log_portproxy(
                f"{self.symbols.get('success', '✅')} Removed: {', '.join(report.removed)}",
                "success",
                self.logger,
                self.app_settings,
            )
        if report.not_found:
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} Not installed: {', '.join(report.not_found)}",
                "info",
                self.logger,
                self.app_settings,
            )
        log_portproxy(
            f"{self.symbols.get('success', '✅')} Uninstall complete.",
            "success",
            self.logger,
            self.app_settings,
        )
        return report

    def _check_source_port(self, config: ProxyConfig) -> Optional[str]:
        # Advisory only; another process may bind the port after this check.
        listeners = sockets_on_ports(
            list_listening_sockets(self.app_settings, current_logger=self.logger),
            [config.source_port],
        )
        if not listeners:
            return None
        message = (
            f"Port {config.source_port} appears to be in use. "
            "Installation may conflict with an existing listener."
        )
        log_portproxy(
            f"{self.symbols.get('warning', '!')} {message}",
            "warning",
            self.logger,
            self.app_settings,
        )
        for line in listeners:
            self.logger.warning(f"  {line}")
        return message

    def _health_report(
        self, config: ProxyConfig, installer: BaseInstaller
    ) -> None:
        ports = [config.source_port, config.destination_port]
        listeners = sockets_on_ports(
            list_listening_sockets(self.app_settings, current_logger=self.logger),
            ports,
        )
        log_portproxy(
            f"{self.symbols.get('info', 'ℹ️')} Listening sockets on ports {ports[0]}/{ports[1]}:",
            "info",
            self.logger,
            self.app_settings,
        )
        if listeners:
            for line in listeners:
                self.logger.info(f"  {line}")
        else:
            self.logger.info("  (none)")

        hints = installer.probe_commands(config)
        if hints:
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} Test with:",
                "info",
                self.logger,
                self.app_settings,
            )
            for hint in hints:
                self.logger.info(f"  {hint}")
