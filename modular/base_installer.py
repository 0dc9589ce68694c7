"""
Base installer class for the proxy modes.

Each mode (relay, redirect) is an installer that turns a validated
configuration into artifacts and installs or removes them through the
injected host collaborators.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from common.command_utils import get_symbols, log_portproxy
from common.host_tools import HostTools
from modular.artifacts import InstallReport, UninstallReport
from portproxy.config_models import AppSettings, ProxyConfig
from portproxy.exceptions import ExternalToolFailure, TemplateError

REQUIRED_FIELDS = (
    "protocols",
    "source_address",
    "source_port",
    "destination_host",
    "destination_port",
    "instance_name",
)


class BaseInstaller(ABC):
    """
    Base class for all mode installers.

    Subclasses render artifacts from a configuration, install them, remove
    them again, and report whether they are present.
    """

    # Class-level metadata that can be overridden by subclasses or set by the registry decorator
    metadata: Dict[str, Any] = {
        "packages": [],  # Debian packages the mode needs
        "description": "",
    }

    def __init__(
        self,
        app_settings: AppSettings,
        host_tools: HostTools,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the installer.

        Args:
            app_settings: The application settings.
            host_tools: Package manager, supervisor, packet filter and identity manager.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.app_settings = app_settings
        self.tools = host_tools
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.symbols = get_symbols(app_settings)

    @abstractmethod
    def render(self, config: ProxyConfig) -> List[Any]:
        """
        Generate the artifacts for ``config`` without touching the host.

        Raises:
            TemplateError: If a required field is missing.
        """

    @abstractmethod
    def install(self, config: ProxyConfig) -> InstallReport:
        """
        Materialize and activate the artifacts. Re-running with the same
        configuration overwrites and reactivates them.
        """

    @abstractmethod
    def uninstall(self, config: ProxyConfig) -> UninstallReport:
        """
        Deactivate and delete the artifacts for ``config``. Missing artifacts
        are reported, not raised.
        """

    @abstractmethod
    def is_installed(self, config: ProxyConfig) -> bool:
        """Check whether the artifacts for ``config`` are present."""

    @abstractmethod
    def artifact_names(self, config: ProxyConfig) -> List[str]:
        """Deterministic names of the artifacts for ``config``."""

    def probe_commands(self, config: ProxyConfig) -> List[str]:
        """Commands an operator can run to send a test message."""
        return []

    def get_packages(self) -> List[str]:
        return list(self.metadata.get("packages", []))

    def get_description(self) -> str:
        return str(self.metadata.get("description", ""))

    def _require(
        self, config: ProxyConfig, fields: Sequence[str] = REQUIRED_FIELDS
    ) -> None:
        missing = [
            name
            for name in fields
            if getattr(config, name, None) in (None, "", ())
        ]
        if missing:
            raise TemplateError(
                f"Cannot render {self.__class__.__name__} artifacts; missing: {', '.join(missing)}"
            )

    def _install_packages(self) -> None:
        packages = self.get_packages()
        if not packages:
            return
        log_portproxy(
            f"{self.symbols.get('package', '📦')} Ensuring packages are installed: {', '.join(packages)}",
            "info",
            self.logger,
            self.app_settings,
        )
        if not self.tools.packages.install(packages):
            raise ExternalToolFailure(
                ["apt-get", "install", "-yq"] + packages,
                None,
                "package installation failed",
            )
