"""
Modular installer framework.

This package provides the registry, base class and orchestrator for the
relay and redirect installers of the syslog port proxy.
"""

from modular.base_installer import BaseInstaller
from modular.orchestrator import InstallerOrchestrator
from modular.registry import InstallerRegistry

__all__ = ["BaseInstaller", "InstallerRegistry", "InstallerOrchestrator"]
