"""
Relay mode components.

This package provides the socat relay installer.
"""

from modular.components.socat.socat_installer import SocatInstaller

__all__ = ["SocatInstaller"]
