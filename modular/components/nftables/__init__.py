"""
Redirect mode components.

This package provides the nftables redirect installer.
"""

from modular.components.nftables.nftables_installer import NftablesInstaller

__all__ = ["NftablesInstaller"]
