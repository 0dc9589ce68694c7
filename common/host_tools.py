# common/host_tools.py
# -*- coding: utf-8 -*-
"""
Bundle of the host collaborators an installer drives.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from common.debian.apt_manager import AptManager
from common.identity_manager import IdentityManager
from common.nft_manager import NftManager
from common.systemd_manager import SystemdManager
from portproxy.config_models import AppSettings


@dataclass
class HostTools:
    """
    The package manager, service supervisor, packet filter and identity
    manager used by the installers. Tests substitute fakes for any of them.
    """

    packages: AptManager
    supervisor: SystemdManager
    packet_filter: NftManager
    identities: IdentityManager

    @classmethod
    def for_host(
        cls,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ) -> "HostTools":
        """Build the real collaborators for the local host."""
        return cls(
            packages=AptManager(app_settings, logger=logger),
            supervisor=SystemdManager(app_settings, logger=logger),
            packet_filter=NftManager(app_settings, logger=logger),
            identities=IdentityManager(app_settings, logger=logger),
        )
