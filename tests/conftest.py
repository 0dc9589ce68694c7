# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from common.debian.apt_manager import AptManager
from common.host_tools import HostTools
from common.identity_manager import IdentityManager
from common.nft_manager import NftManager
from common.systemd_manager import SystemdManager
from portproxy.config_loader import BUILTIN_DEFAULTS, resolve_config
from portproxy.config_models import AppSettings


@pytest.fixture
def app_settings(tmp_path):
    """AppSettings pointing every host path into a temporary directory."""
    return AppSettings(
        systemd_unit_dir=str(tmp_path / "systemd"),
        nftables_conf=str(tmp_path / "nftables.conf"),
        nftables_dir=str(tmp_path / "nftables.d"),
        socat_binary="/usr/bin/socat",
        symbols={
            "warning": "!",
            "gear": "⚙️",
            "error": "❌",
            "info": "ℹ️",
            "success": "✅",
        },
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def fake_tools():
    """HostTools whose collaborators are all mocks that report success."""
    packages = MagicMock(spec=AptManager)
    packages.install.return_value = True

    supervisor = MagicMock(spec=SystemdManager)
    supervisor.list_units.return_value = []
    supervisor.status.return_value = ""
    supervisor.disable_now.return_value = True

    packet_filter = MagicMock(spec=NftManager)
    packet_filter.table_exists.return_value = False
    packet_filter.list_table.return_value = ""

    identities = MagicMock(spec=IdentityManager)
    identities.create_system_account.return_value = False
    identities.delete_account.return_value = False
    identities.user_exists.return_value = False

    return HostTools(
        packages=packages,
        supervisor=supervisor,
        packet_filter=packet_filter,
        identities=identities,
    )


@pytest.fixture
def relay_udp():
    return resolve_config(BUILTIN_DEFAULTS, {"mode": "relay", "protocols": "udp"})


@pytest.fixture
def relay_udp_tcp():
    return resolve_config(
        BUILTIN_DEFAULTS, {"mode": "relay", "protocols": "udp,tcp"}
    )


@pytest.fixture
def redirect_udp():
    return resolve_config(
        BUILTIN_DEFAULTS, {"mode": "redirect", "protocols": "udp"}
    )
