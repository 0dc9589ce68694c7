from common.debian.apt_manager import AptManager
from common.host_tools import HostTools
from common.identity_manager import IdentityManager
from common.nft_manager import NftManager
from common.systemd_manager import SystemdManager


def test_for_host_builds_real_collaborators(app_settings, mock_logger):
    tools = HostTools.for_host(app_settings, logger=mock_logger)

    assert isinstance(tools.packages, AptManager)
    assert isinstance(tools.supervisor, SystemdManager)
    assert isinstance(tools.packet_filter, NftManager)
    assert isinstance(tools.identities, IdentityManager)
    assert str(tools.supervisor.unit_dir) == app_settings.systemd_unit_dir
    assert tools.packet_filter.logger is mock_logger
