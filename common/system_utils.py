# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the port proxy installer.

This module includes the root privilege check and the socket listing used
for the advisory "port already in use" warning and the post-install health
report.
"""

import logging
import os
import subprocess
from typing import Iterable, List, Optional

from common.command_utils import get_symbols, log_portproxy, run_command
from portproxy.config_models import AppSettings
from portproxy.exceptions import PrivilegeError

module_logger = logging.getLogger(__name__)


def ensure_root() -> None:
    """
    Raise ``PrivilegeError`` unless the effective user is root.
    """
    if os.geteuid() != 0:
        raise PrivilegeError("Please run as root.")


def list_listening_sockets(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """
    Return the lines of ``ss -lntuH`` (listening TCP and UDP sockets, no
    header). Returns an empty list when ``ss`` is missing or fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        result = run_command(
            ["ss", "-lntuH"],
            app_settings,
            check=True,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        log_portproxy(
            f"{symbols.get('warning', '!')} ss command not found. Cannot list listening sockets.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return []
    except subprocess.CalledProcessError:
        return []
    return [line for line in (result.stdout or "").splitlines() if line.strip()]


def _local_port(socket_line: str) -> Optional[int]:
    # Netid State Recv-Q Send-Q Local-Address:Port Peer-Address:Port [Process]
    columns = socket_line.split()
    if len(columns) < 5:
        return None
    _, _, port = columns[4].rpartition(":")
    try:
        return int(port)
    except ValueError:
        return None


def sockets_on_ports(
    socket_lines: Iterable[str], ports: Iterable[int]
) -> List[str]:
    """Filter ``ss`` output lines down to those whose local port is in ``ports``."""
    wanted = set(ports)
    return [line for line in socket_lines if _local_port(line) in wanted]

