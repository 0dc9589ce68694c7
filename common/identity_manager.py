# common/identity_manager.py
# -*- coding: utf-8 -*-
"""
Creation and removal of the dedicated system account the relays run as.
"""

import logging
import pwd
from typing import Optional

from common.command_utils import run_command, run_external_tool
from portproxy.config_models import AppSettings

NOLOGIN_SHELL = "/usr/sbin/nologin"


class IdentityManager:
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)

    def user_exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def create_system_account(self, name: str) -> bool:
        """
        Create a system account with no home directory and no login shell.

        Returns:
            True if the account was created, False if it already existed.

        Raises:
            ExternalToolFailure: If useradd fails.
        """
        if self.user_exists(name):
            self.logger.info(f"System user '{name}' already exists.")
            return False
        run_external_tool(
            [
                "useradd",
                "--system",
                "--no-create-home",
                "--shell",
                NOLOGIN_SHELL,
                name,
            ],
            self.app_settings,
            current_logger=self.logger,
        )
        self.logger.info(f"Created system user '{name}'.")
        return True

    def delete_account(self, name: str) -> bool:
        """
        Delete the account. Best effort: a missing account or a userdel
        failure (e.g. the account still owns processes) returns False.
        """
        if not self.user_exists(name):
            return False
        try:
            result = run_command(
                ["userdel", name],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
        except FileNotFoundError:
            self.logger.warning(f"userdel not found; cannot remove '{name}'.")
            return False
        if result.returncode != 0:
            self.logger.warning(
                f"Could not remove system user '{name}' (rc {result.returncode}): "
                f"{(result.stderr or '').strip()}"
            )
            return False
        self.logger.info(f"Removed system user '{name}'.")
        return True
