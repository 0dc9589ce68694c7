# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import subprocess
from typing import List, Optional, Union

from common.command_utils import command_exists, run_command
from portproxy.config_models import AppSettings


class AptManager:
    """
    Installs Debian packages with the apt-get command-line tools.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the AptManager.
        Args:
            app_settings: The application settings.
            logger: An optional logging object.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)

    def update(self, raise_error: bool = False) -> bool:
        """
        Updates the list of available packages using 'apt-get update'.

        Args:
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        try:
            run_command(
                ["apt-get", "update", "-yq"],
                self.app_settings,
                current_logger=self.logger,
            )
            self.logger.info("Apt package lists updated successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to update apt cache: {e}")
            if raise_error:
                raise
            return False

    def is_installed(self, pkg_name: str) -> bool:
        """Return True if dpkg reports ``pkg_name`` as installed."""
        try:
            result = run_command(
                ["dpkg-query", "-W", "-f=${db:Status-Status}", pkg_name],
                self.app_settings,
                capture_output=True,
                check=True,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            return False
        status = (result.stdout or "").strip()
        return status == "installed"

    def install(
        self,
        packages: Union[List[str], str],
        update_first: bool = True,
    ) -> bool:
        """
        Installs one or more packages using 'apt-get install'.

        Packages that are already installed are skipped, so repeated calls
        are cheap.

        Args:
            packages: A single package name or a list of package names.
            update_first: Whether to update the package lists before installing.

        Returns:
            True if successful, False otherwise.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. Is this a Debian-based system?"
            )
            return False

        packages_to_install = []
        for pkg_name in packages:
            if self.is_installed(pkg_name):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                self.logger.info(
                    f"Marking package for installation: {pkg_name}"
                )
                packages_to_install.append(pkg_name)

        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return True

        if update_first:
            if not self.update():
                return False

        self.logger.info(
            f"Committing installation for: {', '.join(packages_to_install)}"
        )
        try:
            cmd = ["apt-get", "install", "-yq"] + packages_to_install
            run_command(cmd, self.app_settings, current_logger=self.logger)
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            return False
