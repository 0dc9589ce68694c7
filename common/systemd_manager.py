# common/systemd_manager.py
# -*- coding: utf-8 -*-
"""
Thin wrapper around systemd: unit files on disk plus systemctl calls.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from common.command_utils import run_command, run_external_tool
from portproxy.config_models import AppSettings
from portproxy.exceptions import ExternalToolFailure, NotFound


class SystemdManager:
    """
    Writes, activates and removes systemd service units.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        self.unit_dir = Path(app_settings.systemd_unit_dir)

    def unit_path(self, name: str) -> Path:
        return self.unit_dir / name

    def unit_exists(self, name: str) -> bool:
        return self.unit_path(name).is_file()

    def write_unit(self, name: str, content: str) -> Path:
        """
        Write (or overwrite) the unit file ``name``.

        Raises:
            ExternalToolFailure: If the file cannot be written.
        """
        path = self.unit_path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            path.chmod(0o644)
        except OSError as e:
            raise ExternalToolFailure(
                ["write", str(path)], None, str(e)
            ) from e
        self.logger.info(f"Created/Updated {path}")
        return path

    def remove_unit(self, name: str) -> Path:
        """
        Delete the unit file ``name``.

        Raises:
            NotFound: If the unit file does not exist.
            ExternalToolFailure: If the file cannot be deleted.
        """
        path = self.unit_path(name)
        if not path.is_file():
            raise NotFound("systemd unit", name)
        try:
            path.unlink()
        except OSError as e:
            raise ExternalToolFailure(
                ["rm", "-f", str(path)], None, str(e)
            ) from e
        self.logger.info(f"Removed {path}")
        return path

    def daemon_reload(self) -> None:
        self.logger.info("Reloading systemd daemon...")
        run_external_tool(
            ["systemctl", "daemon-reload"],
            self.app_settings,
            current_logger=self.logger,
        )

    def list_units(self, pattern: str) -> List[str]:
        """Names of unit files in the unit directory matching ``pattern``."""
        if not self.unit_dir.is_dir():
            return []
        return sorted(p.name for p in self.unit_dir.glob(pattern) if p.is_file())

    def enable(self, name: str, now: bool = False) -> None:
        """
        Enable ``name`` at boot. With ``now`` the unit is also started if it
        is not running; a running unit is left alone.
        """
        command = ["systemctl", "enable", name]
        if now:
            command.insert(2, "--now")
        run_external_tool(
            command,
            self.app_settings,
            current_logger=self.logger,
        )

    def enable_now(self, name: str) -> None:
        """
        Enable ``name`` at boot and (re)start it so a rewritten unit takes
        effect immediately.
        """
        self.enable(name)
        run_external_tool(
            ["systemctl", "restart", name],
            self.app_settings,
            current_logger=self.logger,
        )

    def disable_now(self, name: str) -> bool:
        """
        Stop and disable ``name``. Best effort: returns False instead of
        raising when systemctl fails (e.g. the unit is unknown).
        """
        try:
            result = run_command(
                ["systemctl", "disable", "--now", name],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
        except FileNotFoundError:
            self.logger.warning(f"systemctl not found; cannot disable {name}.")
            return False
        return result.returncode == 0

    def status(self, name: str) -> str:
        """Return the ``systemctl status`` text for ``name``. Never raises."""
        try:
            result = run_command(
                ["systemctl", "--no-pager", "--full", "status", name],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
        except (FileNotFoundError, subprocess.SubprocessError) as e:
            self.logger.warning(f"Could not query status of {name}: {e}")
            return ""
        return (result.stdout or "").strip()
