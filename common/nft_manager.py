# common/nft_manager.py
# -*- coding: utf-8 -*-
"""
Wrapper around the ``nft`` command line and the nftables drop-in files.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from common.command_utils import run_command, run_external_tool
from portproxy.config_models import AppSettings
from portproxy.exceptions import ExternalToolFailure, NotFound


class NftManager:
    """
    Loads, lists and deletes nftables tables, and maintains the rule file
    that makes them persistent across reboots.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)

    def list_tables(self) -> List[str]:
        """
        Return the loaded tables as ``"<family> <name>"`` strings. An
        unavailable ``nft`` binary is reported as no tables.
        """
        try:
            result = run_command(
                ["nft", "list", "tables"],
                self.app_settings,
                check=True,
                capture_output=True,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            return []
        tables = []
        for line in (result.stdout or "").splitlines():
            parts = line.split()
            if len(parts) == 3 and parts[0] == "table":
                tables.append(f"{parts[1]} {parts[2]}")
        return tables

    def table_exists(self, family: str, name: str) -> bool:
        return f"{family} {name}" in self.list_tables()

    def list_table(self, family: str, name: str) -> str:
        """Return the ``nft list table`` text, or an empty string."""
        try:
            result = run_command(
                ["nft", "list", "table", family, name],
                self.app_settings,
                check=True,
                capture_output=True,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            return ""
        return (result.stdout or "").strip()

    def delete_table(self, family: str, name: str) -> None:
        """
        Raises:
            NotFound: If the table is not loaded.
            ExternalToolFailure: If nft refuses the deletion.
        """
        if not self.table_exists(family, name):
            raise NotFound("nftables table", f"{family} {name}")
        run_external_tool(
            ["nft", "delete", "table", family, name],
            self.app_settings,
            current_logger=self.logger,
        )
        self.logger.info(f"Deleted nftables table {family} {name}")

    def check_ruleset(self, text: str) -> None:
        """Validate ``text`` with ``nft -c`` without loading it."""
        run_external_tool(
            ["nft", "-c", "-f", "-"],
            self.app_settings,
            cmd_input=text,
            current_logger=self.logger,
        )

    def apply_ruleset_file(self, path: Union[str, Path]) -> None:
        """Load the rule file at ``path`` into the kernel with ``nft -f``."""
        run_external_tool(
            ["nft", "-f", str(path)],
            self.app_settings,
            current_logger=self.logger,
        )

    def write_rules_file(self, path: Union[str, Path], text: str) -> Path:
        rules_path = Path(path)
        try:
            rules_path.parent.mkdir(parents=True, exist_ok=True)
            rules_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ExternalToolFailure(
                ["write", str(rules_path)], None, str(e)
            ) from e
        self.logger.info(f"Created/Updated {rules_path}")
        return rules_path

    def remove_rules_file(self, path: Union[str, Path]) -> Path:
        """
        Raises:
            NotFound: If the rule file does not exist.
        """
        rules_path = Path(path)
        if not rules_path.is_file():
            raise NotFound("nftables rule file", str(rules_path))
        try:
            rules_path.unlink()
        except OSError as e:
            raise ExternalToolFailure(
                ["rm", "-f", str(rules_path)], None, str(e)
            ) from e
        self.logger.info(f"Removed {rules_path}")
        return rules_path

    def ensure_include(
        self, conf_path: Union[str, Path], include_glob: str
    ) -> bool:
        """
        Append ``include "<include_glob>"`` to the main nftables config unless
        it is already there.

        Returns:
            True if the file was changed.
        """
        conf = Path(conf_path)
        include_line = f'include "{include_glob}"'
        try:
            existing = conf.read_text(encoding="utf-8") if conf.exists() else ""
            if include_line in existing:
                return False
            separator = "" if not existing or existing.endswith("\n") else "\n"
            conf.write_text(
                f"{existing}{separator}{include_line}\n", encoding="utf-8"
            )
        except OSError as e:
            raise ExternalToolFailure(
                ["write", str(conf)], None, str(e)
            ) from e
        self.logger.info(f"Added {include_line} to {conf}")
        return True
