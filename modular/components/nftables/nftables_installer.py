# modular/components/nftables/nftables_installer.py
# -*- coding: utf-8 -*-
"""
Redirect mode: an nftables NAT table that rewrites the destination port.

Only the destination port changes, so the receiving service still sees the
sender's own address. Rules are installed in two chains because traffic
from the network passes the prerouting hook while traffic generated on this
host passes the output hook.
"""

from pathlib import Path
from typing import List

from common.command_utils import log_portproxy
from modular.artifacts import InstallReport, RewriteRule, RuleSet, UninstallReport
from modular.base_installer import BaseInstaller
from modular.registry import InstallerRegistry
from portproxy.config_models import (
    NFT_TABLE_FAMILY,
    NFT_TABLE_NAME,
    Mode,
    ProxyConfig,
)
from portproxy.exceptions import NotFound

NFTABLES_SERVICE = "nftables.service"
RULES_FILE_NAME = f"{NFT_TABLE_NAME}.nft"

# (chain name, chain declaration)
CHAINS = (
    ("prerouting", "type nat hook prerouting priority dstnat; policy accept;"),
    ("output", "type nat hook output priority -100; policy accept;"),
)


@InstallerRegistry.register(
    name=Mode.REDIRECT.value,
    metadata={
        "packages": ["nftables"],
        "description": "nftables destination-port redirect (sender address preserved)",
    },
)
class NftablesInstaller(BaseInstaller):
    """
    Installer for redirect mode.
    """

    @property
    def rules_file(self) -> Path:
        return Path(self.app_settings.nftables_dir) / RULES_FILE_NAME

    @property
    def include_glob(self) -> str:
        return f"{self.app_settings.nftables_dir.rstrip('/')}/*.nft"

    def artifact_names(self, config: ProxyConfig) -> List[str]:
        return [f"table {NFT_TABLE_FAMILY} {NFT_TABLE_NAME}", str(self.rules_file)]

    def build_rules(self, config: ProxyConfig) -> List[RewriteRule]:
        return [
            RewriteRule(
                chain=chain,
                protocol=protocol,
                source_port=config.source_port,
                destination_port=config.destination_port,
            )
            for chain, _ in CHAINS
            for protocol in config.protocols
        ]

    def render_ruleset(self, config: ProxyConfig) -> RuleSet:
        self._require(
            config, ("protocols", "source_port", "destination_port")
        )
        rules = self.build_rules(config)
        lines = [f"table {NFT_TABLE_FAMILY} {NFT_TABLE_NAME} {{"]
        for chain, declaration in CHAINS:
            lines.append(f"  chain {chain} {{")
            lines.append(f"    {declaration}")
            for rule in rules:
                if rule.chain == chain:
                    lines.append(f"    {rule.render()}")
            lines.append("  }")
        lines.append("}")
        return RuleSet(
            family=NFT_TABLE_FAMILY,
            table=NFT_TABLE_NAME,
            rules=tuple(rules),
            content="\n".join(lines) + "\n",
        )

    def render(self, config: ProxyConfig) -> List[RuleSet]:
        return [self.render_ruleset(config)]

    def install(self, config: ProxyConfig) -> InstallReport:
        ruleset = self.render_ruleset(config)
        report = InstallReport(mode=config.mode)
        packet_filter = self.tools.packet_filter

        if not config.destination_is_loopback:
            message = (
                f"Redirect mode only delivers to this host; destination host "
                f"'{config.destination_host}' is ignored. Use relay mode to forward to another host."
            )
            report.warnings.append(message)
            log_portproxy(
                f"{self.symbols.get('warning', '!')} {message}",
                "warning",
                self.logger,
                self.app_settings,
            )

        self._install_packages()

        packet_filter.check_ruleset(ruleset.content)
        packet_filter.write_rules_file(self.rules_file, ruleset.content)
        packet_filter.ensure_include(
            self.app_settings.nftables_conf, self.include_glob
        )
        self.tools.supervisor.enable(NFTABLES_SERVICE, now=True)

        try:
            packet_filter.delete_table(NFT_TABLE_FAMILY, NFT_TABLE_NAME)
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} Replacing existing table {NFT_TABLE_FAMILY} {NFT_TABLE_NAME}.",
                "info",
                self.logger,
                self.app_settings,
            )
        except NotFound:
            pass
        packet_filter.apply_ruleset_file(self.rules_file)
        report.installed.extend([ruleset.name, str(self.rules_file)])

        loaded = packet_filter.list_table(NFT_TABLE_FAMILY, NFT_TABLE_NAME)
        log_portproxy(
            f"{self.symbols.get('success', '✅')} nftables rules installed:\n{loaded or ruleset.content}",
            "success",
            self.logger,
            self.app_settings,
        )
        return report

    def uninstall(self, config: ProxyConfig) -> UninstallReport:
        report = UninstallReport(mode=config.mode)
        packet_filter = self.tools.packet_filter
        table_label = f"table {NFT_TABLE_FAMILY} {NFT_TABLE_NAME}"

        try:
            packet_filter.delete_table(NFT_TABLE_FAMILY, NFT_TABLE_NAME)
            report.removed.append(table_label)
        except NotFound as e:
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} {e}; nothing to remove.",
                "info",
                self.logger,
                self.app_settings,
            )
            report.not_found.append(table_label)

        try:
            packet_filter.remove_rules_file(self.rules_file)
            report.removed.append(str(self.rules_file))
        except NotFound as e:
            log_portproxy(
                f"{self.symbols.get('info', 'ℹ️')} {e}; nothing to remove.",
                "info",
                self.logger,
                self.app_settings,
            )
            report.not_found.append(str(self.rules_file))

        return report

    def is_installed(self, config: ProxyConfig) -> bool:
        return self.tools.packet_filter.table_exists(
            NFT_TABLE_FAMILY, NFT_TABLE_NAME
        )

    def probe_commands(self, config: ProxyConfig) -> List[str]:
        return [f'logger -n 127.0.0.1 -P {config.source_port} "TEST via nft"']
