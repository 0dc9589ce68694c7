"""
Artifacts generated by the installers and the reports returned by the
install/uninstall lifecycle.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from portproxy.config_models import Protocol


@dataclass(frozen=True)
class ServiceUnit:
    """A systemd service unit for one relayed protocol."""

    name: str
    protocol: Protocol
    content: str


@dataclass(frozen=True)
class RewriteRule:
    """A destination-port rewrite in one nftables chain."""

    chain: str
    protocol: Protocol
    source_port: int
    destination_port: int

    def render(self) -> str:
        proto = self.protocol.value
        return (
            f"ip protocol {proto} {proto} dport {self.source_port} "
            f"redirect to {self.destination_port}"
        )


@dataclass(frozen=True)
class RuleSet:
    """A complete nftables table definition."""

    family: str
    table: str
    rules: Tuple[RewriteRule, ...]
    content: str

    @property
    def name(self) -> str:
        return f"table {self.family} {self.table}"

    def rules_in_chain(self, chain: str) -> List[RewriteRule]:
        return [rule for rule in self.rules if rule.chain == chain]


@dataclass
class InstallReport:
    mode: str
    installed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class UninstallReport:
    mode: str
    removed: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
