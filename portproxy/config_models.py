# portproxy/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the port proxy installer.

Two kinds of settings live here:

* ``AppSettings`` describes the host the installer runs on (where unit files
  and rule files go, which binary to run, which account to run it as). It is a
  pydantic-settings ``BaseSettings`` so every field can be overridden with a
  ``PORTPROXY_`` environment variable.
* ``ProxyConfig`` is the configuration vector for one proxy instance. It is
  immutable once validated and comes in two flavours, ``RelayConfig`` and
  ``RedirectConfig``, discriminated on ``mode``.
"""

import ipaddress
import re
from enum import Enum
from typing import Annotated, Dict, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by env/config file/cli) ---
MODE_DEFAULT: str = "relay"
PROTOCOLS_DEFAULT: str = "udp"
SRC_IP_DEFAULT: str = "0.0.0.0"
SRC_PORT_DEFAULT: int = 514
DST_HOST_DEFAULT: str = "127.0.0.1"
DST_PORT_DEFAULT: int = 1514
INSTANCE_NAME_DEFAULT: str = "syslog514to1514"

SERVICE_USER_DEFAULT: str = "portproxy"
SYSTEMD_UNIT_DIR_DEFAULT: str = "/etc/systemd/system"
NFTABLES_CONF_DEFAULT: str = "/etc/nftables.conf"
NFTABLES_DIR_DEFAULT: str = "/etc/nftables.d"
SOCAT_BINARY_DEFAULT: str = "/usr/bin/socat"
RESTART_SEC_DEFAULT: int = 2
LOG_PREFIX_DEFAULT: str = "[PORTPROXY]"

# Fixed artifact identifiers
UNIT_PREFIX: str = "socat"
NFT_TABLE_FAMILY: str = "inet"
NFT_TABLE_NAME: str = "portproxy"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}

INSTANCE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}\.?$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$"
)
_WILDCARD_ADDRESSES = {"*", "any"}


class Mode(str, Enum):
    """Installation mode."""

    RELAY = "relay"
    REDIRECT = "redirect"


# Legacy mode names (socat|nft) map onto the two modes.
MODE_ALIASES: Dict[str, Mode] = {
    "socat": Mode.RELAY,
    "nft": Mode.REDIRECT,
    "nftables": Mode.REDIRECT,
}


class Protocol(str, Enum):
    """Transport protocol to forward."""

    UDP = "udp"
    TCP = "tcp"


PROTOCOL_ORDER: Tuple[Protocol, ...] = (Protocol.UDP, Protocol.TCP)


class AppSettings(BaseSettings):
    """Host layout and presentation settings."""

    model_config = SettingsConfigDict(env_prefix="PORTPROXY_", extra="ignore")

    systemd_unit_dir: str = Field(
        default=SYSTEMD_UNIT_DIR_DEFAULT,
        description="Directory where generated systemd units are written.",
    )
    nftables_conf: str = Field(
        default=NFTABLES_CONF_DEFAULT,
        description="Main nftables configuration file that must include the rule directory.",
    )
    nftables_dir: str = Field(
        default=NFTABLES_DIR_DEFAULT,
        description="Directory holding drop-in nftables rule files.",
    )
    socat_binary: str = Field(
        default=SOCAT_BINARY_DEFAULT,
        description="Absolute path of the socat binary used in ExecStart.",
    )
    service_user: str = Field(
        default=SERVICE_USER_DEFAULT,
        description="Dedicated system account the relay services run as.",
    )
    restart_sec: int = Field(
        default=RESTART_SEC_DEFAULT,
        ge=0,
        description="Delay in seconds before systemd restarts an exited relay.",
    )
    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for log messages from the installer.",
    )

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )


class ProxyConfig(BaseModel):
    """Validated configuration vector for one proxy instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: str
    protocols: Tuple[Protocol, ...] = Field(
        default=(Protocol.UDP,), min_length=1
    )
    source_address: str = SRC_IP_DEFAULT
    source_port: int = Field(default=SRC_PORT_DEFAULT, ge=1, le=65535)
    destination_host: str = DST_HOST_DEFAULT
    destination_port: int = Field(default=DST_PORT_DEFAULT, ge=1, le=65535)
    instance_name: str = Field(
        default=INSTANCE_NAME_DEFAULT,
        max_length=128,
        pattern=INSTANCE_NAME_PATTERN,
    )

    @field_validator("protocols", mode="before")
    @classmethod
    def _parse_protocols(cls, value):
        if isinstance(value, str):
            items = value.split(",")
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = list(value)
        else:
            raise ValueError("protocols must be a comma-separated string or a list")

        requested = set()
        for item in items:
            name = item.value if isinstance(item, Protocol) else str(item)
            name = name.strip().lower()
            if not name:
                continue
            try:
                requested.add(Protocol(name))
            except ValueError:
                raise ValueError(
                    f"unknown protocol '{name}' (valid: udp, tcp)"
                ) from None
        if not requested:
            raise ValueError("at least one protocol (udp, tcp) is required")
        return tuple(p for p in PROTOCOL_ORDER if p in requested)

    @field_validator("source_port", "destination_port", mode="before")
    @classmethod
    def _reject_bool_ports(cls, value):
        if isinstance(value, bool):
            raise ValueError("port must be a number between 1 and 65535")
        return value

    @field_validator("instance_name", mode="before")
    @classmethod
    def _parse_instance_name(cls, value):
        if isinstance(value, (int, float, str)) and not isinstance(value, bool):
            return str(value).strip()
        return value

    @field_validator("source_address", mode="before")
    @classmethod
    def _parse_source_address(cls, value):
        text = str(value).strip()
        if text.lower() in _WILDCARD_ADDRESSES:
            return SRC_IP_DEFAULT
        try:
            return str(ipaddress.ip_address(text))
        except ValueError:
            raise ValueError(
                f"'{text}' is not a valid IP address"
            ) from None

    @field_validator("destination_host", mode="before")
    @classmethod
    def _parse_destination_host(cls, value):
        text = str(value).strip()
        try:
            return str(ipaddress.ip_address(text))
        except ValueError:
            pass
        if not _HOSTNAME_RE.match(text):
            raise ValueError(f"'{text}' is not a valid hostname or IP address")
        return text

    @property
    def source_is_ipv6(self) -> bool:
        return ipaddress.ip_address(self.source_address).version == 6

    @property
    def destination_is_loopback(self) -> bool:
        if self.destination_host.lower() in ("localhost", "localhost."):
            return True
        try:
            return ipaddress.ip_address(self.destination_host).is_loopback
        except ValueError:
            return False


class RelayConfig(ProxyConfig):
    """Configuration for relay mode (socat services)."""

    mode: Literal["relay"] = Mode.RELAY.value


class RedirectConfig(ProxyConfig):
    """Configuration for redirect mode (nftables rules)."""

    mode: Literal["redirect"] = Mode.REDIRECT.value


AnyProxyConfig = Annotated[
    Union[RelayConfig, RedirectConfig], Field(discriminator="mode")
]
