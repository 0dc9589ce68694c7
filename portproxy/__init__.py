"""
Configuration and error types for the syslog port proxy installer.
"""

from portproxy.config_loader import load_proxy_config, resolve_config
from portproxy.config_models import (
    AppSettings,
    Mode,
    Protocol,
    ProxyConfig,
    RedirectConfig,
    RelayConfig,
)

__version__ = "0.1.0"

__all__ = [
    "AppSettings",
    "Mode",
    "Protocol",
    "ProxyConfig",
    "RedirectConfig",
    "RelayConfig",
    "load_proxy_config",
    "resolve_config",
]
