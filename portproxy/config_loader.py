# portproxy/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration resolver for the port proxy installer.

Builds the configuration vector from explicit tables, applying the following
order of precedence:
1. Built-in defaults
2. Environment variables (MODE, PROTOS, SRC_IP, SRC_PORT, DST_HOST, DST_PORT, NAME)
3. YAML configuration file (optional)
4. Command-Line Arguments

Nothing here reads process-wide state on its own: the environment and the
parsed CLI arguments are passed in by the caller.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from .config_models import (
    DST_HOST_DEFAULT,
    DST_PORT_DEFAULT,
    INSTANCE_NAME_DEFAULT,
    MODE_ALIASES,
    MODE_DEFAULT,
    PROTOCOLS_DEFAULT,
    SRC_IP_DEFAULT,
    SRC_PORT_DEFAULT,
    AnyProxyConfig,
    Mode,
    ProxyConfig,
)
from .exceptions import InvalidConfiguration

module_logger = logging.getLogger(__name__)

BUILTIN_DEFAULTS: Dict[str, Any] = {
    "mode": MODE_DEFAULT,
    "protocols": PROTOCOLS_DEFAULT,
    "source_address": SRC_IP_DEFAULT,
    "source_port": SRC_PORT_DEFAULT,
    "destination_host": DST_HOST_DEFAULT,
    "destination_port": DST_PORT_DEFAULT,
    "instance_name": INSTANCE_NAME_DEFAULT,
}

# Environment variable -> configuration field
ENVIRONMENT_KEYS: Dict[str, str] = {
    "MODE": "mode",
    "PROTOS": "protocols",
    "SRC_IP": "source_address",
    "SRC_PORT": "source_port",
    "DST_HOST": "destination_host",
    "DST_PORT": "destination_port",
    "NAME": "instance_name",
}

# argparse destination -> configuration field
CLI_KEYS: Dict[str, str] = {
    "mode": "mode",
    "protos": "protocols",
    "src_ip": "source_address",
    "src_port": "source_port",
    "dst_host": "destination_host",
    "dst_port": "destination_port",
    "name": "instance_name",
}

# Keys accepted in a YAML config file, including the short CLI spellings.
YAML_KEYS: Dict[str, str] = {
    **{field: field for field in BUILTIN_DEFAULTS},
    **CLI_KEYS,
}

_PROXY_CONFIG_ADAPTER: TypeAdapter = TypeAdapter(AnyProxyConfig)


def _deep_update(
    source: Dict[str, Any], overrides: Mapping[str, Any]
) -> Dict[str, Any]:
    """
    Update ``source`` in place with every non-None value from ``overrides``.
    Nested dictionaries are merged recursively.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, Mapping)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
    return source


def normalise_mode(value: Any) -> Mode:
    """
    Map a user supplied mode (including the legacy ``socat``/``nft`` names)
    onto a ``Mode``.

    Raises:
        InvalidConfiguration: If the value names neither mode.
    """
    if isinstance(value, Mode):
        return value
    text = str(value).strip().lower() if value is not None else ""
    if text in MODE_ALIASES:
        return MODE_ALIASES[text]
    try:
        return Mode(text)
    except ValueError:
        valid = ", ".join(
            [m.value for m in Mode] + sorted(MODE_ALIASES.keys())
        )
        raise InvalidConfiguration(
            f"Invalid mode: '{value}' (valid: {valid})"
        ) from None


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(
            str(p) for p in item.get("loc", ()) if p not in ("relay", "redirect")
        )
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def resolve_config(
    defaults: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
) -> ProxyConfig:
    """
    Merge ``overrides`` over ``defaults`` and validate the result.

    Overrides whose value is None are ignored, so a partially filled table
    (for example argparse output with unset flags) can be passed directly.

    Args:
        defaults: Table of default values keyed by configuration field.
        overrides: Table of explicit values keyed by configuration field.

    Returns:
        A frozen ``RelayConfig`` or ``RedirectConfig``.

    Raises:
        InvalidConfiguration: If the merged values fail validation.
    """
    merged: Dict[str, Any] = _deep_update(dict(defaults), overrides or {})
    unknown = sorted(set(merged) - set(BUILTIN_DEFAULTS))
    if unknown:
        raise InvalidConfiguration(
            f"Unknown configuration keys: {', '.join(unknown)}"
        )
    merged["mode"] = normalise_mode(merged.get("mode")).value
    try:
        return _PROXY_CONFIG_ADAPTER.validate_python(merged)
    except ValidationError as e:
        raise InvalidConfiguration(
            f"Invalid configuration: {_format_validation_error(e)}"
        ) from e


def environment_defaults(
    environ: Mapping[str, str],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Layer the installer's environment variables over ``base`` (the built-in
    defaults when omitted). Empty variables are ignored.
    """
    table: Dict[str, Any] = dict(base if base is not None else BUILTIN_DEFAULTS)
    for env_key, field in ENVIRONMENT_KEYS.items():
        value = environ.get(env_key)
        if value is not None and value.strip() != "":
            table[field] = value.strip()
    return table


def cli_overrides(cli_args: Optional[argparse.Namespace]) -> Dict[str, Any]:
    """Extract configuration overrides from parsed command-line arguments."""
    if cli_args is None:
        return {}
    overrides: Dict[str, Any] = {}
    for dest, field in CLI_KEYS.items():
        value = getattr(cli_args, dest, None)
        if value is not None:
            overrides[field] = value
    return overrides


def load_yaml_overrides(
    config_file_path: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Read configuration overrides from a YAML file.

    The file is a flat mapping using either the field names (``source_port``)
    or the short CLI spellings (``src_port``).

    Raises:
        InvalidConfiguration: If the file is missing, unreadable, not valid
            YAML, not a mapping, or contains unknown keys.
    """
    logger_to_use = current_logger if current_logger else module_logger
    yaml_config_path = Path(config_file_path)
    if not yaml_config_path.is_file():
        raise InvalidConfiguration(
            f"Configuration file '{yaml_config_path}' not found."
        )
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(
            f"Could not parse YAML config file '{yaml_config_path}': {e}"
        ) from e
    except IOError as e:
        raise InvalidConfiguration(
            f"Could not read config file '{yaml_config_path}': {e}"
        ) from e

    if yaml_data is None:
        logger_to_use.info(
            f"Config file '{yaml_config_path}' is empty. Ignoring."
        )
        return {}
    if not isinstance(yaml_data, dict):
        raise InvalidConfiguration(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary."
        )

    overrides: Dict[str, Any] = {}
    unknown = []
    for key, value in yaml_data.items():
        field = YAML_KEYS.get(str(key))
        if field is None:
            unknown.append(str(key))
            continue
        overrides[field] = value
    if unknown:
        raise InvalidConfiguration(
            f"Unknown keys in '{yaml_config_path}': {', '.join(sorted(unknown))}"
        )
    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return overrides


def load_proxy_config(
    cli_args: Optional[argparse.Namespace] = None,
    environ: Optional[Mapping[str, str]] = None,
    config_file_path: Optional[Union[str, Path]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> ProxyConfig:
    """
    Resolve the configuration vector for one invocation.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        environ: Environment mapping to read defaults from. No environment
            is consulted when omitted.
        config_file_path: Optional YAML file with overrides.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        The validated configuration.
    """
    defaults = environment_defaults(environ or {})
    overrides: Dict[str, Any] = {}
    if config_file_path:
        overrides = _deep_update(
            overrides,
            load_yaml_overrides(config_file_path, current_logger=current_logger),
        )
    overrides = _deep_update(overrides, cli_overrides(cli_args))
    return resolve_config(defaults, overrides)
