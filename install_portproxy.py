#!/usr/bin/env python3
"""
Entry point for the syslog port proxy installer.

Installs either socat relay services (relay mode) or an nftables redirect
(redirect mode) that forward syslog traffic from a privileged port to an
unprivileged one, or removes them again with --uninstall.
"""

import argparse
import os
import sys
from typing import List, Mapping, Optional

from common.logging_config import setup_logging
from modular.artifacts import RuleSet, ServiceUnit
from modular.orchestrator import InstallerOrchestrator
from portproxy.config_loader import load_proxy_config
from portproxy.config_models import AppSettings, ProxyConfig
from portproxy.exceptions import InvalidConfiguration, PortProxyError

SERVICE_NAME = "syslog-portproxy"

EPILOG = """\
Environment variables (overridden by a config file and by flags):
  MODE, PROTOS, SRC_IP, SRC_PORT, DST_HOST, DST_PORT, NAME
  LOG_LEVEL sets the log level; PORTPROXY_* variables override host paths.

Examples:
  %(prog)s
  %(prog)s -m relay -p udp,tcp -S 514 -D 1514
  %(prog)s -m redirect -p udp
  %(prog)s --uninstall -m relay -p udp,tcp
"""


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Forward syslog from a privileged port to an unprivileged one using socat or nftables.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Configuration vector
    parser.add_argument(
        "-m",
        "--mode",
        help="relay (socat services; alias: socat) or redirect (nftables; alias: nft). Default: relay",
    )
    parser.add_argument(
        "-p", "--protos", help="Comma-separated protocols: udp, tcp. Default: udp"
    )
    parser.add_argument(
        "-s", "--src-ip", dest="src_ip", help="Listen address. Default: 0.0.0.0"
    )
    parser.add_argument(
        "-S",
        "--src-port",
        dest="src_port",
        type=int,
        help="Listen port. Default: 514",
    )
    parser.add_argument(
        "-d",
        "--dst-host",
        dest="dst_host",
        help="Destination host. Default: 127.0.0.1",
    )
    parser.add_argument(
        "-D",
        "--dst-port",
        dest="dst_port",
        type=int,
        help="Destination port. Default: 1514",
    )
    parser.add_argument(
        "-n", "--name", help="Instance name. Default: syslog514to1514"
    )
    parser.add_argument(
        "-c", "--config", help="YAML file with configuration values"
    )

    # Actions
    action = parser.add_mutually_exclusive_group()
    action.add_argument(
        "--uninstall",
        action="store_true",
        help="Remove the services or rules for the given mode",
    )
    action.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Print the generated unit files or rule set and exit",
    )
    action.add_argument(
        "--status",
        action="store_true",
        help="Report whether the artifacts for the given mode are installed",
    )

    # Output
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--json-logs",
        dest="json_logs",
        action="store_true",
        help="Emit log records as JSON",
    )

    return parser.parse_args(args)


def _print_artifacts(
    artifacts: List[object], config: ProxyConfig, app_settings: AppSettings
) -> None:
    for artifact in artifacts:
        if isinstance(artifact, ServiceUnit):
            location = os.path.join(app_settings.systemd_unit_dir, artifact.name)
        elif isinstance(artifact, RuleSet):
            location = os.path.join(app_settings.nftables_dir, f"{artifact.table}.nft")
        else:
            location = config.mode
        print(f"# {location}")
        print(artifact.content)


def main(
    args: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    orchestrator: Optional[InstallerOrchestrator] = None,
) -> int:
    """
    Main entry point for the installer.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.
        environ: Environment to read defaults from. Defaults to os.environ.
        orchestrator: Pre-built orchestrator, mainly for tests.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parsed_args = parse_args(args)
    if environ is None:
        environ = os.environ

    log_level = "DEBUG" if parsed_args.verbose else environ.get("LOG_LEVEL", "INFO")
    logger = setup_logging(
        SERVICE_NAME, log_level=log_level, json_output=parsed_args.json_logs
    )

    try:
        config = load_proxy_config(
            cli_args=parsed_args,
            environ=environ,
            config_file_path=parsed_args.config,
            current_logger=logger,
        )
    except InvalidConfiguration as e:
        logger.error(str(e))
        return 1

    try:
        if orchestrator is None:
            orchestrator = InstallerOrchestrator(AppSettings(), logger=logger)

        if parsed_args.dry_run:
            _print_artifacts(
                orchestrator.render(config), config, orchestrator.app_settings
            )
            return 0

        if parsed_args.status:
            return 0 if orchestrator.status(config) else 1

        if parsed_args.uninstall:
            orchestrator.uninstall(config)
            return 0

        orchestrator.install(config)
        return 0

    except PortProxyError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
