#!/usr/bin/env python3
"""
NetBox DNS Verify - Command Line Interface

Main entry point for the dns-verify CLI.
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

import yaml

from ..core.exceptions import ConfigurationError, DNSVerifyError
from ..core.verifier import DNSVerifier, VALIDATION_MODES
from ..reports.writer import REPORT_FORMATS

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="NetBox DNS Verify - Detect drift between NetBox DNS and name servers"
    )

    parser.add_argument(
        "--config",
        "-c",
        default="configs/config.yaml",
        help="Configuration file path (default: configs/config.yaml)",
    )
    parser.add_argument("--api-url", help="NetBox URL (overrides NETBOX_URL)")
    parser.add_argument("--api-token", help="NetBox API token (overrides NETBOX_TOKEN)")
    parser.add_argument(
        "--dns-servers", help="Comma separated fallback name servers (overrides NAME_SERVERS)"
    )

    parser.add_argument("--zone", "-z", help="Only validate this zone")
    parser.add_argument("--view", help="Only validate zones in this view")
    parser.add_argument("--nameserver", help="Only validate zones served by this name server")
    parser.add_argument("--mode", choices=VALIDATION_MODES, help="Validation strategy")
    parser.add_argument("--tsig-key-file", help="TSIG key file used for zone transfers")

    parser.add_argument("--report-file", help="Discrepancy report output file")
    parser.add_argument("--report-format", choices=REPORT_FORMATS, help="Report format")
    parser.add_argument("--nsupdate-dir", help="Directory for generated nsupdate scripts")

    parser.add_argument(
        "--ignore-serial-numbers",
        action="store_true",
        default=None,
        help="Ignore SOA serial numbers when comparing SOA records",
    )
    parser.add_argument(
        "--record-successful",
        action="store_true",
        default=None,
        help="Also record successful validations",
    )
    parser.add_argument(
        "--no-ptr",
        dest="check_ptr",
        action="store_false",
        default=None,
        help="Skip PTR validation for A/AAAA records",
    )

    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (overrides the config file)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    apply_environment(config, os.environ)
    apply_arguments(config, args)

    try:
        config_logger(config)
        verifier = DNSVerifier(config)
        result = verifier.process()
    except DNSVerifyError as e:
        logger.error(f"Fatal error: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    print(
        f"DNS validation completed: {len(result.discrepancies)} discrepancies, "
        f"{len(result.missing_records)} records missing in NetBox"
    )
    sys.exit(0)


def load_config(config_path: str) -> Dict:
    """Load configuration from YAML file."""
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Configuration loaded from {config_path}")
        return config
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found, using defaults")
        return get_default_config()
    except yaml.YAMLError as e:
        logger.error(f"Error parsing config file: {e}")
        print(f"Error: could not parse configuration file '{config_path}': {e}")
        sys.exit(1)


def get_default_config() -> Dict:
    """Return default configuration."""
    return {
        "default_provider": "netbox",
        "netbox": {"url": None, "token": None},
        "name_servers": [],
        "validation": {},
        "output": {},
        "logging": {"level": "INFO", "file": "netbox_dns_verify.log"},
    }


def split_servers(value: str) -> List[str]:
    return [server.strip() for server in value.split(",") if server.strip()]


def apply_environment(config: Dict, environ) -> Dict:
    """Override configuration values with NETBOX_URL, NETBOX_TOKEN and NAME_SERVERS."""
    netbox = config.setdefault("netbox", {}) or {}
    config["netbox"] = netbox
    if environ.get("NETBOX_URL"):
        netbox["url"] = environ["NETBOX_URL"]
    if environ.get("NETBOX_TOKEN"):
        netbox["token"] = environ["NETBOX_TOKEN"]
    if environ.get("NAME_SERVERS"):
        config["name_servers"] = split_servers(environ["NAME_SERVERS"])
    return config


def apply_arguments(config: Dict, args: argparse.Namespace) -> Dict:
    """Override configuration values with command line flags."""
    netbox = config.setdefault("netbox", {}) or {}
    config["netbox"] = netbox
    validation = config.get("validation") or {}
    config["validation"] = validation
    output = config.get("output") or {}
    config["output"] = output

    if args.api_url:
        netbox["url"] = args.api_url
    if args.api_token:
        netbox["token"] = args.api_token
    if args.dns_servers:
        config["name_servers"] = split_servers(args.dns_servers)

    for key in (
        "zone",
        "view",
        "nameserver",
        "mode",
        "tsig_key_file",
        "ignore_serial_numbers",
        "record_successful",
        "check_ptr",
    ):
        value = getattr(args, key)
        if value is not None:
            validation[key] = value

    for key in ("report_file", "report_format", "nsupdate_dir"):
        value = getattr(args, key)
        if value is not None:
            output[key] = value

    if args.log_level or args.verbose:
        logging_config = config.get("logging") or {}
        logging_config["level"] = "DEBUG" if args.verbose else args.log_level
        config["logging"] = logging_config

    return config


def config_logger(config: Dict):
    """Configure logging."""
    logging_config = config.get("logging", None)
    if logging_config:
        log_level = str(logging_config.get("level", "INFO")).upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level '{log_level}'")
        log_file = logging_config.get("file")

        handlers = [logging.StreamHandler(sys.stdout)]
        if log_file:
            handlers.insert(0, logging.FileHandler(log_file))

        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=handlers,
        )
        return

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


if __name__ == "__main__":
    main()
