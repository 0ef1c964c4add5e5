#!/usr/bin/env python3
"""
DNS Verifier - Detect drift between NetBox DNS and authoritative servers

This module fetches the inventory, runs either the per-record or the
zone-transfer validation, and writes the reports and nsupdate scripts.
"""

import logging
from collections import Counter
from typing import Dict, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .authority import AuthorityResolver, MissingAuthorityPolicy
from .bulk_validator import BulkValidator
from .exceptions import ConfigurationError
from .grouping import ZoneIndex
from .models import TSIGKey, VerificationResult
from .nsupdate import write_nsupdate_scripts
from .soa_validator import SOAValidator
from .validator import DEFAULT_WORKERS, RecordValidator
from ..parsers.tsig import parse_tsig_key_file
from ..providers.base_provider import InventoryProvider
from ..providers.dns_client import DNSClient
from ..providers.mock_provider import MockInventoryProvider
from ..providers.netbox_provider import NetBoxProvider
from ..reports.writer import REPORT_FORMATS, write_report

console = Console()
logger = logging.getLogger(__name__)

VALIDATION_MODES = ("query", "axfr")

DEFAULT_VALIDATION = {
    "mode": "query",
    "zone": None,
    "view": None,
    "nameserver": None,
    "record_successful": False,
    "ignore_serial_numbers": False,
    "check_ptr": True,
    "missing_authority": "skip",
    "workers": DEFAULT_WORKERS,
    "retries": 3,
    "timeout": 5,
    "tsig_key_file": None,
}

DEFAULT_OUTPUT = {
    "report_file": "discrepancies.txt",
    "report_format": "table",
    "successes_file": "successes.txt",
    "missing_file": "missing_records.txt",
    "nsupdate_dir": "nsupdate",
}


class DNSVerifier:
    """Main verification class that orchestrates the entire process."""

    def __init__(
        self,
        config: Dict,
        provider: Optional[InventoryProvider] = None,
        dns_client: Optional[DNSClient] = None,
    ):
        """Initialize the verifier with configuration."""
        self.config = config
        self.validation = {**DEFAULT_VALIDATION, **(config.get("validation") or {})}
        self.output = {**DEFAULT_OUTPUT, **(config.get("output") or {})}

        self.mode = self.validation["mode"]
        if self.mode not in VALIDATION_MODES:
            raise ConfigurationError(f"Unknown validation mode '{self.mode}'")
        if self.output["report_format"] not in REPORT_FORMATS:
            raise ConfigurationError(f"Unknown report format '{self.output['report_format']}'")

        try:
            self.policy = MissingAuthorityPolicy(self.validation["missing_authority"])
        except ValueError:
            raise ConfigurationError(
                f"Unknown missing_authority policy '{self.validation['missing_authority']}'"
            ) from None

        self.provider = provider or self._get_provider()
        self.dns_client = dns_client or DNSClient(self.validation)
        self.tsig_key = self._load_tsig_key()
        # Zone metadata of the last run, reused when writing scripts.
        self.zones: ZoneIndex = {}

    def _get_provider(self) -> InventoryProvider:
        """Get the inventory provider based on configuration."""
        provider_name = self.config.get("default_provider", "netbox")

        if provider_name == "netbox":
            netbox_config = self.config.get("netbox") or {}
            if not netbox_config.get("url") or not netbox_config.get("token"):
                raise ConfigurationError(
                    "Configuration incomplete: ensure NETBOX_URL and NETBOX_TOKEN are set"
                )
            return NetBoxProvider(netbox_config)
        elif provider_name == "mock":
            mock_file = (self.config.get("mock") or {}).get("file")
            return MockInventoryProvider.from_file(mock_file) if mock_file else MockInventoryProvider()

        raise ConfigurationError(f"Unknown inventory provider '{provider_name}'")

    def _load_tsig_key(self) -> Optional[TSIGKey]:
        """Load the TSIG key for zone transfers; errors here are fatal."""
        key_file = self.validation.get("tsig_key_file")
        if self.mode != "axfr" or not key_file:
            return None
        return parse_tsig_key_file(key_file)

    def run(self) -> VerificationResult:
        """
        Fetch the inventory and validate it against the authoritative servers.

        Returns:
            Discrepancies, successful validations and records missing in NetBox
        """
        zone_filter = self.validation.get("zone")
        view_filter = self.validation.get("view")
        nameserver_filter = self.validation.get("nameserver")

        nameservers = self.provider.get_nameservers(nameserver_filter)
        zones_to_validate = None
        if nameserver_filter:
            zones_to_validate = sorted({zone.name for ns in nameservers for zone in ns.zones})
            if not zones_to_validate:
                logger.warning(f"Nameserver {nameserver_filter} serves no zones")
                return VerificationResult()

        records = self.provider.get_records(zone_filter, view_filter, zones_to_validate)
        self.zones = self.provider.get_zones()
        authority = AuthorityResolver(
            nameservers, self.policy, self.config.get("name_servers") or []
        )

        common = dict(
            dns_client=self.dns_client,
            authority=authority,
            zones=self.zones,
            record_successful=self.validation["record_successful"],
            workers=int(self.validation["workers"]),
        )

        if self.mode == "axfr":
            bulk = BulkValidator(
                tsig_key=self.tsig_key,
                ignore_serial_numbers=self.validation["ignore_serial_numbers"],
                **common,
            )
            return bulk.validate_all(records, zone_filter, view_filter)

        retries = int(self.validation["retries"])
        result = RecordValidator(
            check_ptr=self.validation["check_ptr"], retries=retries, **common
        ).validate_all(records, zone_filter, view_filter)
        result.extend(
            SOAValidator(
                ignore_serial_numbers=self.validation["ignore_serial_numbers"],
                retries=retries,
                **common,
            ).validate_all(records, zone_filter, view_filter)
        )
        return result

    def process(self) -> VerificationResult:
        """Run the verification, display a summary and write all outputs."""
        console.print(f"[green]Starting DNS validation ({self.mode} mode)...[/green]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Validating DNS records...", total=None)
            result = self.run()

        self._display_summary(result)
        self.write_outputs(result)
        logger.info("DNS validation completed")
        return result

    def write_outputs(self, result: VerificationResult) -> None:
        """Write reports and nsupdate scripts for a verification result."""
        fmt = self.output["report_format"]

        if write_report(result.discrepancies, self.output["report_file"], fmt, "DNS Discrepancies"):
            console.print(f"[yellow]Discrepancy report saved to: {self.output['report_file']}[/yellow]")
        else:
            console.print("[green]No discrepancies found - DNS records are up to date[/green]")

        if self.validation["record_successful"] and write_report(
            result.successes, self.output["successes_file"], fmt, "Successful Validations"
        ):
            console.print(f"[green]Successful validations saved to: {self.output['successes_file']}[/green]")

        if write_report(result.missing_records, self.output["missing_file"], fmt, "Records Missing in NetBox"):
            console.print(f"[yellow]Missing records saved to: {self.output['missing_file']}[/yellow]")

        paths = write_nsupdate_scripts(result.discrepancies, self.output["nsupdate_dir"], self.zones)
        for path in paths:
            console.print(f"[blue]nsupdate script written: {path}[/blue]")

    def _display_summary(self, result: VerificationResult):
        """Display a summary of the verification."""
        table = Table(title="DNS Verification Summary")
        table.add_column("Result", style="cyan")
        table.add_column("Count", style="magenta")
        table.add_column("Details", style="white")

        messages = Counter(d.message.split(":")[0] for d in result.discrepancies)
        table.add_row(
            "Discrepancies",
            str(len(result.discrepancies)),
            ", ".join(f"{message}: {count}" for message, count in messages.most_common()),
        )
        if self.validation["record_successful"]:
            table.add_row("Validated", str(len(result.successes)), "")
        if self.mode == "axfr":
            table.add_row(
                "Missing in NetBox",
                str(len(result.missing_records)),
                ", ".join(sorted({m.fqdn for m in result.missing_records}))[:200],
            )

        console.print(table)
