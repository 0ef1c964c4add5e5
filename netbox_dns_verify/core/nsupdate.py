"""
Corrective Script Generator - Turn discrepancies into nsupdate scripts

One script is produced per (server, zone). It deletes the values a server
returned but should not, and adds the values it is missing at the expected
TTL. Scripts are written out for an operator to run; nothing here talks to a
DNS server.
"""

import logging
import re
from collections import Counter, OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .grouping import ZoneIndex, lookup_zone, zone_ttl
from .models import Discrepancy, SOARecord

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _contains(values: Iterable[str], value: str) -> bool:
    """Case-insensitive, whitespace-insensitive membership test."""
    value = value.strip().lower()
    return any(v.strip().lower() == value for v in values)


def _same_values(expected: Iterable[str], actual: Iterable[str]) -> bool:
    return Counter(v.strip().lower() for v in expected) == Counter(v.strip().lower() for v in actual)


def format_value(record_type: str, value: str) -> str:
    """Render a value the way nsupdate expects it."""
    if record_type in ("TXT", "SPF") and not value.startswith('"'):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def discrepancy_commands(discrepancy: Discrepancy, zones: Optional[ZoneIndex] = None) -> List[str]:
    """
    Translate one discrepancy into nsupdate commands.

    Discrepancies without an expected payload, or whose actual state is
    unknown because the server could not be queried, produce nothing.

    Args:
        discrepancy: The discrepancy to correct
        zones: Zone metadata used when the discrepancy carries no TTL

    Returns:
        The update commands, without preamble or send
    """
    d = discrepancy
    if d.expected is None:
        return []
    if d.actual is None:
        logger.debug(f"Skipping {d.fqdn} {d.record_type} on {d.server}: actual state unknown")
        return []

    if isinstance(d.expected, SOARecord):
        ttl = d.expected_ttl or zone_ttl(lookup_zone(zones, d.zone_name, d.view_name), soa=True)
        return [
            f"update delete {d.fqdn} SOA",
            f"update add {d.fqdn} {ttl} SOA {d.expected.to_text()}",
        ]

    expected = list(d.expected)
    actual = list(d.actual) if not isinstance(d.actual, SOARecord) else []
    ttl = d.expected_ttl or zone_ttl(lookup_zone(zones, d.zone_name, d.view_name))
    rtype = d.record_type

    commands = []
    if _same_values(expected, actual) and d.expected_ttl != d.actual_ttl:
        # Same values, wrong TTL: re-add every value at the corrected TTL.
        for value in expected:
            value = format_value(rtype, value)
            commands.append(f"update delete {d.fqdn} {rtype} {value}")
            commands.append(f"update add {d.fqdn} {ttl} {rtype} {value}")
        return commands

    for value in actual:
        if not _contains(expected, value):
            commands.append(f"update delete {d.fqdn} {rtype} {format_value(rtype, value)}")

    for value in expected:
        if not _contains(actual, value):
            commands.append(f"update add {d.fqdn} {ttl} {rtype} {format_value(rtype, value)}")

    return commands


def build_nsupdate_scripts(
    discrepancies: Iterable[Discrepancy], zones: Optional[ZoneIndex] = None
) -> Dict[Tuple[str, str], List[str]]:
    """
    Build the nsupdate scripts for a set of discrepancies.

    Returns:
        Mapping of (server, zone) to script lines: a server and zone
        preamble, the update commands, and a closing send
    """
    blocks: Dict[Tuple[str, str], List[str]] = OrderedDict()
    for discrepancy in discrepancies:
        commands = discrepancy_commands(discrepancy, zones)
        if commands:
            blocks.setdefault((discrepancy.server, discrepancy.zone_name), []).extend(commands)

    scripts = OrderedDict()
    for (server, zone), commands in blocks.items():
        lines = [f"server {server}"]
        if zone:
            lines.append(f"zone {zone}")
        lines.extend(commands)
        lines.append("send")
        scripts[(server, zone)] = lines
    return scripts


def script_filename(server: str, zone: str) -> str:
    """Return the file name of the script for a server and zone."""
    server = _UNSAFE_FILENAME_CHARS.sub("_", server.rstrip(".")) or "unknown"
    zone = _UNSAFE_FILENAME_CHARS.sub("_", zone.rstrip(".")) or "nozone"
    return f"nsupdate_{server}_{zone}.txt"


def write_nsupdate_scripts(
    discrepancies: List[Discrepancy], directory: str, zones: Optional[ZoneIndex] = None
) -> List[str]:
    """
    Write one nsupdate script per server and zone.

    Args:
        discrepancies: Discrepancies to correct
        directory: Output directory, created if needed
        zones: Zone metadata used for TTL resolution

    Returns:
        Paths of the scripts written
    """
    scripts = build_nsupdate_scripts(discrepancies, zones)
    if not scripts:
        logger.info("No correctable discrepancies found; nsupdate scripts not generated")
        return []

    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for (server, zone), lines in scripts.items():
        path = output_dir / script_filename(server, zone)
        with open(path, "w") as f:
            f.write("\n".join(lines) + "\n")
        logger.info(f"Generated nsupdate script {path}")
        paths.append(str(path))
    return paths
