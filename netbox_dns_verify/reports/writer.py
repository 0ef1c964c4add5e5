"""
Report writer - Serialise verification results to table, CSV or JSON files
"""

import csv
import json
import logging
from typing import Any, Dict, List, Sequence, Union

from rich.console import Console
from rich.table import Table

from ..core.models import Discrepancy, MissingRecord, ValidationRecord

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("table", "csv", "json")

ReportItem = Union[Discrepancy, ValidationRecord, MissingRecord]

HEADERS = {
    "fqdn": "FQDN",
    "record_type": "Type",
    "zone_name": "Zone",
    "view_name": "View",
    "expected": "Expected",
    "actual": "Actual",
    "expected_ttl": "ExpectedTTL",
    "actual_ttl": "ActualTTL",
    "values": "Values",
    "ttl": "TTL",
    "server": "Server",
    "message": "Message",
}


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _rows(items: Sequence[ReportItem]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


def _columns(items: Sequence[ReportItem]) -> List[str]:
    if items and isinstance(items[0], MissingRecord):
        return ["fqdn", "record_type", "zone_name", "view_name", "values", "ttl", "server", "message"]
    return [
        "fqdn",
        "record_type",
        "zone_name",
        "view_name",
        "expected",
        "actual",
        "expected_ttl",
        "actual_ttl",
        "server",
        "message",
    ]


def render_table(items: Sequence[ReportItem], title: str = "DNS Verification Report") -> Table:
    """Build a rich table for a list of result items."""
    table = Table(title=title)
    columns = _columns(items)
    for column in columns:
        table.add_column(HEADERS[column], overflow="fold")
    for row in _rows(items):
        table.add_row(*(_stringify(row[column]) for column in columns))
    return table


def write_report(
    items: Sequence[ReportItem], path: str, fmt: str = "table", title: str = "DNS Verification Report"
) -> bool:
    """
    Write result items to a report file.

    Args:
        items: Discrepancies, successful validations or missing records
        path: Output file path
        fmt: One of table, csv, json
        title: Table title (table format only)

    Returns:
        True if a file was written, False when there was nothing to report
    """
    if fmt not in REPORT_FORMATS:
        raise ValueError(f"Unsupported report format: {fmt}")

    if not items:
        logger.info(f"Nothing to report for {path}")
        return False

    rows = _rows(items)
    with open(path, "w", newline="") as f:
        if fmt == "json":
            json.dump(rows, f, indent=2)
            f.write("\n")
        elif fmt == "csv":
            columns = _columns(items)
            writer = csv.writer(f)
            writer.writerow([HEADERS[column] for column in columns])
            for row in rows:
                writer.writerow([_stringify(row[column]) for column in columns])
        else:
            console = Console(file=f, width=200, force_terminal=False, color_system=None)
            console.print(render_table(items, title))

    logger.info(f"Wrote {len(items)} entries to {path} ({fmt})")
    return True
