"""
Mock inventory provider for testing and demonstration.

This module provides an inventory provider that serves records, name servers
and zones from memory, optionally loaded from a YAML file.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import yaml

from .base_provider import InventoryProvider
from .netbox_provider import parse_nameserver, parse_record, parse_zone
from ..core.grouping import ZoneIndex, index_zones
from ..core.models import InventoryRecord, Nameserver, Zone

logger = logging.getLogger(__name__)


class MockInventoryProvider(InventoryProvider):
    """In-memory inventory provider for testing and dry runs."""

    def __init__(
        self,
        records: Optional[List[InventoryRecord]] = None,
        nameservers: Optional[List[Nameserver]] = None,
        zones: Optional[Iterable[Zone]] = None,
    ):
        """Initialize mock provider."""
        self.records = list(records or [])
        self.nameservers = list(nameservers or [])
        self.zones = index_zones(zones or [])
        logger.info("Mock inventory provider initialized")

    @classmethod
    def from_file(cls, path: str) -> "MockInventoryProvider":
        """
        Load an inventory from a YAML file using the NetBox API layout.

        The file holds ``records``, ``nameservers`` and ``zones`` lists shaped
        like the corresponding API results.
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        zones = [parse_zone(item) for item in data.get("zones", [])]
        return cls(
            records=[parse_record(item) for item in data.get("records", [])],
            nameservers=[parse_nameserver(item) for item in data.get("nameservers", [])],
            zones=[zone for zone in zones if zone],
        )

    def get_records(
        self,
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
        zones_to_validate: Optional[Sequence[str]] = None,
    ) -> List[InventoryRecord]:
        """Get all DNS records."""
        records = [
            record
            for record in self.records
            if (not zone_filter or record.zone_name == zone_filter)
            and (not view_filter or record.view_name == view_filter)
            and (not zones_to_validate or record.zone_name in zones_to_validate)
        ]
        logger.info(f"Mock: Retrieved {len(records)} records")
        return records

    def get_nameservers(self, nameserver_filter: Optional[str] = None) -> List[Nameserver]:
        """Get name servers."""
        return [ns for ns in self.nameservers if not nameserver_filter or ns.name == nameserver_filter]

    def get_zones(self) -> ZoneIndex:
        """Get zone metadata."""
        return dict(self.zones)
