"""
Record Grouping - Partition inventory records into comparison units

All records sharing (FQDN, type, zone, view) are compared together against
one DNS answer per server. This module also works out the values and TTL a
server is expected to return for each unit.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import FALLBACK_TTL, ComparisonUnit, ExpectedState, InventoryRecord, Zone
from ..utils.validators import ensure_fqdn, qualify_cname, unquote_txt

logger = logging.getLogger(__name__)

# Zones are keyed by (name, view name); split-horizon views reuse zone names.
ZoneKey = Tuple[str, str]
ZoneIndex = Mapping[ZoneKey, Zone]


def index_zones(zones: Iterable[Zone]) -> Dict[ZoneKey, Zone]:
    """Index zone metadata by (zone name, view name)."""
    return {(zone.name, zone.view_name): zone for zone in zones}


def lookup_zone(zones: Optional[ZoneIndex], zone_name: str, view_name: str = "") -> Optional[Zone]:
    return (zones or {}).get((zone_name, view_name))


def zone_ttl(zone: Optional[Zone], soa: bool = False) -> int:
    """Return the default (or SOA) TTL of a zone, or FALLBACK_TTL."""
    if zone is not None:
        if soa and zone.soa_ttl:
            return zone.soa_ttl
        if zone.default_ttl:
            return zone.default_ttl
    return FALLBACK_TTL


def unit_for(record: InventoryRecord) -> ComparisonUnit:
    """Return the comparison unit a record belongs to."""
    return ComparisonUnit(
        fqdn=ensure_fqdn(record.fqdn),
        record_type=record.record_type,
        zone_name=record.zone_name,
        view_name=record.view_name,
    )


def matches_filters(
    record: InventoryRecord, zone_filter: Optional[str] = None, view_filter: Optional[str] = None
) -> bool:
    """Check a record against the optional zone and view filters."""
    if zone_filter and record.zone_name != zone_filter:
        return False
    if view_filter and record.view_name != view_filter:
        return False
    return True


def group_records(
    records: Iterable[InventoryRecord],
    zone_filter: Optional[str] = None,
    view_filter: Optional[str] = None,
    skip_managed_ptr: bool = False,
) -> Dict[ComparisonUnit, List[InventoryRecord]]:
    """
    Group inventory records into comparison units.

    SOA records are left out; they are validated on their own.

    Args:
        records: Inventory records
        zone_filter: Only keep records of this zone
        view_filter: Only keep records of this view
        skip_managed_ptr: Leave out PTR records the inventory generated itself

    Returns:
        Ordered mapping of unit to the records sharing it
    """
    groups: Dict[ComparisonUnit, List[InventoryRecord]] = OrderedDict()
    for record in records:
        if record.record_type == "SOA":
            continue
        if not matches_filters(record, zone_filter, view_filter):
            continue
        if skip_managed_ptr and record.record_type == "PTR" and record.managed:
            continue
        groups.setdefault(unit_for(record), []).append(record)

    logger.info(f"Grouped records into {len(groups)} comparison units")
    return groups


def soa_records(
    records: Iterable[InventoryRecord],
    zone_filter: Optional[str] = None,
    view_filter: Optional[str] = None,
) -> List[InventoryRecord]:
    """Return the SOA records that pass the filters."""
    return [
        record
        for record in records
        if record.record_type == "SOA" and matches_filters(record, zone_filter, view_filter)
    ]


def zone_metadata(record: InventoryRecord, zones: Optional[ZoneIndex] = None) -> Optional[Zone]:
    """Return the zone metadata for a record from its own zone and view."""
    return lookup_zone(zones, record.zone_name, record.view_name) or record.zone


def resolve_ttl(record: InventoryRecord, zones: Optional[ZoneIndex] = None) -> int:
    """
    Work out the TTL a record is served with.

    An explicit TTL wins. Apex NS records inherit the zone SOA TTL, other
    records the zone default TTL; FALLBACK_TTL applies when the zone has none.
    """
    if record.ttl and record.ttl > 0:
        return record.ttl

    zone = zone_metadata(record, zones)
    if zone is None:
        if record.zone_name:
            logger.warning(f"Zone {record.zone_name} not found for record {record.fqdn}")
        return FALLBACK_TTL

    if record.record_type == "NS" and record.is_apex and zone.soa_ttl:
        return zone.soa_ttl
    return zone_ttl(zone)


def resolve_soa_ttl(record: InventoryRecord, zones: Optional[ZoneIndex] = None) -> int:
    """Work out the TTL of an SOA record."""
    if record.ttl and record.ttl > 0:
        return record.ttl
    return zone_ttl(zone_metadata(record, zones), soa=True)


def expected_value(record: InventoryRecord) -> str:
    """Return a record value in the form a server answers with."""
    value = record.value.strip()
    if record.record_type == "CNAME":
        return qualify_cname(value, record.zone_name)
    if record.record_type == "TXT":
        return unquote_txt(value)
    return value


def expected_state(
    unit: ComparisonUnit, records: List[InventoryRecord], zones: Optional[ZoneIndex] = None
) -> ExpectedState:
    """
    Compute the values and TTL expected for a comparison unit.

    When the grouped records disagree on TTL the first one is kept and a
    warning is logged.
    """
    values = []
    ttl = 0
    for record in records:
        values.append(expected_value(record))
        record_ttl = resolve_ttl(record, zones)
        if not ttl:
            ttl = record_ttl
        elif ttl != record_ttl:
            logger.warning(
                f"Multiple TTLs for records with same FQDN and type: {unit.fqdn} {unit.record_type} "
                f"({ttl} kept, {record_ttl} ignored)"
            )
    return ExpectedState(values=tuple(values), ttl=ttl)
