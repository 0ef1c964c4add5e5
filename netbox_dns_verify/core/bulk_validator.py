"""
Bulk Reconciliation Engine - Whole-zone comparison through zone transfer

Instead of querying every name, each zone is transferred once from one of
its authoritative servers and compared with the inventory in memory. As the
full zone contents are known, records that exist in DNS but not in the
inventory are reported as well.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

import dns.rdatatype
import dns.rrset

from .authority import AuthorityResolver
from .exceptions import ZoneTransferError
from .grouping import (
    ZoneIndex,
    expected_state,
    group_records,
    matches_filters,
    resolve_soa_ttl,
    soa_records,
)
from .models import (
    ComparisonUnit,
    Discrepancy,
    InventoryRecord,
    MissingRecord,
    SOARecord,
    TSIGKey,
    ValidationRecord,
    VerificationResult,
)
from .rdata import reduce_answer
from .validator import DEFAULT_WORKERS, run_parallel, values_match
from ..utils.validators import ensure_fqdn

logger = logging.getLogger(__name__)

RRsetIndex = Dict[Tuple[str, str], dns.rrset.RRset]


def index_rrsets(rrsets: Iterable[dns.rrset.RRset]) -> RRsetIndex:
    """Index transferred RRsets by (lower-cased owner name, type)."""
    index: RRsetIndex = OrderedDict()
    for rrset in rrsets:
        key = (rrset.name.to_text().lower(), dns.rdatatype.to_text(rrset.rdtype))
        if key in index:
            index[key].union_update(rrset)
        else:
            index[key] = rrset
    return index


class BulkValidator:
    """Validates whole zones against the inventory using AXFR."""

    def __init__(
        self,
        dns_client,
        authority: AuthorityResolver,
        zones: Optional[ZoneIndex] = None,
        tsig_key: Optional[TSIGKey] = None,
        ignore_serial_numbers: bool = False,
        record_successful: bool = False,
        workers: int = DEFAULT_WORKERS,
    ):
        self.dns_client = dns_client
        self.authority = authority
        self.zones = zones or {}
        self.tsig_key = tsig_key
        self.ignore_serial_numbers = ignore_serial_numbers
        self.record_successful = record_successful
        self.workers = workers

    def validate_all(
        self,
        records: Iterable[InventoryRecord],
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
    ) -> VerificationResult:
        """Validate every zone holding inventory records, one task per zone."""
        by_zone: Dict[Tuple[str, str], List[InventoryRecord]] = OrderedDict()
        for record in records:
            if not matches_filters(record, zone_filter, view_filter):
                continue
            if not record.zone_name or not record.view_name:
                logger.warning(f"No zone or view information for record {record.fqdn}, skipping")
                continue
            by_zone.setdefault((record.zone_name, record.view_name), []).append(record)

        logger.info(f"Validating {len(by_zone)} zones by zone transfer")
        jobs = {key: (key[0], key[1], zone_records) for key, zone_records in by_zone.items()}
        result = run_parallel(self.validate_zone, jobs, self.workers)

        logger.info(
            f"Zone validation complete: {len(result.discrepancies)} discrepancies, "
            f"{len(result.missing_records)} records missing in NetBox"
        )
        return result

    def validate_zone(
        self, zone_name: str, view_name: str, records: List[InventoryRecord]
    ) -> VerificationResult:
        """
        Transfer one zone and compare it with its inventory records.

        Args:
            zone_name: Zone to transfer
            view_name: View the zone belongs to
            records: Inventory records of that zone and view

        Returns:
            Discrepancies, successes and orphaned DNS records of the zone
        """
        result = VerificationResult()
        apex = ComparisonUnit(ensure_fqdn(zone_name), "AXFR", zone_name, view_name)
        servers = self.authority.servers_for(apex)
        if not servers:
            return result

        server = servers[0]
        groups = group_records(records)
        soas = soa_records(records)

        try:
            rrsets = self.dns_client.transfer(zone_name, server, self.tsig_key)
        except ZoneTransferError as e:
            logger.error(f"Zone transfer failed for {zone_name} from {server}: {e}")
            failed = dict(
                zone_name=zone_name, view_name=view_name, server=server, message=f"Zone transfer failed: {e}"
            )
            for unit in groups:
                expected = expected_state(unit, groups[unit], self.zones)
                result.discrepancies.append(
                    Discrepancy(
                        fqdn=unit.fqdn,
                        record_type=unit.record_type,
                        expected=expected.values,
                        expected_ttl=expected.ttl,
                        **failed,
                    )
                )
            for record in soas:
                try:
                    expected_soa = SOARecord.from_text(record.value)
                except ValueError:
                    expected_soa = None
                result.discrepancies.append(
                    Discrepancy(
                        fqdn=ensure_fqdn(record.fqdn),
                        record_type="SOA",
                        expected=expected_soa,
                        expected_ttl=resolve_soa_ttl(record, self.zones),
                        **failed,
                    )
                )
            return result

        index = index_rrsets(rrsets)
        seen = set()

        for unit, unit_records in groups.items():
            key = (unit.fqdn.lower(), unit.record_type)
            seen.add(key)
            self._compare_group(unit, unit_records, index.get(key), server, result)

        for record in soas:
            key = (ensure_fqdn(record.fqdn).lower(), "SOA")
            seen.add(key)
            self._compare_soa(record, index.get(key), server, result)

        for key, rrset in index.items():
            if key in seen:
                continue
            values, ttl = reduce_answer([rrset])
            logger.warning(f"Record missing in NetBox: {key[0]} {key[1]} (zone {zone_name})")
            result.missing_records.append(
                MissingRecord(
                    fqdn=rrset.name.to_text(),
                    record_type=key[1],
                    zone_name=zone_name,
                    values=tuple(values),
                    ttl=ttl,
                    server=server,
                    view_name=view_name,
                )
            )

        return result

    def _compare_group(
        self,
        unit: ComparisonUnit,
        records: List[InventoryRecord],
        rrset: Optional[dns.rrset.RRset],
        server: str,
        result: VerificationResult,
    ) -> None:
        try:
            dns.rdatatype.from_text(unit.record_type)
        except dns.rdatatype.UnknownRdatatype:
            logger.error(f"Unknown record type {unit.record_type} for {unit.fqdn}")
            result.discrepancies.append(
                Discrepancy(
                    fqdn=unit.fqdn,
                    record_type=unit.record_type,
                    zone_name=unit.zone_name,
                    view_name=unit.view_name,
                    message="Unknown record type",
                )
            )
            return

        expected = expected_state(unit, records, self.zones)
        common = dict(
            fqdn=unit.fqdn,
            record_type=unit.record_type,
            zone_name=unit.zone_name,
            view_name=unit.view_name,
            expected=expected.values,
            expected_ttl=expected.ttl,
            server=server,
        )

        if rrset is None:
            logger.warning(f"Record missing in DNS: {unit.fqdn} {unit.record_type}")
            result.discrepancies.append(Discrepancy(actual=(), message="Record missing in DNS", **common))
            return

        values, ttl = reduce_answer([rrset], unit.fqdn)
        if not values_match(expected.values, values) or expected.ttl != ttl:
            logger.warning(f"Record mismatch: {unit.fqdn} {unit.record_type}")
            result.discrepancies.append(
                Discrepancy(actual=tuple(values), actual_ttl=ttl, message="Record mismatch", **common)
            )
        elif self.record_successful:
            result.successes.append(ValidationRecord(actual=tuple(values), actual_ttl=ttl, **common))

    def _compare_soa(
        self,
        record: InventoryRecord,
        rrset: Optional[dns.rrset.RRset],
        server: str,
        result: VerificationResult,
    ) -> None:
        fqdn = ensure_fqdn(record.fqdn)
        try:
            expected = SOARecord.from_text(record.value)
        except ValueError as e:
            logger.warning(f"Invalid SOA record format for {fqdn}: {e}")
            result.discrepancies.append(
                Discrepancy(
                    fqdn=fqdn,
                    record_type="SOA",
                    zone_name=record.zone_name,
                    view_name=record.view_name,
                    message="Invalid SOA record format",
                )
            )
            return

        common = dict(
            fqdn=fqdn,
            record_type="SOA",
            zone_name=record.zone_name,
            view_name=record.view_name,
            expected=expected,
            expected_ttl=resolve_soa_ttl(record, self.zones),
            server=server,
        )

        if rrset is None or len(rrset) == 0:
            result.discrepancies.append(Discrepancy(actual=(), message="Record missing in DNS", **common))
            return

        actual = SOARecord.from_rdata(rrset[0])
        if not expected.matches(actual, self.ignore_serial_numbers) or common["expected_ttl"] != rrset.ttl:
            logger.warning(f"Record mismatch: {fqdn} SOA")
            result.discrepancies.append(
                Discrepancy(actual=actual, actual_ttl=rrset.ttl, message="Record mismatch", **common)
            )
        elif self.record_successful:
            result.successes.append(ValidationRecord(actual=actual, actual_ttl=rrset.ttl, **common))
