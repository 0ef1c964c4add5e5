"""
SOA Validation Engine - Compare inventory SOA records with live answers
"""

import logging
from typing import Iterable, List, Optional, Sequence

import dns.rdatatype

from .authority import AuthorityResolver
from .exceptions import DNSQueryError, NXDomainError
from .grouping import ZoneIndex, resolve_soa_ttl, soa_records, unit_for
from .models import Discrepancy, InventoryRecord, SOARecord, ValidationRecord, VerificationResult
from .validator import DEFAULT_WORKERS, Outcome, run_parallel

logger = logging.getLogger(__name__)


class SOAValidator:
    """Validates SOA records field by field, optionally ignoring serials."""

    def __init__(
        self,
        dns_client,
        authority: AuthorityResolver,
        zones: Optional[ZoneIndex] = None,
        ignore_serial_numbers: bool = False,
        record_successful: bool = False,
        workers: int = DEFAULT_WORKERS,
        retries: int = 3,
    ):
        self.dns_client = dns_client
        self.authority = authority
        self.zones = zones or {}
        self.ignore_serial_numbers = ignore_serial_numbers
        self.record_successful = record_successful
        self.workers = workers
        self.retries = retries

    def validate_all(
        self,
        records: Iterable[InventoryRecord],
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
    ) -> VerificationResult:
        """Validate every SOA record, one task per record."""
        jobs = {}
        for record in soa_records(records, zone_filter, view_filter):
            servers = self.authority.servers_for(unit_for(record))
            if servers is not None:
                jobs[(record.fqdn, record.view_name, len(jobs))] = (record, servers)

        logger.info(f"Validating {len(jobs)} SOA records")
        return run_parallel(self.validate_record, jobs, self.workers)

    def validate_record(self, record: InventoryRecord, servers: Sequence[str]) -> Outcome:
        """
        Validate one SOA record against each of its servers.

        A value that does not parse as seven fields is reported without
        querying any server.
        """
        try:
            expected = SOARecord.from_text(record.value)
        except ValueError as e:
            logger.warning(f"Invalid SOA record format for {record.fqdn}: {e}")
            return [
                Discrepancy(
                    fqdn=record.fqdn,
                    record_type="SOA",
                    zone_name=record.zone_name,
                    view_name=record.view_name,
                    message="Invalid SOA record format",
                )
            ], []

        expected_ttl = resolve_soa_ttl(record, self.zones)
        discrepancies: List[Discrepancy] = []
        successes: List[ValidationRecord] = []
        for server in servers:
            discrepancy, success = self._check_server(record, expected, expected_ttl, server)
            if discrepancy:
                discrepancies.append(discrepancy)
            if success:
                successes.append(success)
        return discrepancies, successes

    def _check_server(self, record: InventoryRecord, expected: SOARecord, expected_ttl: int, server: str):
        common = dict(
            fqdn=record.fqdn,
            record_type="SOA",
            zone_name=record.zone_name,
            view_name=record.view_name,
            expected=expected,
            expected_ttl=expected_ttl,
            server=server,
        )
        logger.debug(f"Validating SOA record {record.fqdn} on {server}")

        try:
            answer = self.dns_client.query(record.fqdn, "SOA", server, self.retries)
        except NXDomainError:
            logger.warning(f"NXDOMAIN received for SOA {record.fqdn} from {server}")
            return Discrepancy(actual=(), message="Record missing (NXDOMAIN)", **common), None
        except DNSQueryError as e:
            logger.warning(f"DNS query error for SOA {record.fqdn} on {server}: {e}")
            return Discrepancy(message=f"DNS query error: {e}", **common), None

        rrset = next((rrset for rrset in answer if rrset.rdtype == dns.rdatatype.SOA), None)
        if rrset is None or len(rrset) == 0:
            logger.warning(f"No DNS answer for SOA record {record.fqdn} from {server}")
            return Discrepancy(actual=(), message="Record missing", **common), None

        actual = SOARecord.from_rdata(rrset[0])
        if not expected.matches(actual, self.ignore_serial_numbers) or expected_ttl != rrset.ttl:
            logger.warning(f"SOA record mismatch for {record.fqdn} on {server}")
            return (
                Discrepancy(actual=actual, actual_ttl=rrset.ttl, message="SOA record mismatch", **common),
                None,
            )

        logger.info(f"SOA record validated successfully: {record.fqdn} on {server}")
        if not self.record_successful:
            return None, None
        return None, ValidationRecord(actual=actual, actual_ttl=rrset.ttl, **common)
