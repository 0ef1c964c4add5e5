"""
Validation Engine - Compare inventory records with authoritative answers

Each comparison unit is validated in its own task: every authoritative
server for the unit's zone and view is queried and its answer compared with
the expected values and TTL. Address records additionally get their reverse
mapping checked, once per reverse name.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import dns.rdatatype

from .authority import AuthorityResolver
from .exceptions import DNSQueryError, NXDomainError
from .grouping import ZoneIndex, expected_state, group_records, lookup_zone, zone_ttl
from .models import (
    ComparisonUnit,
    Discrepancy,
    ExpectedState,
    InventoryRecord,
    ValidationRecord,
    VerificationResult,
)
from .rdata import reduce_answer
from ..utils.validators import ensure_fqdn, reverse_name

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 16

Outcome = Tuple[List[Discrepancy], List[ValidationRecord]]


def run_parallel(
    task: Callable[..., Outcome],
    jobs: Dict[Hashable, tuple],
    workers: int = DEFAULT_WORKERS,
) -> VerificationResult:
    """
    Run one task per job on a thread pool and collect the outcomes.

    A task that raises is logged and contributes nothing; the others are
    unaffected.

    Args:
        task: Callable returning (discrepancies, successes) or a
            VerificationResult
        jobs: Mapping of job key to the positional arguments of the task
        workers: Maximum number of concurrent tasks

    Returns:
        The merged results, once every task has finished
    """
    result = VerificationResult()
    if not jobs:
        return result

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        future_to_key = {executor.submit(task, *args): key for key, args in jobs.items()}
        for future in as_completed(future_to_key):
            key = future_to_key[future]
            try:
                outcome = future.result()
            except Exception:
                logger.exception(f"Validation task {key} failed")
                continue
            if isinstance(outcome, VerificationResult):
                result.extend(outcome)
            else:
                discrepancies, successes = outcome
                result.discrepancies.extend(discrepancies)
                result.successes.extend(successes)
    return result


def values_match(expected: Sequence[str], actual: Sequence[str]) -> bool:
    """Compare two value lists as multisets, ignoring order."""
    return Counter(expected) == Counter(actual)


class PTRClaimSet:
    """Thread-safe set of reverse names already taken by a validation task."""

    def __init__(self):
        self._claimed = set()
        self._lock = threading.Lock()

    def claim(self, key: Hashable) -> bool:
        """Claim a key; True only for the first caller."""
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._claimed

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)


class RecordValidator:
    """Validates every non-SOA record group against its authoritative servers."""

    def __init__(
        self,
        dns_client,
        authority: AuthorityResolver,
        zones: Optional[ZoneIndex] = None,
        record_successful: bool = False,
        check_ptr: bool = True,
        workers: int = DEFAULT_WORKERS,
        retries: int = 3,
    ):
        self.dns_client = dns_client
        self.authority = authority
        self.zones = zones or {}
        self.record_successful = record_successful
        self.check_ptr = check_ptr
        self.workers = workers
        self.retries = retries

        self.claims = PTRClaimSet()
        self._ptr_index: Dict[Tuple[str, str], List[InventoryRecord]] = {}

    def validate_all(
        self,
        records: Iterable[InventoryRecord],
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
    ) -> VerificationResult:
        """Validate all records except SOA, one task per comparison unit."""
        records = list(records)
        groups = group_records(records, zone_filter, view_filter, skip_managed_ptr=self.check_ptr)
        if self.check_ptr:
            self._ptr_index = build_ptr_index(records)

        logger.info(f"Validating {len(groups)} record groups with {self.workers} workers")
        jobs = {unit: (unit, recs) for unit, recs in groups.items()}
        result = run_parallel(self._validate_group, jobs, self.workers)

        logger.info(
            f"Record validation complete: {len(result.discrepancies)} discrepancies, "
            f"{len(result.successes)} successful validations"
        )
        return result

    def _validate_group(self, unit: ComparisonUnit, records: List[InventoryRecord]) -> Outcome:
        discrepancies: List[Discrepancy] = []
        successes: List[ValidationRecord] = []

        servers = self.authority.servers_for(unit)
        if servers is not None:
            discrepancies, successes = self.validate_unit(unit, records, servers)

        if self.check_ptr and unit.record_type in ("A", "AAAA"):
            for record in records:
                ptr_discrepancies, ptr_successes = self._validate_reverse(unit, record)
                discrepancies.extend(ptr_discrepancies)
                successes.extend(ptr_successes)

        return discrepancies, successes

    def validate_unit(
        self, unit: ComparisonUnit, records: List[InventoryRecord], servers: Sequence[str]
    ) -> Outcome:
        """
        Validate one comparison unit against each of its servers.

        Args:
            unit: The unit being validated
            records: Inventory records sharing the unit
            servers: Authoritative servers to query

        Returns:
            (discrepancies, successes); successes only when record_successful
        """
        expected = expected_state(unit, records, self.zones)

        try:
            dns.rdatatype.from_text(unit.record_type)
        except dns.rdatatype.UnknownRdatatype:
            logger.error(f"Unknown record type {unit.record_type} for {unit.fqdn}")
            return [
                Discrepancy(
                    fqdn=unit.fqdn,
                    record_type=unit.record_type,
                    zone_name=unit.zone_name,
                    view_name=unit.view_name,
                    message="Unknown record type",
                )
            ], []

        return self.check_servers(unit, expected, servers)

    def check_servers(
        self, unit: ComparisonUnit, expected: ExpectedState, servers: Sequence[str]
    ) -> Outcome:
        """Query each server for a unit and classify its answer."""
        discrepancies = []
        successes = []
        for server in servers:
            logger.debug(
                f"Validating {unit.fqdn} {unit.record_type} on {server}, expecting {list(expected.values)}"
            )
            discrepancy, success = self._check_server(unit, expected, server)
            if discrepancy:
                discrepancies.append(discrepancy)
            if success:
                successes.append(success)
        return discrepancies, successes

    def _check_server(
        self, unit: ComparisonUnit, expected: ExpectedState, server: str
    ) -> Tuple[Optional[Discrepancy], Optional[ValidationRecord]]:
        common = dict(
            fqdn=unit.fqdn,
            record_type=unit.record_type,
            zone_name=unit.zone_name,
            view_name=unit.view_name,
            expected=expected.values,
            expected_ttl=expected.ttl,
            server=server,
        )

        try:
            answer = self.dns_client.query(unit.fqdn, unit.record_type, server, self.retries)
        except NXDomainError:
            logger.warning(f"NXDOMAIN received for {unit.fqdn} from {server}")
            return Discrepancy(actual=(), message="Record missing (NXDOMAIN)", **common), None
        except DNSQueryError as e:
            logger.warning(f"DNS query error for {unit.fqdn} on {server}: {e}")
            return Discrepancy(actual=None, message=f"DNS query error: {e}", **common), None

        if not answer:
            logger.warning(f"No DNS answer for {unit.fqdn} {unit.record_type} from {server}")
            return Discrepancy(actual=(), message="Record missing", **common), None

        values, ttl = reduce_answer(answer, unit.fqdn)
        if not values_match(expected.values, values) or expected.ttl != ttl:
            logger.warning(f"Record values or TTL mismatch for {unit.fqdn} {unit.record_type} on {server}")
            return (
                Discrepancy(
                    actual=tuple(values),
                    actual_ttl=ttl,
                    message="Record values or TTL mismatch",
                    **common,
                ),
                None,
            )

        logger.debug(f"Records validated successfully: {unit.fqdn} {unit.record_type} on {server}")
        if not self.record_successful:
            return None, None
        return None, ValidationRecord(actual=tuple(values), actual_ttl=ttl, **common)

    def _validate_reverse(self, unit: ComparisonUnit, record: InventoryRecord) -> Outcome:
        """Validate the PTR record of an address record, unless already claimed."""
        if record.disable_ptr:
            return [], []

        name = reverse_name(record.value)
        if not name or not self.claims.claim((name, unit.view_name)):
            return [], []

        zone_name = self.authority.find_zone(name, unit.view_name)
        if not zone_name:
            logger.warning(
                f"No reverse zone found for {name} in view {unit.view_name}, skipping PTR validation"
            )
            return [], []

        forward = self._ptr_index.get((name, unit.view_name)) or [record]
        ptr_unit = ComparisonUnit(
            fqdn=name, record_type="PTR", zone_name=zone_name, view_name=unit.view_name
        )
        # An explicit address TTL carries over; otherwise the reverse zone default applies.
        if record.ttl and record.ttl > 0:
            ttl = record.ttl
        else:
            ttl = zone_ttl(lookup_zone(self.zones, zone_name, unit.view_name))
        expected = ExpectedState(
            values=tuple(dict.fromkeys(ensure_fqdn(r.fqdn) for r in forward)),
            ttl=ttl,
        )
        return self.check_servers(ptr_unit, expected, self.authority.lookup(zone_name, unit.view_name))


def build_ptr_index(records: Iterable[InventoryRecord]) -> Dict[Tuple[str, str], List[InventoryRecord]]:
    """Index address records with reverse mapping enabled by (reverse name, view)."""
    index: Dict[Tuple[str, str], List[InventoryRecord]] = {}
    for record in records:
        if record.record_type not in ("A", "AAAA") or record.disable_ptr:
            continue
        name = reverse_name(record.value)
        if name:
            index.setdefault((name, record.view_name), []).append(record)
    return index
