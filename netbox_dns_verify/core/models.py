"""
Data model for DNS verification.

Inventory entities mirror the objects served by the NetBox DNS plugin; result
entities (Discrepancy, ValidationRecord, MissingRecord) are what the engines
produce. Everything is immutable and rebuilt on every run.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import dns.tsig

# TTL used when neither the record nor its zone carries one.
FALLBACK_TTL = 86400


@dataclass(frozen=True)
class View:
    """A NetBox DNS view (split-horizon partition)."""

    name: str
    id: Optional[int] = None


@dataclass(frozen=True)
class Zone:
    """A NetBox DNS zone with the TTL metadata needed for comparison."""

    name: str
    view: Optional[View] = None
    default_ttl: Optional[int] = None
    soa_ttl: Optional[int] = None
    id: Optional[int] = None

    @property
    def view_name(self) -> str:
        return self.view.name if self.view else ""


@dataclass(frozen=True)
class InventoryRecord:
    """A single record as stored in the source-of-truth inventory."""

    fqdn: str
    type: str
    value: str
    name: str = ""
    ttl: Optional[int] = None
    zone: Optional[Zone] = None
    disable_ptr: bool = False
    managed: bool = False
    id: Optional[int] = None

    @property
    def record_type(self) -> str:
        return self.type.upper()

    @property
    def zone_name(self) -> str:
        return self.zone.name if self.zone else ""

    @property
    def view_name(self) -> str:
        return self.zone.view_name if self.zone else ""

    @property
    def zone_default_ttl(self) -> Optional[int]:
        return self.zone.default_ttl if self.zone else None

    @property
    def is_apex(self) -> bool:
        return self.name == "@"


@dataclass(frozen=True)
class Nameserver:
    """An authoritative name server and the zones it serves."""

    name: str
    zones: Tuple[Zone, ...] = ()
    id: Optional[int] = None


@dataclass(frozen=True)
class ComparisonUnit:
    """Key under which inventory records are compared against one DNS answer."""

    fqdn: str
    record_type: str
    zone_name: str
    view_name: str


@dataclass(frozen=True)
class ExpectedState:
    """Values and TTL a server is expected to return for a comparison unit."""

    values: Tuple[str, ...]
    ttl: int


@dataclass(frozen=True)
class SOARecord:
    """The seven fields of an SOA record."""

    mname: str
    rname: str
    serial: int
    refresh: int
    retry: int
    expire: int
    minimum: int

    @classmethod
    def from_text(cls, value: str) -> "SOARecord":
        """
        Parse an SOA value of seven space-separated fields.

        Raises:
            ValueError: If the value does not hold exactly seven fields or a
                numeric field is not an integer.
        """
        parts = value.split()
        if len(parts) != 7:
            raise ValueError(f"SOA value must have 7 fields, got {len(parts)}: {value!r}")
        return cls(parts[0], parts[1], *(int(part) for part in parts[2:]))

    @classmethod
    def from_rdata(cls, rdata) -> "SOARecord":
        """Build an SOARecord from a dnspython SOA rdata."""
        return cls(
            mname=rdata.mname.to_text(),
            rname=rdata.rname.to_text(),
            serial=rdata.serial,
            refresh=rdata.refresh,
            retry=rdata.retry,
            expire=rdata.expire,
            minimum=rdata.minimum,
        )

    def matches(self, other: "SOARecord", ignore_serial: bool = False) -> bool:
        """Compare field by field, optionally ignoring the serial number."""
        if (
            self.mname != other.mname
            or self.rname != other.rname
            or self.refresh != other.refresh
            or self.retry != other.retry
            or self.expire != other.expire
            or self.minimum != other.minimum
        ):
            return False
        return ignore_serial or self.serial == other.serial

    def to_text(self) -> str:
        return (
            f"{self.mname} {self.rname} {self.serial} {self.refresh} "
            f"{self.retry} {self.expire} {self.minimum}"
        )

    def __str__(self) -> str:
        return self.to_text()


RecordState = Union[Tuple[str, ...], SOARecord, None]


def _state_to_json(state: RecordState) -> Any:
    if state is None:
        return None
    if isinstance(state, SOARecord):
        return state.to_text()
    return list(state)


@dataclass(frozen=True)
class _Result:
    fqdn: str
    record_type: str
    zone_name: str = ""
    expected: RecordState = None
    actual: RecordState = None
    expected_ttl: int = 0
    actual_ttl: int = 0
    server: str = ""
    message: str = ""
    view_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fqdn": self.fqdn,
            "record_type": self.record_type,
            "zone_name": self.zone_name,
            "view_name": self.view_name,
            "expected": _state_to_json(self.expected),
            "actual": _state_to_json(self.actual),
            "expected_ttl": self.expected_ttl,
            "actual_ttl": self.actual_ttl,
            "server": self.server,
            "message": self.message,
        }


@dataclass(frozen=True)
class Discrepancy(_Result):
    """Mismatch between the inventory and what a server answered.

    ``actual`` is ``None`` when the server could not be queried at all, and an
    empty tuple when the record is missing.
    """


@dataclass(frozen=True)
class ValidationRecord(_Result):
    """A server answer that matched the inventory exactly."""

    message: str = "Record validated successfully"


@dataclass(frozen=True)
class MissingRecord:
    """A record served by DNS with no counterpart in the inventory."""

    fqdn: str
    record_type: str
    zone_name: str
    values: Tuple[str, ...]
    ttl: int
    server: str
    message: str = "Record missing in NetBox"
    view_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fqdn": self.fqdn,
            "record_type": self.record_type,
            "zone_name": self.zone_name,
            "view_name": self.view_name,
            "values": list(self.values),
            "ttl": self.ttl,
            "server": self.server,
            "message": self.message,
        }


class TSIGAlgorithm(enum.Enum):
    """HMAC algorithms accepted in TSIG key files."""

    HMAC_MD5 = "HMAC-MD5.SIG-ALG.REG.INT"
    HMAC_SHA1 = "HMAC-SHA1"
    HMAC_SHA256 = "HMAC-SHA256"
    HMAC_SHA512 = "HMAC-SHA512"

    @property
    def dns_name(self):
        """The algorithm name as dnspython expects it."""
        return {
            TSIGAlgorithm.HMAC_MD5: dns.tsig.HMAC_MD5,
            TSIGAlgorithm.HMAC_SHA1: dns.tsig.HMAC_SHA1,
            TSIGAlgorithm.HMAC_SHA256: dns.tsig.HMAC_SHA256,
            TSIGAlgorithm.HMAC_SHA512: dns.tsig.HMAC_SHA512,
        }[self]


@dataclass(frozen=True)
class TSIGKey:
    """Shared secret used to sign zone transfers."""

    name: str
    secret: str
    algorithm: TSIGAlgorithm


@dataclass
class VerificationResult:
    """Everything a verification run produced."""

    discrepancies: List[Discrepancy] = field(default_factory=list)
    successes: List[ValidationRecord] = field(default_factory=list)
    missing_records: List[MissingRecord] = field(default_factory=list)

    def extend(self, other: "VerificationResult") -> None:
        self.discrepancies.extend(other.discrepancies)
        self.successes.extend(other.successes)
        self.missing_records.extend(other.missing_records)
