"""
Core DNS verification functionality.

This package contains the reconciliation logic: authority resolution, record
grouping, the per-record and zone-transfer validators, and the nsupdate
script generator.
"""

from .authority import AuthorityResolver, MissingAuthorityPolicy
from .bulk_validator import BulkValidator
from .models import (
    Discrepancy,
    InventoryRecord,
    MissingRecord,
    Nameserver,
    ValidationRecord,
    VerificationResult,
    Zone,
)
from .nsupdate import build_nsupdate_scripts, write_nsupdate_scripts
from .soa_validator import SOAValidator
from .validator import RecordValidator

__all__ = [
    "AuthorityResolver",
    "BulkValidator",
    "Discrepancy",
    "InventoryRecord",
    "MissingAuthorityPolicy",
    "MissingRecord",
    "Nameserver",
    "RecordValidator",
    "SOAValidator",
    "ValidationRecord",
    "VerificationResult",
    "Zone",
    "build_nsupdate_scripts",
    "write_nsupdate_scripts",
]
