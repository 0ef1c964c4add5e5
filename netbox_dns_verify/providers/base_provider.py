"""
Base inventory provider interface.

This module defines the abstract base class every source of truth for DNS
records must implement.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.grouping import ZoneIndex
from ..core.models import InventoryRecord, Nameserver


class InventoryProvider(ABC):
    """Abstract base class for DNS inventory sources."""

    @abstractmethod
    def get_records(
        self,
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
        zones_to_validate: Optional[Sequence[str]] = None,
    ) -> List[InventoryRecord]:
        """Get all DNS records, optionally filtered by zone and view."""
        pass

    @abstractmethod
    def get_nameservers(self, nameserver_filter: Optional[str] = None) -> List[Nameserver]:
        """Get the name servers and the zones they serve."""
        pass

    @abstractmethod
    def get_zones(self) -> ZoneIndex:
        """Get zone metadata keyed by (zone name, view name)."""
        pass
