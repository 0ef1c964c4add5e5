"""
Inventory and DNS providers.

This package contains the NetBox inventory provider, an in-memory mock
provider, and the DNS client used to query authoritative servers.
"""

from .base_provider import InventoryProvider
from .dns_client import DNSClient
from .mock_provider import MockInventoryProvider
from .netbox_provider import NetBoxProvider

__all__ = ["DNSClient", "InventoryProvider", "MockInventoryProvider", "NetBoxProvider"]
