"""
NetBox DNS Verify - Detect drift between NetBox DNS and live name servers

Compares the records held by the NetBox DNS plugin with the answers of the
authoritative name servers, reports discrepancies and writes nsupdate
scripts that bring the servers back in line.
"""

__version__ = "1.0.0"
__author__ = "NetBox DNS Verify Team"
__description__ = "Drift detection between NetBox DNS and authoritative name servers"

from .core.verifier import DNSVerifier
from .providers.dns_client import DNSClient
from .providers.netbox_provider import NetBoxProvider

__all__ = [
    "DNSVerifier",
    "DNSClient",
    "NetBoxProvider",
]
