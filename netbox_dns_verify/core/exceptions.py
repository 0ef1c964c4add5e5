"""
Exceptions raised by the DNS verification engine and its collaborators.
"""

from typing import Optional


class DNSVerifyError(Exception):
    """Base class for all errors raised by netbox-dns-verify."""


class ConfigurationError(DNSVerifyError):
    """Raised when the configuration is incomplete or invalid."""


class NetBoxAPIError(DNSVerifyError):
    """Raised when the NetBox API returns an error or an unparseable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DNSQueryError(DNSVerifyError):
    """Raised when a DNS query could not be answered after all retries."""


class NXDomainError(DNSQueryError):
    """Raised when an authoritative server answers NXDOMAIN."""


class ZoneTransferError(DNSVerifyError):
    """Raised when a zone transfer (AXFR) fails."""


class TSIGKeyError(DNSVerifyError, ValueError):
    """Raised when a TSIG key file cannot be read or parsed."""
