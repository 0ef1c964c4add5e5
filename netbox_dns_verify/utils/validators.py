"""
Validators - Name and value normalisation for DNS comparison

This module provides the helpers that turn inventory values into the form
an authoritative server returns them in, so they can be compared directly.
"""

import ipaddress
import logging
from typing import Optional

import dns.exception
import dns.reversename

logger = logging.getLogger(__name__)


def ensure_fqdn(name: str) -> str:
    """
    Return a name in canonical absolute form (trailing dot).

    Args:
        name: A domain name, absolute or not

    Returns:
        The name with exactly one trailing dot; an empty name stays empty
    """
    if not name:
        return name
    name = name.strip()
    return name if name.endswith(".") else name + "."


def qualify_cname(value: str, zone_name: str) -> str:
    """
    Qualify a CNAME target relative to its zone.

    Values that already end with the root label are returned untouched, so
    qualifying twice never appends the zone a second time.

    Args:
        value: CNAME target as stored in the inventory
        zone_name: Name of the zone owning the record

    Returns:
        The absolute target name
    """
    value = value.strip()
    if value.endswith("."):
        return value

    zone = zone_name.strip().rstrip(".")
    if zone:
        return f"{value}.{zone}."
    return value + "."


def validate_ip_address(address: str) -> bool:
    """
    Validate an IPv4 or IPv6 address.

    Args:
        address: The address to validate

    Returns:
        True if valid, False otherwise
    """
    if not address or not isinstance(address, str):
        return False

    try:
        ipaddress.ip_address(address.strip())
        return True
    except ValueError:
        logger.warning(f"Invalid IP address: {address}")
        return False


def reverse_name(address: str) -> Optional[str]:
    """
    Derive the reverse-mapping (PTR) name of an address.

    Args:
        address: IPv4 or IPv6 address

    Returns:
        The in-addr.arpa / ip6.arpa name, or None for an invalid address
    """
    if not validate_ip_address(address):
        return None
    try:
        return dns.reversename.from_address(address.strip()).to_text()
    except dns.exception.SyntaxError:
        logger.warning(f"Cannot derive reverse name for {address}")
        return None


def unquote_txt(value: str) -> str:
    """Strip one pair of surrounding double quotes from a TXT value."""
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value

