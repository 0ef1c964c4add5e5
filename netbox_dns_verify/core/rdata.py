"""
Reduction of DNS answers to comparable values.

Every record kind the inventory stores is mapped to one extractor. Kinds
without a dedicated extractor fall back to their presentation text.
"""

import logging
from typing import Callable, Dict, Iterable, List, Tuple

import dns.rdatatype
import dns.rrset

logger = logging.getLogger(__name__)


def _address(rdata) -> str:
    return rdata.address


def _target(rdata) -> str:
    return rdata.target.to_text()


def _txt(rdata) -> str:
    return "".join(part.decode("utf-8", errors="replace") for part in rdata.strings)


def _text(rdata) -> str:
    return rdata.to_text()


EXTRACTORS: Dict[int, Callable] = {
    dns.rdatatype.A: _address,
    dns.rdatatype.AAAA: _address,
    dns.rdatatype.CNAME: _target,
    dns.rdatatype.NS: _target,
    dns.rdatatype.PTR: _target,
    dns.rdatatype.DNAME: _target,
    dns.rdatatype.TXT: _txt,
}


def extract_value(rdtype: int, rdata) -> str:
    """Return the comparable value of one rdata."""
    return EXTRACTORS.get(rdtype, _text)(rdata)


def reduce_answer(rrsets: Iterable[dns.rrset.RRset], fqdn: str = "") -> Tuple[List[str], int]:
    """
    Reduce an answer section to its values and TTL.

    The TTL is the first one seen; differing TTLs in one answer are logged.

    Returns:
        (values, ttl) where ttl is 0 for an empty answer
    """
    values: List[str] = []
    ttl = 0
    for rrset in rrsets:
        for rdata in rrset:
            values.append(extract_value(rrset.rdtype, rdata))
        if not ttl:
            ttl = rrset.ttl
        elif ttl != rrset.ttl:
            logger.warning(f"Multiple TTLs in DNS response for {fqdn or rrset.name}")
    return values, ttl
