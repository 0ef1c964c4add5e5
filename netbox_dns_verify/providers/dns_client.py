"""
DNS Client - Query and zone transfer gateway for authoritative servers

This module wraps the dnspython primitives the validation engines rely on:
a non-recursive query with bounded retries and a (optionally TSIG-signed)
zone transfer.
"""

import ipaddress
import logging
import threading
import time
from typing import Dict, List, Optional, Union

import dns.exception
import dns.flags
import dns.message
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver
import dns.rrset
import dns.tsigkeyring
import dns.zone

from ..core.exceptions import DNSQueryError, NXDomainError, ZoneTransferError
from ..core.models import TSIGKey
from ..utils.validators import ensure_fqdn

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_RETRIES = 3
RETRY_BACKOFF = 1.0
TRANSFER_TIMEOUT = 300.0


class DNSClient:
    """Blocking DNS gateway used by the validation engines."""

    def __init__(self, config: Optional[Dict] = None):
        """Initialize DNS client with configuration."""
        config = config or {}
        self.port = int(config.get("port", 53))
        self.timeout = float(config.get("timeout", DEFAULT_TIMEOUT))
        self.retries = int(config.get("retries", DEFAULT_RETRIES))
        self.transfer_timeout = float(config.get("transfer_timeout", TRANSFER_TIMEOUT))

        self.resolver: Optional[dns.resolver.Resolver] = None
        self._addresses: Dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve_server(self, server: str) -> str:
        """Return the IP address of a name server, resolving host names once."""
        try:
            ipaddress.ip_address(server)
            return server
        except ValueError:
            pass

        with self._lock:
            address = self._addresses.get(server)
        if address:
            return address

        try:
            if self.resolver is None:
                self.resolver = dns.resolver.Resolver()
            answer = self.resolver.resolve(server, "A")
        except dns.exception.DNSException as e:
            raise DNSQueryError(f"cannot resolve name server {server}: {e}") from e

        address = answer[0].address
        with self._lock:
            self._addresses[server] = address
        logger.debug(f"Resolved name server {server} to {address}")
        return address

    def query(
        self,
        fqdn: str,
        record_type: Union[str, int],
        server: str,
        retries: Optional[int] = None,
    ) -> List[dns.rrset.RRset]:
        """
        Query an authoritative server for one name and type.

        Each failed attempt is followed by a pause of ``attempt`` seconds
        before the next one.

        Args:
            fqdn: Name to query
            record_type: Record type, as text or number
            server: Name server host name or address
            retries: Number of attempts (default from configuration)

        Returns:
            The answer section; empty when the name exists without data

        Raises:
            NXDomainError: The server answered NXDOMAIN
            DNSQueryError: No usable answer after all attempts
        """
        retries = retries or self.retries
        rdtype = dns.rdatatype.RdataType.make(record_type)
        address = self.resolve_server(server)

        request = dns.message.make_query(ensure_fqdn(fqdn), rdtype)
        request.flags &= ~dns.flags.RD

        last_error: Optional[Exception] = None
        for attempt in range(1, retries + 1):
            logger.debug(
                f"Querying {fqdn} {dns.rdatatype.to_text(rdtype)} on {server} (attempt {attempt})"
            )
            try:
                response = self._exchange(request, address)
            except (dns.exception.DNSException, OSError, EOFError) as e:
                last_error = e
                logger.warning(
                    f"DNS query failed for {fqdn} on {server} (attempt {attempt}/{retries}): {e}"
                )
            else:
                rcode = response.rcode()
                if rcode == dns.rcode.NXDOMAIN:
                    raise NXDomainError(f"{fqdn} does not exist on {server}")
                if rcode == dns.rcode.NOERROR:
                    return list(response.answer)

                last_error = DNSQueryError(f"server answered {dns.rcode.to_text(rcode)}")
                logger.warning(
                    f"DNS query for {fqdn} on {server} answered {dns.rcode.to_text(rcode)} "
                    f"(attempt {attempt}/{retries})"
                )

            if attempt < retries:
                time.sleep(attempt * RETRY_BACKOFF)

        logger.error(f"All DNS query attempts failed for {fqdn} on {server}: {last_error}")
        raise DNSQueryError(f"failed to query DNS after {retries} retries: {last_error}")

    def _exchange(self, request: dns.message.Message, address: str) -> dns.message.Message:
        """Send a query over UDP, falling back to TCP for truncated answers."""
        response = dns.query.udp(request, address, timeout=self.timeout, port=self.port)
        if response.flags & dns.flags.TC:
            response = dns.query.tcp(request, address, timeout=self.timeout, port=self.port)
        return response

    def transfer(
        self, zone: str, server: str, tsig_key: Optional[TSIGKey] = None
    ) -> List[dns.rrset.RRset]:
        """
        Transfer a whole zone with AXFR.

        Args:
            zone: Zone name
            server: Name server host name or address
            tsig_key: Optional key used to sign the transfer

        Returns:
            Every RRset of the zone, with absolute owner names

        Raises:
            ZoneTransferError: The transfer was refused or failed
        """
        try:
            address = self.resolve_server(server)
        except DNSQueryError as e:
            raise ZoneTransferError(str(e)) from e

        kwargs = {}
        if tsig_key:
            kwargs = {
                "keyring": dns.tsigkeyring.from_text({tsig_key.name: tsig_key.secret}),
                "keyname": tsig_key.name,
                "keyalgorithm": tsig_key.algorithm.dns_name,
            }

        logger.info(f"Transferring zone {zone} from {server}")
        try:
            xfr = dns.query.xfr(
                address,
                ensure_fqdn(zone),
                port=self.port,
                lifetime=self.transfer_timeout,
                relativize=False,
                **kwargs,
            )
            zone_obj = dns.zone.from_xfr(xfr, relativize=False)
        except (dns.exception.DNSException, OSError, EOFError) as e:
            raise ZoneTransferError(f"AXFR of {zone} from {server} failed: {e}") from e

        rrsets = []
        for name, rdataset in zone_obj.iterate_rdatasets():
            rrset = dns.rrset.RRset(name, rdataset.rdclass, rdataset.rdtype)
            rrset.update(rdataset)
            rrsets.append(rrset)

        logger.info(f"Transferred {len(rrsets)} RRsets for zone {zone} from {server}")
        return rrsets
