"""
Authority Resolver - Which name servers answer for which zone and view

Built from the nameserver inventory; records whose zone and view do not map
to any server are skipped, or checked against the configured fallback list
when the ALL_SERVERS policy is selected.
"""

import enum
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import ComparisonUnit, Nameserver

logger = logging.getLogger(__name__)


class MissingAuthorityPolicy(enum.Enum):
    """What to do with a record whose zone has no known name server."""

    SKIP = "skip"
    ALL_SERVERS = "all"


class AuthorityResolver:
    """Maps (zone, view) pairs to their authoritative name servers."""

    def __init__(
        self,
        nameservers: Iterable[Nameserver],
        policy: MissingAuthorityPolicy = MissingAuthorityPolicy.SKIP,
        fallback_servers: Sequence[str] = (),
    ):
        self.policy = policy
        self.fallback_servers = list(fallback_servers)
        self._servers: Dict[Tuple[str, str], List[str]] = {}

        for ns in nameservers:
            for zone in ns.zones:
                if zone.view is None:
                    logger.warning(f"Zone {zone.name} has no associated view")
                    continue
                servers = self._servers.setdefault((zone.name.lower(), zone.view.name), [])
                if ns.name not in servers:
                    servers.append(ns.name)

        logger.info(f"Authority map built for {len(self._servers)} zone/view pairs")

    def lookup(self, zone_name: str, view_name: str) -> List[str]:
        """Return the servers registered for a zone in a view, possibly none."""
        return list(self._servers.get((zone_name.lower(), view_name), []))

    def servers_for(self, unit: ComparisonUnit) -> Optional[List[str]]:
        """
        Return the servers a comparison unit must be checked against.

        Returns:
            The server list, or None when the unit is to be skipped
        """
        if not unit.zone_name or not unit.view_name:
            reason = f"No zone or view information for record {unit.fqdn}"
        else:
            servers = self.lookup(unit.zone_name, unit.view_name)
            if servers:
                return servers
            reason = (
                f"No nameservers found for zone {unit.zone_name} in view {unit.view_name}"
            )

        if self.policy is MissingAuthorityPolicy.ALL_SERVERS and self.fallback_servers:
            logger.warning(f"{reason}, using all servers")
            return list(self.fallback_servers)

        logger.warning(f"{reason}, skipping validation")
        return None

    def find_zone(self, name: str, view_name: str) -> Optional[str]:
        """
        Find the most specific registered zone containing a name in a view.

        Args:
            name: Absolute domain name
            view_name: View to search

        Returns:
            The zone name as registered, or None
        """
        labels = name.lower().rstrip(".").split(".")
        for i in range(len(labels)):
            candidate = ".".join(labels[i:])
            for suffix in (candidate, candidate + "."):
                if (suffix, view_name) in self._servers:
                    return suffix
        return None
