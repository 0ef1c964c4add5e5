"""
NetBox inventory provider.

This module reads records, name servers and zones from the REST API of the
NetBox DNS plugin, following its limit/offset pagination.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from .base_provider import InventoryProvider
from ..core.exceptions import NetBoxAPIError
from ..core.grouping import ZoneIndex, index_zones
from ..core.models import InventoryRecord, Nameserver, View, Zone

logger = logging.getLogger(__name__)

API_PREFIX = "/api/plugins/netbox-dns"
DEFAULT_PAGE_SIZE = 50


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_view(data: Optional[Dict]) -> Optional[View]:
    """Build a View from its API representation."""
    if not data:
        return None
    return View(name=data.get("name", ""), id=data.get("id"))


def parse_zone(data: Optional[Dict]) -> Optional[Zone]:
    """Build a Zone from its API representation."""
    if not data:
        return None
    return Zone(
        name=data.get("name", ""),
        view=parse_view(data.get("view")),
        default_ttl=_optional_int(data.get("default_ttl")),
        soa_ttl=_optional_int(data.get("soa_ttl")),
        id=data.get("id"),
    )


def parse_record(data: Dict) -> InventoryRecord:
    """Build an InventoryRecord from its API representation."""
    zone = parse_zone(data.get("zone"))
    if zone is None:
        logger.warning(f"Zone is missing for record {data.get('id')}")
    return InventoryRecord(
        fqdn=data.get("fqdn") or data.get("name", ""),
        type=data.get("type", ""),
        value=data.get("value", ""),
        name=data.get("name", ""),
        ttl=_optional_int(data.get("ttl")),
        zone=zone,
        disable_ptr=bool(data.get("disable_ptr", False)),
        managed=bool(data.get("managed", False)),
        id=data.get("id"),
    )


def parse_nameserver(data: Dict) -> Nameserver:
    """Build a Nameserver from its API representation."""
    zones = tuple(zone for zone in (parse_zone(z) for z in data.get("zones") or []) if zone)
    return Nameserver(name=data.get("name", ""), zones=zones, id=data.get("id"))


class NetBoxProvider(InventoryProvider):
    """Inventory provider backed by the NetBox DNS plugin API."""

    def __init__(self, config: Dict):
        """Initialize NetBox provider."""
        self.url = (config.get("url") or "").rstrip("/")
        self.token = config.get("token") or ""
        self.page_size = int(config.get("page_size", DEFAULT_PAGE_SIZE))
        self.timeout = config.get("timeout", 30)

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Token {self.token}",
                "Accept": "application/json",
            }
        )
        self.session.verify = config.get("verify_ssl", True)

        logger.info(f"NetBox provider initialized for {self.url}")

    def _get_page(self, endpoint: str, params: Dict[str, Any]) -> List[Dict]:
        url = f"{self.url}{API_PREFIX}/{endpoint}/"
        logger.debug(f"Requesting NetBox API {url} with {params}")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetBoxAPIError(f"Request to {url} failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"Non-OK HTTP response from NetBox: {response.status_code} {response.text[:500]}"
            )
            raise NetBoxAPIError(
                f"NetBox API returned status code {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json().get("results", [])
        except ValueError as e:
            logger.error(f"Failed to parse JSON response from NetBox: {e}")
            raise NetBoxAPIError(f"Invalid JSON from {url}: {e}") from e

    def _get_all(self, endpoint: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict]:
        """Fetch every object of an endpoint, page by page."""
        results: List[Dict] = []
        offset = 0
        while True:
            params = dict(filters or {})
            params.update({"limit": self.page_size, "offset": offset})
            page = self._get_page(endpoint, params)
            results.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return results

    def get_records(
        self,
        zone_filter: Optional[str] = None,
        view_filter: Optional[str] = None,
        zones_to_validate: Optional[Sequence[str]] = None,
    ) -> List[InventoryRecord]:
        """Get all DNS records from NetBox."""
        filters: Dict[str, Any] = {}
        if zone_filter:
            filters["zone__name"] = zone_filter
        if view_filter:
            filters["zone__view__name"] = view_filter
        if zones_to_validate:
            filters["zone__name__in"] = ",".join(zones_to_validate)

        records = [parse_record(item) for item in self._get_all("records", filters)]
        logger.info(f"Retrieved {len(records)} records from NetBox")
        return records

    def get_nameservers(self, nameserver_filter: Optional[str] = None) -> List[Nameserver]:
        """Get name servers and their zones from NetBox."""
        filters = {"name": nameserver_filter} if nameserver_filter else {}
        nameservers = [parse_nameserver(item) for item in self._get_all("nameservers", filters)]
        logger.info(f"Retrieved {len(nameservers)} nameservers from NetBox")
        return nameservers

    def get_zones(self) -> ZoneIndex:
        """Get zone metadata from NetBox, keyed by (zone name, view name)."""
        parsed = (parse_zone(item) for item in self._get_all("zones"))
        zones = index_zones(zone for zone in parsed if zone)
        logger.info(f"Retrieved {len(zones)} zones from NetBox")
        return zones
