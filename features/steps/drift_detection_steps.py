"""
Step definitions for NetBox DNS Verify drift detection scenarios.

The authoritative servers are replaced by an in-memory DNS client so the
scenarios run without network access.
"""

import threading

import dns.rrset
from behave import given, when, then

from netbox_dns_verify.core.exceptions import DNSQueryError
from netbox_dns_verify.core.models import InventoryRecord, Nameserver, View, Zone
from netbox_dns_verify.core.nsupdate import script_filename
from netbox_dns_verify.core.verifier import DNSVerifier
from netbox_dns_verify.providers.mock_provider import MockInventoryProvider


class ScenarioDNSClient:
    """Answers queries from the scenario's canned RRsets."""

    def __init__(self, answers):
        self.answers = answers
        self.queries = []
        self._lock = threading.Lock()

    def query(self, fqdn, record_type, server, retries=None):
        with self._lock:
            self.queries.append((fqdn, record_type, server))
        answer = self.answers.get((fqdn, record_type, server), [])
        if isinstance(answer, Exception):
            raise answer
        return answer


@given('the zone "{zone}" in view "{view}" with default TTL {ttl:d} is served by "{server}"')
def step_impl(context, zone, view, ttl, server):
    """Register a zone and its authoritative server."""
    context.zone = Zone(zone, View(view), default_ttl=ttl, soa_ttl=ttl)
    context.zones.append(context.zone)
    context.server = server
    context.nameservers.append(Nameserver(server, zones=(context.zone,)))


@given('NetBox has the record "{fqdn}" {rtype} "{value}" with TTL {ttl:d}')
def step_impl(context, fqdn, rtype, value, ttl):
    """Add an inventory record with an explicit TTL."""
    context.records.append(InventoryRecord(fqdn, rtype, value, ttl=ttl, zone=context.zone))


@given('NetBox has the record "{fqdn}" {rtype} "{value}"')
def step_impl(context, fqdn, rtype, value):
    """Add an inventory record inheriting the zone TTL."""
    context.records.append(InventoryRecord(fqdn, rtype, value, zone=context.zone))


@given('the name server answers "{fqdn}" {rtype} "{values}" with TTL {ttl:d}')
def step_impl(context, fqdn, rtype, values, ttl):
    """Make the name server answer with the given values."""
    answer = dns.rrset.from_text(fqdn, ttl, "IN", rtype, *values.split(","))
    context.answers[(fqdn, rtype, context.server)] = [answer]


@given('the name server cannot be queried for "{fqdn}" {rtype}')
def step_impl(context, fqdn, rtype):
    """Make every query for a name fail."""
    context.answers[(fqdn, rtype, context.server)] = DNSQueryError("timed out")


@when("I run the DNS verification")
def step_impl(context):
    """Run the verifier against the scenario inventory."""
    config = {
        "default_provider": "mock",
        "validation": {"workers": 4},
        "output": {
            "report_file": str(context.output_dir / "discrepancies.txt"),
            "missing_file": str(context.output_dir / "missing_records.txt"),
            "nsupdate_dir": str(context.output_dir / "nsupdate"),
        },
    }
    provider = MockInventoryProvider(context.records, context.nameservers, context.zones)
    context.dns_client = ScenarioDNSClient(context.answers)
    context.result = DNSVerifier(config, provider, context.dns_client).process()


@then("no discrepancies are reported")
def step_impl(context):
    """Verify the run found no drift."""
    assert context.result.discrepancies == [], context.result.discrepancies
    assert not (context.output_dir / "discrepancies.txt").exists()


@then('{count:d} discrepancy is reported with message "{message}"')
def step_impl(context, count, message):
    """Verify the discrepancies and the report file."""
    discrepancies = context.result.discrepancies
    assert len(discrepancies) == count, discrepancies
    assert all(d.message == message for d in discrepancies), [d.message for d in discrepancies]
    assert (context.output_dir / "discrepancies.txt").exists()


@then('the nsupdate script for "{server}" and zone "{zone}" is')
def step_impl(context, server, zone):
    """Verify the generated script line by line."""
    path = context.output_dir / "nsupdate" / script_filename(server, zone)
    assert path.exists(), f"{path} was not written"
    expected = [line.strip() for line in context.text.strip().splitlines()]
    actual = path.read_text().splitlines()
    assert actual == expected, actual


@then("no nsupdate scripts are written")
def step_impl(context):
    """Verify no script was generated."""
    nsupdate_dir = context.output_dir / "nsupdate"
    assert not nsupdate_dir.exists() or not any(nsupdate_dir.iterdir())


@then("no DNS queries were sent")
def step_impl(context):
    """Verify the name server was never queried."""
    assert context.dns_client.queries == [], context.dns_client.queries
