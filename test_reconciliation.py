#!/usr/bin/env python3
"""
Test suite for zone-transfer reconciliation, TSIG keys and the DNS client
"""

import os
import tempfile
import unittest
from unittest.mock import Mock, call, patch

import dns.exception
import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset
import dns.tsig
import dns.zone

from netbox_dns_verify.core.authority import AuthorityResolver
from netbox_dns_verify.core.bulk_validator import BulkValidator, index_rrsets
from netbox_dns_verify.core.exceptions import (
    DNSQueryError,
    NXDomainError,
    TSIGKeyError,
    ZoneTransferError,
)
from netbox_dns_verify.core.grouping import index_zones
from netbox_dns_verify.core.models import (
    InventoryRecord,
    Nameserver,
    SOARecord,
    TSIGAlgorithm,
    TSIGKey,
    View,
    Zone,
)
from netbox_dns_verify.parsers.tsig import parse_algorithm, parse_tsig_key, parse_tsig_key_file
from netbox_dns_verify.providers.dns_client import DNSClient

DEFAULT_VIEW = View("default")
ZONE = Zone("example.com", DEFAULT_VIEW, default_ttl=3600, soa_ttl=3600)
NS1 = Nameserver("ns1.example.com", zones=(ZONE,))
SOA_VALUE = "ns1.example.com. hostmaster.example.com. 2024010101 3600 600 604800 300"

ZONE_TEXT = """
$TTL 3600
example.com. IN SOA ns1.example.com. hostmaster.example.com. 2024010101 3600 600 604800 300
example.com. IN NS ns1.example.com.
www.example.com. IN A 192.0.2.1
www.example.com. IN A 192.0.2.2
ftp.example.com. IN A 192.0.2.9
"""

KEY_FILE = """
# transfer key
key "transfer-key" {
    algorithm hmac-sha256;
    secret "c2VjcmV0//c2VjcmV0";
};
"""


def record(fqdn, rtype, value, ttl=None, name=""):
    return InventoryRecord(fqdn=fqdn, type=rtype, value=value, name=name, ttl=ttl, zone=ZONE)


def zone_rrsets(text=ZONE_TEXT):
    zone = dns.zone.from_text(text, origin="example.com.", relativize=False)
    rrsets = []
    for name, rdataset in zone.iterate_rdatasets():
        rrset = dns.rrset.RRset(name, rdataset.rdclass, rdataset.rdtype)
        rrset.update(rdataset)
        rrsets.append(rrset)
    return rrsets


class FakeTransferClient:
    """Serves a canned zone transfer."""

    def __init__(self, rrsets=None, error=None):
        self.rrsets = rrsets or []
        self.error = error
        self.transfers = []

    def transfer(self, zone, server, tsig_key=None):
        self.transfers.append((zone, server, tsig_key))
        if self.error:
            raise self.error
        return self.rrsets


class TestIndexRRsets(unittest.TestCase):
    """Test indexing of transferred RRsets."""

    def test_index_by_name_and_type(self):
        """Test RRsets are keyed by lower-cased owner name and type."""
        index = index_rrsets(zone_rrsets())
        self.assertIn(("www.example.com.", "A"), index)
        self.assertIn(("example.com.", "SOA"), index)
        self.assertEqual(len(index[("www.example.com.", "A")]), 2)

    def test_duplicate_rrsets_merged(self):
        """Test RRsets for the same key are merged."""
        index = index_rrsets(
            [
                dns.rrset.from_text("WWW.example.com.", 300, "IN", "A", "192.0.2.1"),
                dns.rrset.from_text("www.example.com.", 300, "IN", "A", "192.0.2.2"),
            ]
        )
        self.assertEqual(len(index), 1)
        self.assertEqual(len(index[("www.example.com.", "A")]), 2)


class TestBulkValidator(unittest.TestCase):
    """Test whole-zone comparison."""

    def setUp(self):
        """Set up test fixtures."""
        self.authority = AuthorityResolver([NS1])
        self.records = [
            record("www.example.com", "A", "192.0.2.1"),
            record("www.example.com", "A", "192.0.2.2"),
            record("mail.example.com", "A", "192.0.2.5"),
            record("example.com", "SOA", SOA_VALUE, name="@"),
        ]

    def validator(self, client, **kwargs):
        return BulkValidator(client, self.authority, index_zones([ZONE]), workers=2, **kwargs)

    def test_compare_zone(self):
        """Test matches, records missing in DNS and records missing in NetBox."""
        client = FakeTransferClient(zone_rrsets())
        result = self.validator(client, record_successful=True).validate_all(self.records)

        self.assertEqual(client.transfers, [("example.com", "ns1.example.com", None)])
        self.assertEqual(len(result.discrepancies), 1)
        self.assertEqual(result.discrepancies[0].fqdn, "mail.example.com.")
        self.assertEqual(result.discrepancies[0].message, "Record missing in DNS")
        self.assertEqual(result.discrepancies[0].actual, ())

        self.assertEqual(len(result.successes), 2)
        missing = sorted((m.fqdn, m.record_type) for m in result.missing_records)
        self.assertEqual(missing, [("example.com.", "NS"), ("ftp.example.com.", "A")])
        ftp = [m for m in result.missing_records if m.record_type == "A"][0]
        self.assertEqual(ftp.values, ("192.0.2.9",))
        self.assertEqual(ftp.ttl, 3600)
        self.assertEqual(ftp.message, "Record missing in NetBox")

    def test_value_mismatch(self):
        """Test differing values are reported as a mismatch."""
        records = [record("www.example.com", "A", "192.0.2.1")]
        result = self.validator(FakeTransferClient(zone_rrsets())).validate_all(records)
        mismatch = [d for d in result.discrepancies if d.fqdn == "www.example.com."][0]
        self.assertEqual(mismatch.message, "Record mismatch")
        self.assertEqual(sorted(mismatch.actual), ["192.0.2.1", "192.0.2.2"])

    def test_soa_serial(self):
        """Test the SOA serial only matters when not ignored."""
        records = [record("example.com", "SOA", SOA_VALUE.replace("2024010101", "2024010199"), name="@")]
        result = self.validator(FakeTransferClient(zone_rrsets())).validate_all(records)
        self.assertEqual([d.message for d in result.discrepancies], ["Record mismatch"])

        result = self.validator(
            FakeTransferClient(zone_rrsets()), ignore_serial_numbers=True
        ).validate_all(records)
        self.assertEqual(result.discrepancies, [])

    def test_transfer_failure(self):
        """Test a failed transfer yields one unknown-state discrepancy per group and SOA."""
        client = FakeTransferClient(error=ZoneTransferError("refused"))
        result = self.validator(client).validate_all(self.records)

        self.assertEqual(len(result.discrepancies), 3)
        for discrepancy in result.discrepancies:
            self.assertTrue(discrepancy.message.startswith("Zone transfer failed:"))
            self.assertIsNone(discrepancy.actual)
            self.assertEqual(discrepancy.view_name, "default")
        soa = [d for d in result.discrepancies if d.record_type == "SOA"][0]
        self.assertEqual(soa.expected, SOARecord.from_text(SOA_VALUE))
        self.assertEqual(soa.expected_ttl, 3600)
        self.assertEqual(result.missing_records, [])

    def test_transfer_failure_soa_only(self):
        """Test a zone holding only its SOA record still reports a failed transfer."""
        client = FakeTransferClient(error=ZoneTransferError("refused"))
        result = self.validator(client).validate_all(self.records[3:])

        self.assertEqual(len(result.discrepancies), 1)
        self.assertEqual(result.discrepancies[0].record_type, "SOA")
        self.assertEqual(result.discrepancies[0].message, "Zone transfer failed: refused")
        self.assertIsNone(result.discrepancies[0].actual)

    def test_tsig_key_passed(self):
        """Test the configured TSIG key is used for the transfer."""
        key = TSIGKey("transfer-key", "c2VjcmV0", TSIGAlgorithm.HMAC_SHA256)
        client = FakeTransferClient(zone_rrsets())
        self.validator(client, tsig_key=key).validate_all(self.records)
        self.assertIs(client.transfers[0][2], key)

    def test_zone_without_authority(self):
        """Test zones without a server are skipped."""
        client = FakeTransferClient(zone_rrsets())
        validator = BulkValidator(client, AuthorityResolver([]), index_zones([ZONE]))
        result = validator.validate_all(self.records)
        self.assertEqual(client.transfers, [])
        self.assertEqual(result.discrepancies, [])

    def test_unknown_record_type(self):
        """Test unknown types are reported during zone comparison."""
        result = self.validator(FakeTransferClient(zone_rrsets())).validate_all(
            [record("x.example.com", "BOGUS", "value")]
        )
        unknown = [d for d in result.discrepancies if d.message == "Unknown record type"]
        self.assertEqual(len(unknown), 1)
        self.assertIsNone(unknown[0].expected)


class TestTSIGParser(unittest.TestCase):
    """Test TSIG key file parsing."""

    def test_parse_key(self):
        """Test name, algorithm and secret are read; comments are ignored."""
        key = parse_tsig_key(KEY_FILE)
        self.assertEqual(key.name, "transfer-key")
        self.assertEqual(key.algorithm, TSIGAlgorithm.HMAC_SHA256)
        self.assertEqual(key.secret, "c2VjcmV0//c2VjcmV0")
        self.assertEqual(key.algorithm.dns_name, dns.tsig.HMAC_SHA256)

    def test_parse_algorithm(self):
        """Test supported algorithm tokens in any case."""
        cases = [
            ("hmac-md5.sig-alg.reg.int", TSIGAlgorithm.HMAC_MD5),
            ("HMAC-SHA1", TSIGAlgorithm.HMAC_SHA1),
            ("hmac-sha512", TSIGAlgorithm.HMAC_SHA512),
        ]
        for token, expected in cases:
            with self.subTest(token=token):
                self.assertEqual(parse_algorithm(token), expected)

    def test_unsupported_algorithm(self):
        """Test unsupported or missing algorithms are rejected."""
        for content in (
            KEY_FILE.replace("hmac-sha256", "hmac-sha3"),
            KEY_FILE.replace("algorithm hmac-sha256;", ""),
        ):
            with self.subTest(content=content):
                with self.assertRaises(TSIGKeyError) as ctx:
                    parse_tsig_key(content)
                self.assertIn("unsupported TSIG algorithm", str(ctx.exception))

    def test_missing_secret(self):
        """Test a key without secret is rejected."""
        with self.assertRaises(TSIGKeyError):
            parse_tsig_key('key "transfer-key" { algorithm hmac-sha256; };')
        with self.assertRaises(TSIGKeyError):
            parse_tsig_key("")

    def test_error_is_value_error(self):
        """Test TSIG errors can be handled as ValueError."""
        self.assertTrue(issubclass(TSIGKeyError, ValueError))

    def test_parse_key_file(self):
        """Test reading a key file and a missing file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "transfer.key")
            with open(path, "w") as f:
                f.write(KEY_FILE)
            self.assertEqual(parse_tsig_key_file(path).name, "transfer-key")

            with self.assertRaises(TSIGKeyError):
                parse_tsig_key_file(os.path.join(temp_dir, "missing.key"))


def make_response(qname="www.example.com.", rdtype="A", rcode=dns.rcode.NOERROR, answers=()):
    response = dns.message.make_response(dns.message.make_query(qname, rdtype))
    response.set_rcode(rcode)
    for answer in answers:
        response.answer.append(answer)
    return response


class TestDNSClient(unittest.TestCase):
    """Test the DNS query and transfer gateway."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = DNSClient({"timeout": 2, "retries": 3})
        self.server = "192.0.2.53"

    @patch("dns.query.udp")
    def test_query_answer(self, mock_udp):
        """Test a NOERROR answer returns its RRsets."""
        answer = dns.rrset.from_text("www.example.com.", 300, "IN", "A", "192.0.2.1")
        mock_udp.return_value = make_response(answers=[answer])

        result = self.client.query("www.example.com", "A", self.server)

        self.assertEqual(result, [answer])
        request = mock_udp.call_args[0][0]
        self.assertFalse(request.flags & dns.flags.RD)
        self.assertEqual(mock_udp.call_args[0][1], self.server)

    @patch("dns.query.udp")
    def test_query_nodata(self, mock_udp):
        """Test an empty NOERROR answer returns no RRsets."""
        mock_udp.return_value = make_response()
        self.assertEqual(self.client.query("www.example.com", "A", self.server), [])

    @patch("dns.query.udp")
    def test_query_nxdomain(self, mock_udp):
        """Test NXDOMAIN is raised immediately."""
        mock_udp.return_value = make_response(rcode=dns.rcode.NXDOMAIN)
        with self.assertRaises(NXDomainError):
            self.client.query("www.example.com", "A", self.server)
        self.assertEqual(mock_udp.call_count, 1)

    @patch("netbox_dns_verify.providers.dns_client.time.sleep")
    @patch("dns.query.udp")
    def test_query_retries_with_backoff(self, mock_udp, mock_sleep):
        """Test failed attempts are retried with a linear pause in between."""
        mock_udp.side_effect = dns.exception.Timeout()

        with self.assertRaises(DNSQueryError) as ctx:
            self.client.query("www.example.com", "A", self.server)

        self.assertIn("failed to query DNS after 3 retries", str(ctx.exception))
        self.assertEqual(mock_udp.call_count, 3)
        self.assertEqual(mock_sleep.call_args_list, [call(1.0), call(2.0)])

    @patch("netbox_dns_verify.providers.dns_client.time.sleep")
    @patch("dns.query.udp")
    def test_query_recovers(self, mock_udp, mock_sleep):
        """Test a later attempt can succeed."""
        answer = dns.rrset.from_text("www.example.com.", 300, "IN", "A", "192.0.2.1")
        mock_udp.side_effect = [
            make_response(rcode=dns.rcode.SERVFAIL),
            make_response(answers=[answer]),
        ]
        self.assertEqual(self.client.query("www.example.com", "A", self.server), [answer])
        mock_sleep.assert_called_once_with(1.0)

    @patch("dns.query.tcp")
    @patch("dns.query.udp")
    def test_truncated_answer_retried_over_tcp(self, mock_udp, mock_tcp):
        """Test a truncated UDP answer is repeated over TCP."""
        truncated = make_response()
        truncated.flags |= dns.flags.TC
        answer = dns.rrset.from_text("www.example.com.", 300, "IN", "A", "192.0.2.1")
        mock_udp.return_value = truncated
        mock_tcp.return_value = make_response(answers=[answer])

        self.assertEqual(self.client.query("www.example.com", "A", self.server), [answer])
        mock_tcp.assert_called_once()

    def test_resolve_server_cached(self):
        """Test name server host names are resolved once."""
        self.client.resolver = Mock()
        self.client.resolver.resolve.return_value = [Mock(address="192.0.2.53")]

        self.assertEqual(self.client.resolve_server("ns1.example.com"), "192.0.2.53")
        self.assertEqual(self.client.resolve_server("ns1.example.com"), "192.0.2.53")
        self.assertEqual(self.client.resolve_server("192.0.2.54"), "192.0.2.54")
        self.client.resolver.resolve.assert_called_once_with("ns1.example.com", "A")

    @patch("dns.zone.from_xfr")
    @patch("dns.query.xfr")
    def test_transfer(self, mock_xfr, mock_from_xfr):
        """Test a transfer returns the zone RRsets and signs with the key."""
        mock_from_xfr.return_value = dns.zone.from_text(ZONE_TEXT, origin="example.com.", relativize=False)
        key = TSIGKey("transfer-key", "c2VjcmV0", TSIGAlgorithm.HMAC_SHA256)

        rrsets = self.client.transfer("example.com", self.server, key)

        names = {(r.name.to_text(), r.rdtype) for r in rrsets}
        self.assertIn(("www.example.com.", dns.rdatatype.A), names)
        kwargs = mock_xfr.call_args[1]
        self.assertEqual(kwargs["keyname"], "transfer-key")
        self.assertEqual(kwargs["keyalgorithm"], dns.tsig.HMAC_SHA256)
        self.assertFalse(kwargs["relativize"])

    @patch("dns.zone.from_xfr")
    @patch("dns.query.xfr")
    def test_transfer_failure(self, mock_xfr, mock_from_xfr):
        """Test transfer errors are raised as ZoneTransferError."""
        mock_from_xfr.side_effect = dns.exception.FormError("refused")
        with self.assertRaises(ZoneTransferError):
            self.client.transfer("example.com", self.server)


if __name__ == "__main__":
    unittest.main()
