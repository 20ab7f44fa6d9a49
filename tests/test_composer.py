import unittest
from unittest.mock import patch

from myip.composer import (
    canonical_header_key,
    compose,
    handle_request,
    header_snapshot,
    request_id_for,
)
from myip.config import Settings
from myip.enrichment.base import Enricher, EnrichmentContext
from myip.enrichment.service import EnrichmentRegistry
from myip.errors import LookupFailed
from myip.models import (
    AggregateResponse,
    EnrichmentResult,
    Failure,
    RequestInfo,
    ResolvedAddress,
    Success,
)

PAYLOADS = {
    "dns": {"Names": ["host.example.net"]},
    "whois": {"Query": "192.0.2.1", "Server": "whois.arin.net", "Body": "NetName: TEST-NET-1"},
    "geo": {"City": "Sydney", "Region": "NSW", "Country": "Australia", "Lat": -33.87, "Long": 151.21},
    "ua": {"UserAgent": {"Family": "curl"}, "Os": {"Family": "Other"}, "Device": {"Family": "Other"}},
}


class StaticEnricher(Enricher):
    def __init__(self, name, input="address"):
        self.name = name
        self.input = input
        self.seen = []

    def enrich(self, value, ctx: EnrichmentContext):
        self.seen.append(value)
        return PAYLOADS[self.name]


class FailingEnricher(Enricher):
    def __init__(self, name):
        self.name = name

    def enrich(self, value, ctx: EnrichmentContext):
        raise LookupFailed(f"{self.name} unavailable")


def full_registry():
    return EnrichmentRegistry(
        {
            "dns": StaticEnricher("dns"),
            "whois": StaticEnricher("whois"),
            "geo": StaticEnricher("geo"),
            "ua": StaticEnricher("ua", input="user_agent"),
        }
    )


def make_request(peer="192.0.2.1", headers=None, query=None):
    return RequestInfo(
        method="GET",
        url="/json?x=1",
        proto="HTTP/1.1",
        headers=headers if headers is not None else [("user-agent", "curl/7.68.0")],
        query=query or {},
        peer_addr=peer,
    )


class TestHeaders(unittest.TestCase):
    def test_canonical_header_key(self):
        self.assertEqual(canonical_header_key("x-real-ip"), "X-Real-Ip")
        self.assertEqual(canonical_header_key("USER-AGENT"), "User-Agent")

    def test_header_snapshot_groups_values(self):
        req = make_request(headers=[("accept", "a"), ("Accept", "b"), ("host", "h")])
        self.assertEqual(header_snapshot(req), {"Accept": ["a", "b"], "Host": ["h"]})

    def test_request_id_from_configured_header(self):
        req = make_request(headers=[("x-request-id", "abc123")])
        self.assertEqual(request_id_for(req, Settings()), "abc123")

    def test_request_id_from_trace_header(self):
        req = make_request(headers=[("X-Cloud-Trace-Context", "105445aa7843bc8bf206b12000100000/1;o=1")])
        self.assertEqual(request_id_for(req, Settings()), "105445aa7843bc8bf206b12000100000")

    def test_request_id_absent(self):
        self.assertIsNone(request_id_for(make_request(), Settings()))


class TestCompose(unittest.TestCase):
    def test_all_sources_populate_fields(self):
        results = [EnrichmentResult(source=s, value=v) for s, v in PAYLOADS.items()]
        resp = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), results)

        self.assertEqual(resp.remote_addr_reverse, PAYLOADS["dns"])
        self.assertEqual(resp.remote_addr_whois, PAYLOADS["whois"])
        self.assertEqual(resp.location, PAYLOADS["geo"])
        self.assertEqual(resp.user_agent, PAYLOADS["ua"])
        self.assertIsNone(resp.insights)
        self.assertIsNone(resp.actual_remote_addr)

    def test_failed_sources_are_absent_and_noted(self):
        results = [
            EnrichmentResult(source="dns", value=PAYLOADS["dns"]),
            EnrichmentResult(source="whois", error="timed out after 5s", timed_out=True),
            EnrichmentResult(source="geo", error="private address"),
        ]
        resp = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), results)

        self.assertIsNotNone(resp.remote_addr_reverse)
        self.assertIsNone(resp.remote_addr_whois)
        self.assertIsNone(resp.location)
        self.assertIsNone(resp.user_agent)
        self.assertEqual(resp.insights, {"whois": "timed out after 5s", "geo": "private address"})

    def test_request_metadata_always_copied(self):
        resp = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), [])
        self.assertEqual(resp.method, "GET")
        self.assertEqual(resp.url, "/json?x=1")
        self.assertEqual(resp.proto, "HTTP/1.1")
        self.assertEqual(resp.header, {"User-Agent": ["curl/7.68.0"]})

    def test_actual_remote_addr_when_overridden(self):
        resp = compose(ResolvedAddress("198.51.100.9", "IPv4"), make_request(peer="10.0.0.2"), [])
        self.assertEqual(resp.actual_remote_addr, "10.0.0.2")

    def test_composition_is_order_independent(self):
        results = [EnrichmentResult(source=s, value=v) for s, v in PAYLOADS.items()]
        a = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), results)
        b = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), list(reversed(results)))
        self.assertEqual(a.to_wire(), b.to_wire())

    def test_wire_omits_absent_fields(self):
        wire = compose(ResolvedAddress("192.0.2.1", "IPv4"), make_request(), []).to_wire()
        self.assertEqual(wire["RemoteAddr"], "192.0.2.1")
        self.assertEqual(wire["RemoteAddrFamily"], "IPv4")
        self.assertEqual(wire["URL"], "/json?x=1")
        for key in ("RequestID", "RemoteAddrReverse", "RemoteAddrWhois", "ActualRemoteAddr",
                    "Location", "UserAgent", "Insights"):
            self.assertNotIn(key, wire)


class TestHandleRequest(unittest.TestCase):
    def test_success_with_all_sources(self):
        reg = full_registry()
        outcome = handle_request(make_request(), Settings(), reg)

        self.assertIsInstance(outcome, Success)
        resp = outcome.response
        self.assertEqual(resp.remote_addr, "192.0.2.1")
        for field in ("remote_addr_reverse", "remote_addr_whois", "location", "user_agent"):
            self.assertIsNotNone(getattr(resp, field))
        self.assertEqual(reg.enrichers["ua"].seen, ["curl/7.68.0"])
        self.assertEqual(reg.enrichers["dns"].seen, ["192.0.2.1"])

    def test_success_when_every_source_fails(self):
        reg = EnrichmentRegistry({n: FailingEnricher(n) for n in ("dns", "whois", "geo", "ua")})
        outcome = handle_request(make_request(), Settings(), reg)

        self.assertIsInstance(outcome, Success)
        self.assertEqual(set(outcome.response.insights), {"dns", "whois", "geo", "ua"})
        self.assertIsNone(outcome.response.location)

    def test_malformed_header_value_is_not_fatal(self):
        reg = EnrichmentRegistry(
            {
                "dns": FailingEnricher("dns"),
                "whois": FailingEnricher("whois"),
                "geo": FailingEnricher("geo"),
                "ua": StaticEnricher("ua", input="user_agent"),
            }
        )
        req = make_request(
            peer="192.0.2.1", headers=[("user-agent", "curl/7.68.0"), ("X-Real-IP", "bogus")]
        )
        outcome = handle_request(req, Settings(ip_header="X-Real-IP"), reg)

        self.assertIsInstance(outcome, Success)
        resp = outcome.response
        self.assertEqual(resp.remote_addr, "bogus")
        self.assertIsNone(resp.remote_addr_family)
        self.assertEqual(resp.actual_remote_addr, "192.0.2.1")
        self.assertEqual(resp.insights["address"], "not an IP address")
        self.assertIn("dns", resp.insights)
        self.assertIsNotNone(resp.user_agent)
        self.assertNotIn("RemoteAddrFamily", resp.to_wire())

    def test_failure_without_usable_peer(self):
        reg = full_registry()
        outcome = handle_request(make_request(peer=""), Settings(ip_header="X-Real-IP"), reg)

        self.assertIsInstance(outcome, Failure)
        self.assertEqual(outcome.error.message, "unable to determine remote address")
        diag = outcome.diagnostics
        self.assertIsInstance(diag, AggregateResponse)
        self.assertEqual(diag.insights["error"], "unable to determine remote address")
        self.assertIn("ip_header", diag.insights)
        self.assertNotIn("address", diag.insights)
        self.assertIsNotNone(diag.user_agent)
        self.assertIsNone(diag.location)
        self.assertEqual(reg.enrichers["dns"].seen, [])
        self.assertEqual(reg.enrichers["ua"].seen, ["curl/7.68.0"])

    @patch("myip.composer.enrich_address")
    def test_unexpected_error_becomes_failure(self, mock_enrich):
        mock_enrich.side_effect = RuntimeError("executor exploded")
        outcome = handle_request(make_request(), Settings(), full_registry())

        self.assertIsInstance(outcome, Failure)
        self.assertEqual(outcome.error.message, "executor exploded")
        self.assertIsNone(outcome.diagnostics)


if __name__ == "__main__":
    unittest.main()
