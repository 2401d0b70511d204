from __future__ import annotations

import asyncio
from types import SimpleNamespace

import dns.name
import dns.resolver
import pytest

from domainverdict.dns_probe import DNSProbe, summarize_lookups


def _fake_resolver(*_args, **_kwargs):
    return SimpleNamespace(nameservers=["192.0.2.53"])


@pytest.fixture(autouse=True)
def _no_system_resolver(monkeypatch) -> None:
    monkeypatch.setattr("domainverdict.dns_probe._build_resolver", _fake_resolver)


@pytest.mark.asyncio
async def test_any_record_marks_domain_taken(monkeypatch) -> None:
    async def fake_lookup(_resolver, domain, rdtype):
        return {"A": ["93.184.216.34"], "NS": ["a.iana-servers.net"]}.get(rdtype, [])

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    result = await DNSProbe().probe("example.com")

    assert result.status == "taken"
    assert result.check_method == "DNS"
    assert result.dns_records == ["A: 93.184.216.34", "NS: a.iana-servers.net"]
    assert result.error is None
    assert (result.base_domain, result.tld) == ("example", ".com")


@pytest.mark.asyncio
async def test_no_records_without_errors_is_available(monkeypatch) -> None:
    async def fake_lookup(_resolver, _domain, _rdtype):
        return []

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    result = await DNSProbe().probe("surely-unregistered-name.io")

    assert result.status == "available"
    assert result.dns_records is None


@pytest.mark.asyncio
async def test_lookup_failures_without_records_are_network_errors(monkeypatch) -> None:
    async def fake_lookup(_resolver, _domain, rdtype):
        if rdtype == "A":
            raise OSError("unreachable")
        return []

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    result = await DNSProbe().probe("example.org")

    assert result.status == "error"
    assert result.error_kind == "network"
    assert result.error == "Network error during DNS lookup"


@pytest.mark.asyncio
async def test_records_win_over_partial_failures(monkeypatch) -> None:
    async def fake_lookup(_resolver, _domain, rdtype):
        if rdtype == "MX":
            raise OSError("refused")
        return ["ns1.example.net"] if rdtype == "NS" else []

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    result = await DNSProbe().probe("example.net")

    assert result.status == "taken"


@pytest.mark.asyncio
async def test_slow_resolver_yields_timeout_error(monkeypatch) -> None:
    async def fake_lookup(_resolver, _domain, _rdtype):
        await asyncio.sleep(10)
        return []

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    probe = DNSProbe()
    probe.set_config(timeout_ms=50)
    result = await probe.probe("example.com")

    assert result.status == "error"
    assert result.error_kind == "timeout"
    assert result.error == "DNS lookup timeout after 50ms"


@pytest.mark.asyncio
async def test_invalid_domain_never_reaches_resolver(monkeypatch) -> None:
    async def should_not_run(*_args, **_kwargs):
        raise AssertionError("resolver should not be queried for invalid names")

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", should_not_run)

    for domain in ("bad..name", "-leading.com", "", "x" * 300):
        result = await DNSProbe().probe(domain)
        assert result.status == "error"
        assert result.error_kind == "invalid_format"


@pytest.mark.asyncio
async def test_dns_info_collects_each_record_type(monkeypatch) -> None:
    async def fake_lookup(_resolver, _domain, rdtype):
        if rdtype == "TXT":
            raise OSError("truncated")
        return {"A": ["192.0.2.1"], "MX": ["10 mail.example.com"]}.get(rdtype, [])

    monkeypatch.setattr("domainverdict.dns_probe._lookup_records", fake_lookup)

    info = await DNSProbe().dns_info("example.com")

    assert info["a_records"] == ["192.0.2.1"]
    assert info["mx_records"] == ["10 mail.example.com"]
    assert info["txt_records"] == []
    assert info["servers"] == ["192.0.2.53"]


def test_summarize_lookups_flags_exceptions() -> None:
    records, network_error = summarize_lookups([["192.0.2.1"], [], TimeoutError(), []])

    assert records == ["A: 192.0.2.1"]
    assert network_error is True


class ScriptedResolver:
    """Answers each record type with a fixed rdata list or raises the given error."""

    nameservers = ["192.0.2.53"]

    def __init__(self, answers: dict) -> None:
        self._answers = answers

    async def resolve(self, domain, rdtype):
        answer = self._answers[rdtype]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _use_resolver(monkeypatch, answers: dict) -> None:
    monkeypatch.setattr("domainverdict.dns_probe._build_resolver", lambda *_args, **_kwargs: ScriptedResolver(answers))


@pytest.mark.asyncio
async def test_nxdomain_and_no_answer_mean_no_record(monkeypatch) -> None:
    _use_resolver(
        monkeypatch,
        {
            "A": dns.resolver.NXDOMAIN(),
            "AAAA": dns.resolver.NXDOMAIN(),
            "MX": dns.resolver.NoAnswer(),
            "NS": dns.resolver.NoAnswer(),
        },
    )

    result = await DNSProbe().probe("available-test.io")

    assert result.status == "available"
    assert result.error is None


@pytest.mark.asyncio
async def test_resolver_failure_without_records_is_network_error(monkeypatch) -> None:
    _use_resolver(
        monkeypatch,
        {
            "A": dns.resolver.NXDOMAIN(),
            "AAAA": dns.resolver.NoAnswer(),
            "MX": dns.resolver.NoAnswer(),
            "NS": dns.resolver.NoNameservers(),
        },
    )

    result = await DNSProbe().probe("example.org")

    assert result.status == "error"
    assert result.error_kind == "network"


@pytest.mark.asyncio
async def test_answers_are_rendered_per_record_type(monkeypatch) -> None:
    _use_resolver(
        monkeypatch,
        {
            "A": [SimpleNamespace(address="192.0.2.1"), SimpleNamespace(address="192.0.2.2")],
            "AAAA": dns.resolver.NoAnswer(),
            "MX": [SimpleNamespace(preference=10, exchange=dns.name.from_text("mail.example.com."))],
            "NS": [SimpleNamespace(target=dns.name.from_text("ns1.example.net."))],
        },
    )

    result = await DNSProbe().probe("example.com")

    assert result.status == "taken"
    assert result.dns_records == [
        "A: 192.0.2.1, 192.0.2.2",
        "MX: 10 mail.example.com",
        "NS: ns1.example.net",
    ]
