from __future__ import annotations

import json
import time
from pathlib import Path

import pytest

from domainverdict.checker import SUPPORTED_TLDS, _build_probe, check_domains, retryable_domains, summarize_results
from domainverdict.models import CheckDomainsInput, DomainResult, ToolOptions, build_result
from domainverdict.probe import Probe


class StubProbe(Probe):
    name = "StubService"
    check_method = "HYBRID"

    def can_handle(self, domain: str) -> bool:
        return True

    async def probe(self, domain: str) -> DomainResult:
        if domain.endswith(".org"):
            return build_result(
                domain,
                status="error",
                check_method="HYBRID",
                started=time.perf_counter(),
                error="Both DNS and WHOIS queries failed",
                error_kind="both_failed",
            )
        status = "taken" if domain.endswith(".com") else "available"
        return build_result(domain, status=status, check_method="HYBRID", started=time.perf_counter())


def _result(domain: str, status: str, error_kind=None, retry_count: int = 0, ms: float = 10.0) -> DomainResult:
    result = build_result(
        domain,
        status=status,
        check_method="DNS",
        started=time.perf_counter(),
        error="failed" if status == "error" else None,
        error_kind=error_kind,
    )
    return result.model_copy(update={"retry_count": retry_count, "execution_time_ms": ms})


@pytest.mark.asyncio
async def test_check_domains_reports_results_in_order_and_logs_run(monkeypatch, tmp_path: Path) -> None:
    probes: list[StubProbe] = []

    def fake_create_probe(kind):
        probes.append(StubProbe())
        return probes[-1]

    monkeypatch.setattr("domainverdict.checker.create_probe", fake_create_probe)

    payload = CheckDomainsInput.model_validate(
        {
            "domains": ["Brand.IO", "brand.com", "brand.org"],
            "options": {
                "method": "dns",
                "timeout_ms": 3000,
                "max_retries": 1,
                "retry_delay_ms": 0,
                "batch_delay_ms": 0,
                "run_log_dir": str(tmp_path / "runs"),
            },
        }
    )

    output = await check_domains(payload)

    assert [r.domain for r in output.results] == ["brand.io", "brand.com", "brand.org"]
    assert [r.status for r in output.results] == ["available", "taken", "error"]
    assert output.results[2].retry_count == 1
    assert output.checked_at.endswith("Z")
    assert (output.summary.total, output.summary.available, output.summary.taken, output.summary.errors) == (3, 1, 1, 1)
    assert probes[0].config.timeout_ms == 3000
    assert probes[0].config.max_retries == 1

    lines = (tmp_path / "runs" / "results.jsonl").read_text().splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["counts"] == {"available": 1, "taken": 1, "error": 1, "checking": 0}
    assert entry["options"]["method"] == "dns"


@pytest.mark.asyncio
async def test_base_name_without_tlds_uses_default_set(monkeypatch) -> None:
    monkeypatch.setattr("domainverdict.checker.create_probe", lambda _kind: StubProbe())

    payload = CheckDomainsInput.model_validate({"base_name": "acme", "options": {"batch_delay_ms": 0, "retry_delay_ms": 0}})
    output = await check_domains(payload)

    assert [r.domain for r in output.results] == [f"acme{tld}" for tld in SUPPORTED_TLDS]


def test_payload_requires_exactly_one_target() -> None:
    with pytest.raises(ValueError):
        CheckDomainsInput.model_validate({"options": {}})
    with pytest.raises(ValueError):
        CheckDomainsInput.model_validate({"base_name": "acme", "domains": ["acme.com"]})


def test_build_probe_wires_timeouts_and_rate_limit() -> None:
    probe = _build_probe(ToolOptions(method="hybrid", timeout_ms=4000, max_retries=1, whois_rate_limit_ms=250))

    assert probe.config.timeout_ms == 4000
    assert probe.dns_probe.config.timeout_ms == 2000
    assert probe.whois_probe.config.max_retries == 1
    assert probe.whois_probe.rate_limit_delay_ms == 250

    whois = _build_probe(ToolOptions(method="whois", whois_rate_limit_ms=0))
    assert whois.rate_limit_delay_ms == 0


def test_summary_counts_and_timings() -> None:
    results = [
        _result("a1.com", "taken", ms=30.0),
        _result("b2.com", "available", ms=10.0),
        _result("c3.com", "error", "network", ms=500.0),
        DomainResult.placeholder("d4.com"),
    ]

    summary = summarize_results(results)

    assert (summary.total, summary.completed, summary.errors, summary.checking) == (4, 2, 1, 1)
    assert summary.fastest_ms == 10.0
    assert summary.average_ms == 20.0


def test_retryable_domains_skip_permanent_and_exhausted_errors() -> None:
    results = [
        _result("net.com", "error", "network", retry_count=0),
        _result("spent.com", "error", "timeout", retry_count=2),
        _result("bad.com", "error", "invalid_format"),
        _result("ok.com", "available"),
    ]

    assert retryable_domains(results, max_retries=2) == ["net.com"]
