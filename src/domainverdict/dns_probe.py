from __future__ import annotations

import asyncio
import logging
import time

import dns.asyncresolver
import dns.resolver

from .models import DomainResult, ProbeConfig, build_result, elapsed_ms
from .probe import Probe
from .validation import is_valid_domain_format


logger = logging.getLogger(__name__)

RECORD_TYPES = ("A", "AAAA", "MX", "NS")
FALLBACK_NAMESERVERS = ["8.8.8.8", "8.8.4.4"]
NOT_FOUND_ERRORS = (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer)


def _render_rdata(rdtype: str, rdata) -> str:
    if rdtype in ("A", "AAAA"):
        return rdata.address
    if rdtype == "MX":
        return f"{rdata.preference} {rdata.exchange.to_text(omit_final_dot=True)}"
    if rdtype in ("NS", "CNAME"):
        return rdata.target.to_text(omit_final_dot=True)
    if rdtype == "TXT":
        return b"".join(rdata.strings).decode("utf-8", errors="replace")
    return rdata.to_text()


async def _lookup_records(resolver: dns.asyncresolver.Resolver, domain: str, rdtype: str) -> list[str]:
    try:
        answer = await resolver.resolve(domain, rdtype)
    except NOT_FOUND_ERRORS:
        return []
    return [_render_rdata(rdtype, rdata) for rdata in answer]


def _build_resolver(timeout_s: float, nameservers: list[str] | None) -> dns.asyncresolver.Resolver:
    if nameservers:
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = list(nameservers)
    else:
        try:
            resolver = dns.asyncresolver.Resolver(configure=True)
        except dns.resolver.NoResolverConfiguration:
            logger.warning("No system resolver configuration; using %s", FALLBACK_NAMESERVERS)
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = list(FALLBACK_NAMESERVERS)
    resolver.timeout = timeout_s
    resolver.lifetime = timeout_s
    return resolver


def summarize_lookups(outcomes: list[list[str] | BaseException]) -> tuple[list[str], bool]:
    records: list[str] = []
    network_error = False
    for rdtype, outcome in zip(RECORD_TYPES, outcomes):
        if isinstance(outcome, BaseException):
            logger.debug("%s lookup failed: %r", rdtype, outcome)
            network_error = True
        elif outcome:
            records.append(f"{rdtype}: {', '.join(outcome)}")
    return records, network_error


class DNSProbe(Probe):
    name = "DNSLookupService"
    check_method = "DNS"
    default_config = ProbeConfig(
        timeout_ms=5000,
        max_retries=2,
        retry_delay_ms=500,
        use_exponential_backoff=False,
        priority=2,
    )

    def __init__(self, config: ProbeConfig | None = None, nameservers: list[str] | None = None) -> None:
        super().__init__(config)
        self._nameservers = list(nameservers) if nameservers else None

    @property
    def nameservers(self) -> list[str]:
        if self._nameservers:
            return list(self._nameservers)
        return [str(ns) for ns in _build_resolver(self.timeout_s, None).nameservers]

    @nameservers.setter
    def nameservers(self, servers: list[str]) -> None:
        self._nameservers = list(servers) or None

    def can_handle(self, domain: str) -> bool:
        return is_valid_domain_format(domain)

    async def probe(self, domain: str) -> DomainResult:
        started = time.perf_counter()
        if not is_valid_domain_format(domain):
            return build_result(
                domain,
                status="error",
                check_method="DNS",
                started=started,
                error="Invalid domain format",
                error_kind="invalid_format",
            )

        resolver = _build_resolver(self.timeout_s, self._nameservers)
        try:
            outcomes = await asyncio.wait_for(
                asyncio.gather(
                    *(_lookup_records(resolver, domain, rdtype) for rdtype in RECORD_TYPES),
                    return_exceptions=True,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            return build_result(
                domain,
                status="error",
                check_method="DNS",
                started=started,
                error=f"DNS lookup timeout after {self._config.timeout_ms}ms",
                error_kind="timeout",
            )

        records, network_error = summarize_lookups(outcomes)
        if records:
            return build_result(domain, status="taken", check_method="DNS", started=started, dns_records=records)
        if network_error:
            return build_result(
                domain,
                status="error",
                check_method="DNS",
                started=started,
                error="Network error during DNS lookup",
                error_kind="network",
            )
        return build_result(domain, status="available", check_method="DNS", started=started)

    async def dns_info(self, domain: str) -> dict:
        started = time.perf_counter()
        resolver = _build_resolver(self.timeout_s, self._nameservers)
        rdtypes = (*RECORD_TYPES, "TXT")
        try:
            outcomes = await asyncio.wait_for(
                asyncio.gather(
                    *(_lookup_records(resolver, domain, rdtype) for rdtype in rdtypes),
                    return_exceptions=True,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            outcomes = [[] for _ in rdtypes]

        by_type = {
            rdtype: (outcome if isinstance(outcome, list) else [])
            for rdtype, outcome in zip(rdtypes, outcomes)
        }
        return {
            "domain": domain,
            "a_records": by_type["A"],
            "aaaa_records": by_type["AAAA"],
            "mx_records": by_type["MX"],
            "ns_records": by_type["NS"],
            "txt_records": by_type["TXT"],
            "servers": [str(ns) for ns in resolver.nameservers] or list(FALLBACK_NAMESERVERS),
            "execution_time_ms": elapsed_ms(started),
        }
