from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Union

from .dns_probe import DNSProbe
from .models import DomainResult, ProbeConfig, build_result
from .probe import Probe
from .validation import extract_tld, is_valid_domain_format
from .whois_probe import WhoisProbe


logger = logging.getLogger(__name__)

BOTH_FAILED_MESSAGE = "Both DNS and WHOIS queries failed"

# A sub-probe outcome is either its result or the reason it produced none.
SubOutcome = Union[DomainResult, str]


def _usable(outcome: SubOutcome | None) -> DomainResult | None:
    return outcome if isinstance(outcome, DomainResult) else None


class HybridProbe(Probe):
    """Runs the DNS and WHOIS probes side by side and reconciles their verdicts.

    WHOIS wins whenever it reaches a definite answer; DNS is the fallback when
    WHOIS errors or cannot run. Each sub-probe gets half of this probe's
    timeout, and the whole check is raced against the full timeout so a hung
    sub-probe is cancelled instead of holding the result back.
    """

    name = "HybridQueryService"
    check_method = "HYBRID"
    default_config = ProbeConfig(
        timeout_ms=15000,
        max_retries=2,
        retry_delay_ms=1000,
        use_exponential_backoff=False,
        priority=3,
    )

    def __init__(
        self,
        config: ProbeConfig | None = None,
        dns_probe: Probe | None = None,
        whois_probe: Probe | None = None,
    ) -> None:
        super().__init__(config)
        self._dns = dns_probe or DNSProbe()
        self._whois = whois_probe or WhoisProbe()
        self._propagate({"timeout_ms": self._sub_timeout_ms()})

    @property
    def dns_probe(self) -> Probe:
        return self._dns

    @property
    def whois_probe(self) -> Probe:
        return self._whois

    def _sub_timeout_ms(self) -> int:
        return max(1, self._config.timeout_ms // 2)

    def _propagate(self, changes: dict[str, Any]) -> None:
        self._dns.set_config(**changes)
        self._whois.set_config(**changes)

    def set_config(self, **changes: Any) -> None:
        super().set_config(**changes)
        sub_changes: dict[str, Any] = {}
        if "timeout_ms" in changes:
            sub_changes["timeout_ms"] = self._sub_timeout_ms()
        if "max_retries" in changes:
            sub_changes["max_retries"] = self._config.max_retries
        if sub_changes:
            self._propagate(sub_changes)

    def can_handle(self, domain: str) -> bool:
        return bool(self._dns.can_handle(domain) or self._whois.can_handle(domain))

    async def probe(self, domain: str) -> DomainResult:
        started = time.perf_counter()
        if not is_valid_domain_format(domain, require_tld=True):
            return build_result(
                domain,
                status="error",
                check_method="HYBRID",
                started=started,
                error="Invalid domain format",
                error_kind="invalid_format",
            )

        outcomes = await self._run_sub_probes(domain)
        return self._combine(domain, outcomes, started)

    async def _run_sub_probes(self, domain: str) -> dict[str, SubOutcome]:
        outcomes: dict[str, SubOutcome] = {}
        tasks: dict[str, asyncio.Task[DomainResult]] = {
            "dns": asyncio.create_task(self._dns.probe(domain)),
        }
        if self._whois.can_handle(domain):
            tasks["whois"] = asyncio.create_task(self._whois.probe(domain))
        else:
            outcomes["whois"] = f"WHOIS not supported for {extract_tld(domain)}"

        try:
            await asyncio.wait(list(tasks.values()), timeout=self.timeout_s)
        finally:
            pending = [task for task in tasks.values() if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for side, task in tasks.items():
            if task.cancelled():
                outcomes[side] = f"timed out after {self._config.timeout_ms}ms"
                continue
            exc = task.exception()
            if exc is not None:
                logger.warning("%s sub-probe raised for %s: %r", side.upper(), domain, exc)
                outcomes[side] = str(exc) or type(exc).__name__
            else:
                outcomes[side] = task.result()
        return outcomes

    def _combine(self, domain: str, outcomes: dict[str, SubOutcome], started: float) -> DomainResult:
        dns_result = _usable(outcomes.get("dns"))
        whois_result = _usable(outcomes.get("whois"))

        probe_errors: dict[str, str] = {}
        for side, outcome in outcomes.items():
            if isinstance(outcome, str):
                probe_errors[side] = outcome
            elif outcome.status == "error" and outcome.error:
                probe_errors[side] = outcome.error

        dns_records = dns_result.dns_records if dns_result else None
        whois_data = whois_result.whois_data if whois_result else None

        if dns_result is None and whois_result is None:
            return build_result(
                domain,
                status="error",
                check_method="HYBRID",
                started=started,
                error=BOTH_FAILED_MESSAGE,
                error_kind="both_failed",
                probe_errors=probe_errors,
            )

        if dns_result is not None and whois_result is not None:
            source = whois_result if whois_result.status in ("available", "taken") else dns_result
        else:
            source = dns_result or whois_result
        assert source is not None

        if source.status in ("available", "taken"):
            return build_result(
                domain,
                status=source.status,
                check_method="HYBRID",
                started=started,
                dns_records=dns_records,
                whois_data=whois_data,
                probe_errors=probe_errors,
            )

        if dns_result is not None and whois_result is not None:
            error, error_kind = BOTH_FAILED_MESSAGE, "both_failed"
        else:
            failed_side = "whois" if whois_result is None else "dns"
            error = f"{failed_side.upper()} query failed: {probe_errors[failed_side]}"
            if source.error:
                error = f"{error}; {source.error}"
            error_kind = source.error_kind or "unexpected"
        return build_result(
            domain,
            status="error",
            check_method="HYBRID",
            started=started,
            error=error,
            error_kind=error_kind,
            dns_records=dns_records,
            whois_data=whois_data,
            probe_errors=probe_errors,
        )
