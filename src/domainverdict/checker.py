from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from .batch import BatchExecutor, construct_domains
from .errors import is_retryable
from .factory import create_probe
from .hybrid import HybridProbe
from .models import CheckDomainsInput, CheckDomainsOutput, DomainResult, ResultSummary, RetryConfig, ToolOptions
from .probe import Probe
from .run_log import append_run_log
from .whois_probe import WhoisProbe


logger = logging.getLogger(__name__)

SUPPORTED_TLDS: tuple[str, ...] = (".com", ".net", ".org", ".ai", ".dev", ".io", ".co")


def _build_probe(options: ToolOptions) -> Probe:
    probe = create_probe(options.method)
    probe.set_config(timeout_ms=options.timeout_ms, max_retries=options.max_retries)

    whois = probe.whois_probe if isinstance(probe, HybridProbe) else probe
    if isinstance(whois, WhoisProbe):
        whois.set_rate_limit_delay(options.whois_rate_limit_ms)
    return probe


def _retry_config(options: ToolOptions, probe: Probe) -> RetryConfig:
    return RetryConfig(
        max_retries=options.max_retries,
        initial_delay_ms=options.retry_delay_ms,
        use_exponential_backoff=probe.config.use_exponential_backoff,
    )


def summarize_results(results: list[DomainResult]) -> ResultSummary:
    completed = [r for r in results if r.status in ("available", "taken")]
    timings = [r.execution_time_ms for r in completed]
    return ResultSummary(
        total=len(results),
        available=sum(1 for r in results if r.status == "available"),
        taken=sum(1 for r in results if r.status == "taken"),
        errors=sum(1 for r in results if r.status == "error"),
        checking=sum(1 for r in results if r.status == "checking"),
        completed=len(completed),
        fastest_ms=min(timings) if timings else None,
        average_ms=sum(timings) / len(timings) if timings else None,
    )


def retryable_domains(results: list[DomainResult], max_retries: int) -> list[str]:
    """Domains whose last check errored transiently and still have retries left."""
    return [
        r.domain
        for r in results
        if r.status == "error" and is_retryable(r.error_kind) and r.retry_count < max_retries
    ]


def target_domains(payload: CheckDomainsInput) -> list[str]:
    if payload.domains is not None:
        return [d.strip().lower() for d in payload.domains]
    assert payload.base_name is not None
    return construct_domains(payload.base_name, payload.tlds or list(SUPPORTED_TLDS))


async def check_domains(payload: CheckDomainsInput) -> CheckDomainsOutput:
    options = payload.options
    domains = target_domains(payload)
    probe = _build_probe(options)

    executor = BatchExecutor(
        probe,
        batch_size=options.batch_size,
        batch_delay_ms=options.batch_delay_ms,
        retry_config=_retry_config(options, probe),
    )
    logger.debug("Checking %d domain(s) with %s", len(domains), probe.name)
    results = await executor.execute_batch(domains)

    output = CheckDomainsOutput(
        checked_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        results=results,
        summary=summarize_results(results),
    )

    if options.run_log_dir:
        append_run_log(Path(options.run_log_dir), payload, output)
    return output
