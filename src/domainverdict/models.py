from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ErrorKind
from .validation import split_domain


Status = Literal["available", "taken", "error", "checking"]
CheckMethod = Literal["DNS", "WHOIS", "HYBRID"]
ProbeKind = Literal["dns", "whois", "hybrid"]


class WhoisData(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    registrar: str | None = None
    expiration_date: datetime | None = None
    registration_date: datetime | None = None
    name_servers: list[str] | None = None
    statuses: list[str] | None = None


class DomainResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    base_domain: str
    tld: str
    status: Status
    check_method: CheckMethod
    last_checked: datetime
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    retry_count: int = Field(default=0, ge=0)

    error: str | None = None
    error_kind: ErrorKind | None = None
    dns_records: list[str] | None = None
    whois_data: WhoisData | None = None
    probe_errors: dict[str, str] | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> DomainResult:
        if self.tld and not self.tld.startswith("."):
            raise ValueError(f"tld must be empty or start with '.', got {self.tld!r}")
        if self.status in ("available", "taken") and (self.error is not None or self.error_kind is not None):
            raise ValueError(f"{self.status} result must not carry an error")
        if self.status == "error" and not self.error:
            raise ValueError("error result requires an error message")
        return self

    @classmethod
    def placeholder(cls, domain: str, check_method: CheckMethod = "HYBRID") -> DomainResult:
        base_domain, tld = split_domain(domain)
        return cls(
            domain=domain,
            base_domain=base_domain,
            tld=tld,
            status="checking",
            check_method=check_method,
            last_checked=datetime.now(timezone.utc),
        )


def elapsed_ms(started: float) -> float:
    return max(0.0, (time.perf_counter() - started) * 1000)


def build_result(
    domain: str,
    *,
    status: Status,
    check_method: CheckMethod,
    started: float,
    error: str | None = None,
    error_kind: ErrorKind | None = None,
    dns_records: list[str] | None = None,
    whois_data: WhoisData | None = None,
    probe_errors: dict[str, str] | None = None,
    retry_count: int = 0,
) -> DomainResult:
    base_domain, tld = split_domain(domain)
    return DomainResult(
        domain=domain,
        base_domain=base_domain,
        tld=tld,
        status=status,
        check_method=check_method,
        last_checked=datetime.now(timezone.utc),
        execution_time_ms=elapsed_ms(started),
        retry_count=retry_count,
        error=error,
        error_kind=error_kind,
        dns_records=dns_records or None,
        whois_data=whois_data,
        probe_errors=probe_errors or None,
    )


class ProbeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timeout_ms: int = Field(default=5000, ge=1, le=120000)
    max_retries: int = Field(default=2, ge=0, le=10)
    retry_delay_ms: int = Field(default=500, ge=0, le=60000)
    use_exponential_backoff: bool = False
    priority: int = 0
    enabled: bool = True


class RetryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay_ms: int = Field(default=1000, ge=0)
    use_exponential_backoff: bool = True
    max_delay_ms: int = Field(default=30000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    def delay_ms(self, attempt: int) -> float:
        if self.use_exponential_backoff:
            delay = self.initial_delay_ms * (self.backoff_multiplier**attempt)
        else:
            delay = float(self.initial_delay_ms)
        return min(delay, float(self.max_delay_ms))


class ToolOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: ProbeKind = "hybrid"
    timeout_ms: int = Field(default=15000, ge=100, le=120000)
    max_retries: int = Field(default=2, ge=0, le=10)
    retry_delay_ms: int = Field(default=1000, ge=0, le=60000)
    batch_size: int = Field(default=5, ge=1, le=100)
    batch_delay_ms: int = Field(default=100, ge=0, le=10000)
    whois_rate_limit_ms: int = Field(default=1000, ge=0, le=60000)
    run_log_dir: str | None = None


class CheckDomainsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_name: str | None = Field(default=None, min_length=1, max_length=63)
    tlds: list[str] | None = Field(default=None, min_length=1, max_length=50)
    domains: list[str] | None = Field(default=None, min_length=1, max_length=5000)
    options: ToolOptions = Field(default_factory=ToolOptions)

    @model_validator(mode="after")
    def _check_targets(self) -> CheckDomainsInput:
        if self.base_name is None and self.domains is None:
            raise ValueError("either base_name or domains is required")
        if self.base_name is not None and self.domains is not None:
            raise ValueError("base_name and domains are mutually exclusive")
        return self


class ResultSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total: int = 0
    available: int = 0
    taken: int = 0
    errors: int = 0
    checking: int = 0
    completed: int = 0
    fastest_ms: float | None = None
    average_ms: float | None = None


class CheckDomainsOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    checked_at: str
    results: list[DomainResult]
    summary: ResultSummary
