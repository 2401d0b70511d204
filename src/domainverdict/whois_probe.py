from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import time
from datetime import datetime, timezone

from .models import DomainResult, ProbeConfig, Status, WhoisData, build_result, elapsed_ms
from .probe import Probe
from .rate_limit import RateLimiter
from .validation import extract_tld, is_valid_domain_format
from .whois_servers import (
    IANA_WHOIS_SERVER,
    WHOIS_PORT,
    WHOIS_SERVERS,
    parse_iana_referral,
)


logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_MS = 1000
MAX_BACKOFF_MS = 5000
AMBIGUOUS_LENGTH_THRESHOLD = 50

AVAILABLE_PATTERNS = (
    "no match",
    "not found",
    "no entries found",
    "no data found",
    "available",
    "not registered",
    "no matching record",
    "status: available",
    "domain status: no object found",
)
TAKEN_PATTERNS = (
    "registrar:",
    "creation date:",
    "created:",
    "registered:",
    "domain status: ok",
    "domain status: active",
    "registry expiry date:",
    "expiry date:",
    "expires:",
)

REGISTRAR_RE = re.compile(r"registrar:[ \t]*(\S.*)", re.IGNORECASE)
EXPIRY_RES = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"registry expiry date:[ \t]*(\S.*)",
        r"expiry date:[ \t]*(\S.*)",
        r"expires:[ \t]*(\S.*)",
        r"expiration date:[ \t]*(\S.*)",
    )
)
CREATION_RES = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"creation date:[ \t]*(\S.*)",
        r"created:[ \t]*(\S.*)",
        r"registered:[ \t]*(\S.*)",
    )
)
NAME_SERVER_RE = re.compile(r"name server:[ \t]*(\S+)", re.IGNORECASE)
DOMAIN_STATUS_RE = re.compile(r"domain status:[ \t]*(\S.*)", re.IGNORECASE)

_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y.%m.%d",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%d-%b-%Y",
    "%d-%b-%Y %H:%M:%S",
    "%d.%m.%Y",
)


def parse_whois_date(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first_date(text: str, patterns: tuple[re.Pattern[str], ...]) -> datetime | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            parsed = parse_whois_date(match.group(1))
            if parsed is not None:
                return parsed
    return None


def _registrar(text: str) -> str | None:
    match = REGISTRAR_RE.search(text)
    return match.group(1).strip() if match else None


def classify_whois_response(text: str) -> tuple[Status, WhoisData | None]:
    lowered = text.lower()
    if any(pattern in lowered for pattern in AVAILABLE_PATTERNS):
        return "available", None

    if any(pattern in lowered for pattern in TAKEN_PATTERNS):
        registrar = _registrar(text)
        expiration_date = _first_date(text, EXPIRY_RES)
        if registrar or expiration_date:
            return "taken", WhoisData(registrar=registrar, expiration_date=expiration_date)
        return "taken", None

    if not text.strip():
        return "available", None
    # Unrecognised but substantial text is usually a registered domain in an unknown format.
    if len(text) > AMBIGUOUS_LENGTH_THRESHOLD:
        return "taken", None
    return "error", None


def parse_whois_details(text: str) -> WhoisData:
    name_servers = [ns.strip().rstrip(".").lower() for ns in NAME_SERVER_RE.findall(text)]
    statuses = [status.strip() for status in DOMAIN_STATUS_RE.findall(text)]
    return WhoisData(
        registrar=_registrar(text),
        expiration_date=_first_date(text, EXPIRY_RES),
        registration_date=_first_date(text, CREATION_RES),
        name_servers=name_servers or None,
        statuses=statuses or None,
    )


async def query_whois(domain: str, server: str, port: int = WHOIS_PORT) -> str:
    reader, writer = await asyncio.open_connection(server, port)
    try:
        writer.write(f"{domain}\r\n".encode("ascii", errors="ignore"))
        await writer.drain()
        data = await reader.read()
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
    return data.decode("utf-8", errors="replace")


class WhoisProbe(Probe):
    name = "WHOISQueryService"
    check_method = "WHOIS"
    default_config = ProbeConfig(
        timeout_ms=10000,
        max_retries=3,
        retry_delay_ms=1000,
        use_exponential_backoff=True,
        priority=1,
    )

    def __init__(
        self,
        config: ProbeConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        servers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(config)
        self._rate_limiter = rate_limiter or RateLimiter(DEFAULT_RATE_LIMIT_MS)
        self._servers = {**WHOIS_SERVERS, **(servers or {})}
        self._referrals: dict[str, str] = {}

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def rate_limit_delay_ms(self) -> int:
        return self._rate_limiter.min_interval_ms

    def set_rate_limit_delay(self, delay_ms: int) -> None:
        self._rate_limiter.min_interval_ms = delay_ms

    def can_handle(self, domain: str) -> bool:
        return is_valid_domain_format(domain) and extract_tld(domain) in self._servers

    def _backoff_ms(self, attempt: int) -> float:
        base = self._config.retry_delay_ms
        if self._config.use_exponential_backoff:
            return min(base * (2**attempt), MAX_BACKOFF_MS)
        return min(base, MAX_BACKOFF_MS)

    async def resolve_server(self, tld: str) -> str:
        if not tld:
            raise LookupError("Domain has no TLD to resolve a WHOIS server for")
        server = self._servers.get(tld) or self._referrals.get(tld)
        if server:
            return server
        text = await asyncio.wait_for(query_whois(tld.lstrip("."), IANA_WHOIS_SERVER), timeout=self.timeout_s)
        referral = parse_iana_referral(text)
        if referral is None:
            raise LookupError(f"No WHOIS server known for {tld}")
        logger.debug("IANA referred %s to %s", tld, referral)
        self._referrals[tld] = referral
        return referral

    async def fetch_whois_text(self, domain: str) -> str:
        server = await self.resolve_server(extract_tld(domain))
        attempts = self._config.max_retries + 1
        last_error: BaseException | None = None
        for attempt in range(attempts):
            await self._rate_limiter.acquire()
            try:
                return await asyncio.wait_for(query_whois(domain, server), timeout=self.timeout_s)
            except (asyncio.TimeoutError, OSError) as exc:
                last_error = exc
                if attempt + 1 < attempts:
                    delay_ms = self._backoff_ms(attempt)
                    logger.debug("WHOIS attempt %d for %s failed (%r); retrying in %.0fms", attempt + 1, domain, exc, delay_ms)
                    await asyncio.sleep(delay_ms / 1000)
        assert last_error is not None
        raise last_error

    async def probe(self, domain: str) -> DomainResult:
        started = time.perf_counter()
        if not is_valid_domain_format(domain):
            return build_result(
                domain,
                status="error",
                check_method="WHOIS",
                started=started,
                error="Invalid domain format",
                error_kind="invalid_format",
            )

        try:
            text = await self.fetch_whois_text(domain)
        except asyncio.TimeoutError:
            return build_result(
                domain,
                status="error",
                check_method="WHOIS",
                started=started,
                error=f"WHOIS lookup timeout after {self._config.timeout_ms}ms",
                error_kind="timeout",
            )
        except (LookupError, OSError) as exc:
            return build_result(
                domain,
                status="error",
                check_method="WHOIS",
                started=started,
                error=f"WHOIS lookup failed: {str(exc) or type(exc).__name__}",
                error_kind="network",
            )

        status, whois_data = classify_whois_response(text)
        if status == "error":
            return build_result(
                domain,
                status="error",
                check_method="WHOIS",
                started=started,
                error="Ambiguous WHOIS response",
                error_kind="parse_ambiguous",
            )
        return build_result(domain, status=status, check_method="WHOIS", started=started, whois_data=whois_data)

    async def detailed_info(self, domain: str) -> dict:
        started = time.perf_counter()
        try:
            raw = await self.fetch_whois_text(domain)
        except (asyncio.TimeoutError, LookupError, OSError) as exc:
            logger.warning("Detailed WHOIS lookup for %s failed: %r", domain, exc)
            return {"domain": domain, "raw_data": "", "execution_time_ms": elapsed_ms(started)}

        details = parse_whois_details(raw)
        return {
            "domain": domain,
            "raw_data": raw,
            **details.model_dump(exclude_none=True),
            "execution_time_ms": elapsed_ms(started),
        }
