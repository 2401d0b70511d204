from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .errors import (
    CommandFailedError,
    DomainCheckError,
    ErrorKind,
    InvalidDomainError,
    UnsupportedDomainError,
    is_retryable,
)
from .models import DomainResult, RetryConfig, elapsed_ms
from .probe import Probe
from .validation import matches_command_pattern


logger = logging.getLogger(__name__)


def _error_kind_for(exc: BaseException) -> ErrorKind:
    if isinstance(exc, DomainCheckError):
        return exc.kind
    # TimeoutError subclasses OSError from 3.11 on, so it is checked first.
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(exc, OSError):
        return "network"
    return "unexpected"


class CommandStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class DomainCheckCommand:
    """One availability check of one domain, with validation and retries.

    A command runs once: PENDING -> EXECUTING -> COMPLETED | FAILED. Use
    ``clone()`` to get a fresh command with the same configuration.
    """

    def __init__(
        self,
        domain: str,
        probe: Probe | None,
        retry_config: RetryConfig | None = None,
        priority: int = 0,
    ) -> None:
        self._id = uuid.uuid4().hex
        self._domain = domain
        self._probe = probe
        self._retry_config = retry_config or RetryConfig()
        self._priority = priority
        self._status = CommandStatus.PENDING
        self._created_at = datetime.now(timezone.utc)
        self._attempts = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def probe(self) -> Probe | None:
        return self._probe

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    def set_retry_config(self, retry_config: RetryConfig) -> None:
        self._retry_config = retry_config

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def status(self) -> CommandStatus:
        return self._status

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def name(self) -> str:
        return f"DomainCheck:{self._domain}"

    @property
    def description(self) -> str:
        probe_name = self._probe.name if self._probe is not None else "<none>"
        return f"Check availability of domain '{self._domain}' using {probe_name} strategy"

    def clone(self) -> DomainCheckCommand:
        return DomainCheckCommand(self._domain, self._probe, self._retry_config, self._priority)

    def validate(self) -> None:
        if self._probe is None:
            raise ValueError("Query strategy is required")
        if not self._domain or not self._domain.strip():
            raise InvalidDomainError("Domain name cannot be empty")
        if not matches_command_pattern(self._domain):
            raise InvalidDomainError(f"Invalid domain format: {self._domain}")

    async def execute(self) -> DomainResult:
        if self._status is not CommandStatus.PENDING:
            raise RuntimeError(f"{self.name} already ran ({self._status.value}); clone it to run again")

        self._status = CommandStatus.EXECUTING
        try:
            self.validate()
            assert self._probe is not None
            if not self._probe.can_handle(self._domain):
                raise UnsupportedDomainError(f"Strategy {self._probe.name} cannot handle domain: {self._domain}")
            result = await self._run_attempts(self._probe)
        except BaseException:
            self._status = CommandStatus.FAILED
            raise

        self._status = CommandStatus.FAILED if result.status == "error" else CommandStatus.COMPLETED
        return result

    async def _run_attempts(self, probe: Probe) -> DomainResult:
        config = self._retry_config
        last_result: DomainResult | None = None
        last_error: Exception | None = None

        for attempt in range(config.max_retries + 1):
            if attempt:
                delay_ms = config.delay_ms(attempt - 1)
                reason = last_error if last_error is not None else (last_result.error if last_result else None)
                logger.debug("Retrying %s (retry %d/%d) in %.0fms: %s", self._domain, attempt, config.max_retries, delay_ms, reason)
                await asyncio.sleep(delay_ms / 1000)

            self._attempts = attempt + 1
            try:
                result = await probe.probe(self._domain)
            except Exception as exc:
                last_error, last_result = exc, None
                continue

            last_error = None
            if result.status == "error" and is_retryable(result.error_kind):
                last_result = result
                continue
            return result.model_copy(update={"retry_count": attempt})

        if last_error is not None:
            raise CommandFailedError(
                f"Domain check failed for {self._domain} using {probe.name}: {last_error}",
                kind=_error_kind_for(last_error),
            ) from last_error
        assert last_result is not None
        return last_result.model_copy(update={"retry_count": config.max_retries})


@dataclass(frozen=True)
class CommandOutcome:
    command_id: str
    domain: str
    success: bool
    result: DomainResult | None
    error: str | None
    error_kind: ErrorKind | None
    retry_count: int
    execution_time_ms: float


@dataclass(frozen=True)
class HistoryEntry:
    command: DomainCheckCommand
    outcome: CommandOutcome
    finished_at: datetime


@dataclass(frozen=True)
class InvokerStatistics:
    total_commands: int
    successful_commands: int
    failed_commands: int
    average_execution_ms: float | None


class CommandInvoker:
    def __init__(self, max_history: int = 1000) -> None:
        self._max_history = max_history
        self._history: list[HistoryEntry] = []

    async def execute(self, command: DomainCheckCommand) -> CommandOutcome:
        started = time.perf_counter()
        try:
            result = await command.execute()
        except DomainCheckError as exc:
            outcome = CommandOutcome(
                command_id=command.id,
                domain=command.domain,
                success=False,
                result=None,
                error=str(exc),
                error_kind=exc.kind,
                retry_count=max(0, command.attempts - 1),
                execution_time_ms=elapsed_ms(started),
            )
        else:
            outcome = CommandOutcome(
                command_id=command.id,
                domain=command.domain,
                success=result.status != "error",
                result=result,
                error=result.error,
                error_kind=result.error_kind,
                retry_count=result.retry_count,
                execution_time_ms=elapsed_ms(started),
            )
        self._record(command, outcome)
        return outcome

    async def execute_parallel(self, commands: list[DomainCheckCommand]) -> list[CommandOutcome]:
        return list(await asyncio.gather(*(self.execute(command) for command in commands)))

    def _record(self, command: DomainCheckCommand, outcome: CommandOutcome) -> None:
        self._history.append(HistoryEntry(command=command, outcome=outcome, finished_at=datetime.now(timezone.utc)))
        if len(self._history) > self._max_history:
            del self._history[: len(self._history) - self._max_history]

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def statistics(self) -> InvokerStatistics:
        total = len(self._history)
        successful = sum(1 for entry in self._history if entry.outcome.success)
        average = sum(entry.outcome.execution_time_ms for entry in self._history) / total if total else None
        return InvokerStatistics(
            total_commands=total,
            successful_commands=successful,
            failed_commands=total - successful,
            average_execution_ms=average,
        )
