from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

from .command import CommandInvoker, CommandOutcome, DomainCheckCommand
from .errors import QueueFullError
from .models import DomainResult, RetryConfig, build_result
from .probe import Probe
from .validation import normalize_tld


logger = logging.getLogger(__name__)


def construct_domains(base_name: str, tlds: list[str]) -> list[str]:
    base = base_name.strip().lower()
    if not base:
        raise ValueError("Base domain name cannot be empty")
    return [f"{base}{normalize_tld(tld)}" for tld in tlds]


def _chunk_domains(domains: list[str], batch_size: int) -> Iterator[list[str]]:
    for idx in range(0, len(domains), batch_size):
        yield domains[idx : idx + batch_size]


class BatchExecutor:
    """Checks many domains with one probe, a chunk at a time.

    Every domain gets its own command, so a failure (invalid name, unsupported
    TLD, exhausted retries) only turns that domain's entry into an error.
    """

    def __init__(
        self,
        probe: Probe,
        batch_size: int = 5,
        batch_delay_ms: int = 100,
        retry_config: RetryConfig | None = None,
        invoker: CommandInvoker | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._probe = probe
        self._batch_size = batch_size
        self._batch_delay_ms = max(0, batch_delay_ms)
        self._retry_config = retry_config or RetryConfig()
        self._invoker = invoker or CommandInvoker()

    @property
    def probe(self) -> Probe:
        return self._probe

    @property
    def invoker(self) -> CommandInvoker:
        return self._invoker

    async def execute_batch(self, domains: list[str]) -> list[DomainResult]:
        results: list[DomainResult] = []
        chunks = list(_chunk_domains(domains, self._batch_size))
        for idx, chunk in enumerate(chunks):
            started = time.perf_counter()
            outcomes = await self._invoker.execute_parallel(
                [DomainCheckCommand(domain, self._probe, self._retry_config) for domain in chunk]
            )
            results.extend(self._result_for(outcome, started) for outcome in outcomes)
            if idx + 1 < len(chunks) and self._batch_delay_ms:
                await asyncio.sleep(self._batch_delay_ms / 1000)
        return results

    async def check_base_name(self, base_name: str, tlds: list[str]) -> list[DomainResult]:
        return await self.execute_batch(construct_domains(base_name, tlds))

    def _result_for(self, outcome: CommandOutcome, started: float) -> DomainResult:
        if outcome.result is not None:
            return outcome.result
        logger.warning("Check of %s failed: %s", outcome.domain, outcome.error)
        return build_result(
            outcome.domain,
            status="error",
            check_method=self._probe.check_method,
            started=started,
            error=outcome.error or "Unknown error",
            error_kind=outcome.error_kind or "unexpected",
            retry_count=outcome.retry_count,
        )


class QueuePriority(IntEnum):
    HIGH = 0
    NORMAL = 1
    LOW = 2


@dataclass(frozen=True)
class QueueStatistics:
    queued: int
    high: int
    normal: int
    low: int
    max_queue_size: int
    max_concurrency: int


class CommandQueue:
    def __init__(
        self,
        max_queue_size: int = 100,
        max_concurrency: int = 5,
        invoker: CommandInvoker | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_queue_size = max_queue_size
        self._max_concurrency = max_concurrency
        self._invoker = invoker or CommandInvoker()
        self._heap: list[tuple[int, int, DomainCheckCommand]] = []
        self._counter = itertools.count()

    @property
    def size(self) -> int:
        return len(self._heap)

    @property
    def invoker(self) -> CommandInvoker:
        return self._invoker

    def enqueue(self, command: DomainCheckCommand, priority: QueuePriority = QueuePriority.NORMAL) -> None:
        if len(self._heap) >= self._max_queue_size:
            logger.warning("Queue full (%d); rejecting %s", self._max_queue_size, command.name)
            raise QueueFullError(f"Queue is full (max size: {self._max_queue_size})")
        heapq.heappush(self._heap, (int(priority), next(self._counter), command))

    def _dequeue(self) -> DomainCheckCommand:
        return heapq.heappop(self._heap)[2]

    def clear(self) -> None:
        self._heap.clear()

    async def run(self) -> list[CommandOutcome]:
        ordered = [self._dequeue() for _ in range(len(self._heap))]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _run_one(command: DomainCheckCommand) -> CommandOutcome:
            async with semaphore:
                return await self._invoker.execute(command)

        return list(await asyncio.gather(*(_run_one(command) for command in ordered)))

    def statistics(self) -> QueueStatistics:
        levels = [entry[0] for entry in self._heap]
        return QueueStatistics(
            queued=len(levels),
            high=levels.count(QueuePriority.HIGH),
            normal=levels.count(QueuePriority.NORMAL),
            low=levels.count(QueuePriority.LOW),
            max_queue_size=self._max_queue_size,
            max_concurrency=self._max_concurrency,
        )
