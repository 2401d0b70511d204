from __future__ import annotations

import time

import pytest

from domainverdict.batch import CommandQueue, QueuePriority
from domainverdict.command import DomainCheckCommand
from domainverdict.errors import QueueFullError
from domainverdict.models import DomainResult, RetryConfig, build_result
from domainverdict.probe import Probe


class TakenProbe(Probe):
    name = "TakenService"
    check_method = "WHOIS"

    def __init__(self) -> None:
        super().__init__()
        self.order: list[str] = []

    def can_handle(self, domain: str) -> bool:
        return True

    async def probe(self, domain: str) -> DomainResult:
        self.order.append(domain)
        return build_result(domain, status="taken", check_method="WHOIS", started=time.perf_counter())


def _command(domain: str, probe: Probe) -> DomainCheckCommand:
    return DomainCheckCommand(domain, probe, RetryConfig(max_retries=0, initial_delay_ms=0))


@pytest.mark.asyncio
async def test_higher_priority_runs_first_and_fifo_within_level() -> None:
    probe = TakenProbe()
    queue = CommandQueue(max_concurrency=1)
    queue.enqueue(_command("low.com", probe), QueuePriority.LOW)
    queue.enqueue(_command("normal1.com", probe))
    queue.enqueue(_command("high.com", probe), QueuePriority.HIGH)
    queue.enqueue(_command("normal2.com", probe), QueuePriority.NORMAL)

    outcomes = await queue.run()

    expected = ["high.com", "normal1.com", "normal2.com", "low.com"]
    assert [outcome.domain for outcome in outcomes] == expected
    assert probe.order == expected
    assert queue.size == 0
    assert queue.invoker.statistics().successful_commands == 4


def test_full_queue_rejects_new_commands() -> None:
    probe = TakenProbe()
    queue = CommandQueue(max_queue_size=2)
    queue.enqueue(_command("a1.com", probe))
    queue.enqueue(_command("b2.com", probe), QueuePriority.HIGH)

    with pytest.raises(QueueFullError):
        queue.enqueue(_command("c3.com", probe))

    stats = queue.statistics()
    assert (stats.queued, stats.high, stats.normal, stats.low) == (2, 1, 1, 0)

    queue.clear()
    assert queue.size == 0
