from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import CheckMethod, DomainResult, ProbeConfig


class Probe(ABC):
    """Common surface of the DNS, WHOIS and hybrid availability probes.

    A probe never raises for expected failures (bad syntax, network trouble,
    deadlines); those come back as ``status="error"`` results.
    """

    name: str
    check_method: CheckMethod
    default_config: ProbeConfig = ProbeConfig()

    def __init__(self, config: ProbeConfig | None = None) -> None:
        self._config = (config or self.default_config).model_copy()

    @abstractmethod
    async def probe(self, domain: str) -> DomainResult: ...

    @abstractmethod
    def can_handle(self, domain: str) -> bool: ...

    @property
    def config(self) -> ProbeConfig:
        return self._config.model_copy()

    @property
    def priority(self) -> int:
        return self._config.priority

    def set_config(self, **changes: Any) -> None:
        merged = {**self._config.model_dump(), **changes}
        self._config = ProbeConfig.model_validate(merged)

    @property
    def timeout_s(self) -> float:
        return self._config.timeout_ms / 1000

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout_ms={self._config.timeout_ms}, max_retries={self._config.max_retries})"
