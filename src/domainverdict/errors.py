from __future__ import annotations

from typing import Literal


ErrorKind = Literal[
    "invalid_format",
    "network",
    "timeout",
    "parse_ambiguous",
    "both_failed",
    "unsupported",
    "unexpected",
]

RETRYABLE_ERROR_KINDS: frozenset[str] = frozenset({"network", "timeout", "both_failed"})


class DomainCheckError(Exception):
    kind: ErrorKind = "unexpected"


class InvalidDomainError(DomainCheckError, ValueError):
    kind: ErrorKind = "invalid_format"


class UnsupportedDomainError(DomainCheckError):
    kind: ErrorKind = "unsupported"


class CommandFailedError(DomainCheckError):
    def __init__(self, message: str, kind: ErrorKind = "unexpected") -> None:
        super().__init__(message)
        self.kind = kind


class QueueFullError(DomainCheckError):
    pass


def is_retryable(kind: str | None) -> bool:
    return kind in RETRYABLE_ERROR_KINDS
