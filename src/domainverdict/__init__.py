from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "BatchExecutor",
    "CheckDomainsInput",
    "CheckDomainsOutput",
    "DomainCheckCommand",
    "DomainResult",
    "check_domains",
    "create_probe",
]

_EXPORTS = {
    "BatchExecutor": ".batch",
    "CheckDomainsInput": ".models",
    "CheckDomainsOutput": ".models",
    "DomainCheckCommand": ".command",
    "DomainResult": ".models",
    "check_domains": ".checker",
    "create_probe": ".factory",
}


def __getattr__(name: str):
    if name in _EXPORTS:
        from importlib import import_module

        return getattr(import_module(_EXPORTS[name], __name__), name)
    raise AttributeError(name)
