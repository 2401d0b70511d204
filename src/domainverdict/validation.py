from __future__ import annotations

import re


MAX_DOMAIN_LENGTH = 253

DOMAIN_FORMAT_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
COMMAND_DOMAIN_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)*\.[a-zA-Z][a-zA-Z0-9-]*[a-zA-Z0-9]$"
)


def split_domain(domain: str) -> tuple[str, str]:
    lowered = domain.strip().lower()
    parts = lowered.rsplit(".", maxsplit=1)
    if len(parts) != 2:
        return lowered, ""
    return parts[0], f".{parts[1]}"


def extract_tld(domain: str) -> str:
    return split_domain(domain)[1]


def is_valid_domain_format(domain: object, *, require_tld: bool = False) -> bool:
    if not isinstance(domain, str) or not domain:
        return False
    if len(domain) > MAX_DOMAIN_LENGTH:
        return False
    if require_tld and "." not in domain:
        return False
    return DOMAIN_FORMAT_RE.fullmatch(domain) is not None


def matches_command_pattern(domain: str) -> bool:
    return COMMAND_DOMAIN_RE.fullmatch(domain) is not None


def normalize_tld(tld: str) -> str:
    cleaned = tld.strip().lower()
    if not cleaned:
        raise ValueError("TLD cannot be empty")
    return cleaned if cleaned.startswith(".") else f".{cleaned}"
