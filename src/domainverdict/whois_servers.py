from __future__ import annotations

import re


WHOIS_PORT = 43
IANA_WHOIS_SERVER = "whois.iana.org"

# Registries that answer port-43 queries in a format the classifier knows.
WHOIS_SERVERS: dict[str, str] = {
    ".com": "whois.verisign-grs.com",
    ".net": "whois.verisign-grs.com",
    ".org": "whois.pir.org",
    ".info": "whois.afilias.net",
    ".biz": "whois.nic.biz",
    ".name": "whois.nic.name",
    ".mobi": "whois.afilias.net",
    ".co": "whois.nic.co",
    ".io": "whois.nic.io",
    ".ai": "whois.nic.ai",
    ".dev": "whois.nic.google",
    ".app": "whois.nic.google",
    ".tech": "whois.centralnic.com",
    ".me": "whois.nic.me",
    ".tv": "whois.nic.tv",
    ".cc": "ccwhois.verisign-grs.com",
    ".ws": "whois.website.ws",
}

_REFER_RE = re.compile(r"^\s*(?:refer|whois):\s*(\S+)", re.IGNORECASE | re.MULTILINE)


def parse_iana_referral(text: str) -> str | None:
    match = _REFER_RE.search(text)
    if not match:
        return None
    return match.group(1).strip().rstrip(".").lower() or None
