from __future__ import annotations

from .dns_probe import DNSProbe
from .hybrid import HybridProbe
from .models import ProbeKind
from .probe import Probe
from .whois_probe import WhoisProbe


PROBE_TYPES: dict[str, type[Probe]] = {
    "dns": DNSProbe,
    "whois": WhoisProbe,
    "hybrid": HybridProbe,
}


def create_probe(kind: ProbeKind | str) -> Probe:
    try:
        probe_type = PROBE_TYPES[kind.lower()]
    except KeyError:
        raise ValueError(f"Unknown probe kind: {kind!r} (expected one of {sorted(PROBE_TYPES)})") from None
    return probe_type()
