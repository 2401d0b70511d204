from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from . import __version__
from .models import CheckDomainsInput, CheckDomainsOutput


RUN_LOG_NAME = "results.jsonl"


def append_run_log(log_dir: Path, payload: CheckDomainsInput, output: CheckDomainsOutput) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / RUN_LOG_NAME

    summary = output.summary
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "tool_version": __version__,
        "options": payload.options.model_dump(),
        "counts": {
            "available": summary.available,
            "taken": summary.taken,
            "error": summary.errors,
            "checking": summary.checking,
        },
        "domains": [r.domain for r in output.results],
    }
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry) + "\n")
    return log_path
