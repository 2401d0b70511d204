from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path


def _supports_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def _ansi(text: str, code: str, *, enabled: bool) -> str:
    if not enabled:
        return text
    return f"\033[{code}m{text}\033[0m"


def _status_label(status: str, *, color: bool) -> str:
    normalized = status.lower()
    if normalized == "available":
        return _ansi("AVAILABLE", "1;32", enabled=color)
    if normalized == "taken":
        return _ansi("TAKEN", "1;31", enabled=color)
    if normalized == "error":
        return _ansi("ERROR", "1;33", enabled=color)
    return _ansi(normalized.upper(), "1;90", enabled=color)


def _render_report(output: dict) -> str:
    color = _supports_color()
    summary = output["summary"]

    lines: list[str] = []
    lines.append(_ansi("Domain Availability", "1;36", enabled=color))
    lines.append(f"Checked at: {output['checked_at']}")
    lines.append(f"Domains checked: {summary['total']}")
    lines.append(
        "Status counts: "
        + ", ".join(
            [
                f"{_status_label('available', color=color)}={summary['available']}",
                f"{_status_label('taken', color=color)}={summary['taken']}",
                f"{_status_label('error', color=color)}={summary['errors']}",
            ]
        )
    )
    if summary.get("average_ms") is not None:
        lines.append(f"Fastest: {summary['fastest_ms']:.0f}ms, average: {summary['average_ms']:.0f}ms")

    lines.append("")
    for row in output["results"]:
        status = _status_label(row["status"], color=color)
        line = f"{row['domain']:<35} {status:<18} {row['check_method']:<7} {row.get('execution_time_ms', 0):>7.0f}ms"
        if row.get("error"):
            line += f"  {row['error']}"
        lines.append(line)

    return "\n".join(lines) + "\n"


def _read_payload(input_path: str | None) -> dict:
    if input_path:
        return json.loads(Path(input_path).read_text())
    return json.loads(sys.stdin.read())


def _payload_from_args(args: argparse.Namespace) -> dict:
    if args.base is None and args.domains is None:
        return _read_payload(args.input)

    payload: dict = {}
    if args.base is not None:
        payload["base_name"] = args.base
        if args.tlds:
            payload["tlds"] = args.tlds
    if args.domains is not None:
        payload["domains"] = args.domains
    options: dict = {}
    if args.method:
        options["method"] = args.method
    if args.timeout_ms is not None:
        options["timeout_ms"] = args.timeout_ms
    if options:
        payload["options"] = options
    return payload


def _write_output(payload: dict, output_path: str | None) -> None:
    rendered = json.dumps(payload, indent=2)
    if output_path:
        Path(output_path).write_text(rendered + "\n")
    else:
        sys.stdout.write(rendered + "\n")


def main(argv: list[str] | None = None) -> int:
    import jsonschema
    from pydantic import ValidationError

    from .checker import check_domains
    from .models import CheckDomainsInput
    from .schema_utils import INPUT_SCHEMA, OUTPUT_SCHEMA, validate_payload

    parser = argparse.ArgumentParser(description="Check domain name availability over DNS and WHOIS")
    parser.add_argument("--input", help="Path to JSON input payload (default: stdin)")
    parser.add_argument("--output", help="Path to JSON output payload (default: stdout)")
    parser.add_argument("--base", help="Base name to check against --tlds")
    parser.add_argument("--tlds", nargs="+", help="TLDs to combine with --base")
    parser.add_argument("--domains", nargs="+", help="Fully qualified domains to check")
    parser.add_argument("--method", choices=["dns", "whois", "hybrid"])
    parser.add_argument("--timeout-ms", type=int)
    parser.add_argument("--report", action="store_true", help="Print a human readable report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr")
    args = parser.parse_args(argv)

    if args.base is not None and args.domains is not None:
        parser.error("--base and --domains are mutually exclusive")
    if args.tlds and args.base is None:
        parser.error("--tlds requires --base")

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        raw = _payload_from_args(args)
        validate_payload(raw, INPUT_SCHEMA)
        payload = CheckDomainsInput.model_validate(raw)
    except (json.JSONDecodeError, OSError, jsonschema.ValidationError, ValidationError) as exc:
        sys.stderr.write(f"Input validation error: {exc}\n")
        return 2

    try:
        output = asyncio.run(check_domains(payload))
        rendered = output.model_dump(mode="json")
        validate_payload(rendered, OUTPUT_SCHEMA)
    except Exception as exc:
        error_payload = {"error": str(exc)}
        _write_output(error_payload, args.output)
        return 3

    if args.report:
        sys.stdout.write(_render_report(rendered))
        if args.output:
            _write_output(rendered, args.output)
    else:
        _write_output(rendered, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
