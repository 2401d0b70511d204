from __future__ import annotations

import json
from pathlib import Path

import jsonschema


SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"
INPUT_SCHEMA = "check_domains_in.schema.json"
OUTPUT_SCHEMA = "check_domains_out.schema.json"


def load_schema(name: str) -> dict:
    return json.loads((SCHEMAS_DIR / name).read_text())


def validate_payload(payload: dict, schema_name: str) -> None:
    jsonschema.validate(payload, load_schema(schema_name))
