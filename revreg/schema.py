"""JSON Schema validation for state snapshots and batch files."""

from __future__ import annotations

import datetime
import json
import pathlib
from functools import lru_cache
from typing import Any, List

from jsonschema import Draft202012Validator

SCHEMA_DIR = pathlib.Path(__file__).resolve().parent / "schemas"

STATE_SCHEMA = "state.schema.json"
BATCH_SCHEMA = "batch.schema.json"


@lru_cache(maxsize=None)
def schema_validator(schema_name: str) -> Draft202012Validator:
    schema = json.loads((SCHEMA_DIR / schema_name).read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def validate_with_schema(obj: Any, schema_name: str) -> List[str]:
    errors = []
    for e in sorted(schema_validator(schema_name).iter_errors(_jsonable(obj)), key=str):
        errors.append(f"{list(e.absolute_path)}: {e.message}")
    return errors


def _jsonable(obj: Any) -> Any:
    # yaml.safe_load turns bare YYYY-MM-DD into date objects
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_jsonable(v) for v in obj]
    if isinstance(obj, datetime.date):
        return obj.isoformat()
    return obj
