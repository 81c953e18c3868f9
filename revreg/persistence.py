"""JSON state file backend.

Stands in for the execution environment's persisted key-value state when
the registry runs outside a ledger (CLI, tests, local tooling). The backend
only moves snapshot dicts to and from disk; the registry owns their shape.

Snapshots are checked against ``schemas/state.schema.json`` on both load
and save. Writes are atomic: the snapshot goes to a temp file in the same
directory and is moved into place with ``os.replace``.
"""

from __future__ import annotations

import json
import os
import pathlib
import tempfile
from typing import Any, Dict, Optional, Union

from revreg.schema import STATE_SCHEMA, validate_with_schema

STATE_FORMAT = "revreg.state.v1"


class PersistenceError(Exception):
    """State file missing, unreadable or in an unknown format."""
    pass


class JsonStateBackend:
    """Load/save registry snapshots as canonical JSON."""

    def __init__(self, path: Union[str, pathlib.Path]):
        self.path = pathlib.Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored snapshot, or None if no state file exists yet."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"cannot read state file {self.path}: {e}") from e
        check_format(data, str(self.path))
        return data

    def save(self, snapshot: Dict[str, Any]) -> None:
        check_format(snapshot, "snapshot")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(snapshot, sort_keys=True, indent=2, ensure_ascii=False) + "\n"

        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self.path)
        except OSError as e:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise PersistenceError(f"cannot write state file {self.path}: {e}") from e


def check_format(data: Any, source: str) -> None:
    if not isinstance(data, dict):
        raise PersistenceError(f"{source}: state must be a JSON object")
    fmt = data.get("format")
    if fmt != STATE_FORMAT:
        raise PersistenceError(f"{source}: unsupported state format {fmt!r} (expected {STATE_FORMAT})")
    errors = validate_with_schema(data, STATE_SCHEMA)
    if errors:
        raise PersistenceError(f"{source}: state does not match schema: " + "; ".join(errors[:5]))
