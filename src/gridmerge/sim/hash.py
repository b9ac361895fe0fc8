from __future__ import annotations

import hashlib
import json
from typing import Any

HASHED_SESSION_FIELDS = ("schemaVersion", "playerI", "playerJ", "heldToken", "modifiedCells")


def session_hash(payload: dict[str, Any]) -> str:
    hash_payload = {name: payload[name] for name in HASHED_SESSION_FIELDS}
    encoded = json.dumps(hash_payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def viewport_hash(cells: dict[Any, Any]) -> str:
    """Hash a resolved viewport so two sessions can be compared cheaply."""
    rows = [
        [coord.i, coord.j, state.value]
        for coord, state in sorted(cells.items(), key=lambda item: item[0])
    ]
    encoded = json.dumps(rows, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
