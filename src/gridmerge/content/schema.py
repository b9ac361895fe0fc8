from __future__ import annotations

from typing import Any

SUPPORTED_SCHEMA_VERSIONS = {1}
REQUIRED_SESSION_FIELDS = {"schemaVersion", "playerI", "playerJ", "heldToken", "modifiedCells"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_token(value: Any, *, field_name: str) -> None:
    if value is None:
        return
    if not _is_int(value) or value <= 0 or value & (value - 1) != 0:
        raise ValueError(f"{field_name} must be null or a positive power of two")


def _validate_cell_key(key: Any, *, field_name: str) -> None:
    if not isinstance(key, str):
        raise ValueError(f"{field_name} keys must be strings")
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"{field_name} key must look like '<i>,<j>': {key!r}")
    for part in parts:
        digits = part[1:] if part.startswith("-") else part
        if not digits.isdigit() or str(int(part)) != part:
            raise ValueError(f"{field_name} key must look like '<i>,<j>': {key!r}")


def validate_session_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("session payload must be an object")

    missing = REQUIRED_SESSION_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"session payload missing fields: {sorted(missing)}")

    schema_version = payload["schemaVersion"]
    if not _is_int(schema_version) or schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported session schemaVersion: {schema_version}")

    for field_name in ("playerI", "playerJ"):
        if not _is_int(payload[field_name]):
            raise ValueError(f"{field_name} must be an integer")

    _validate_token(payload["heldToken"], field_name="heldToken")

    modified_cells = payload["modifiedCells"]
    if not isinstance(modified_cells, dict):
        raise ValueError("modifiedCells must be an object")
    for key, row in modified_cells.items():
        _validate_cell_key(key, field_name="modifiedCells")
        if not isinstance(row, dict) or "value" not in row:
            raise ValueError(f"modifiedCells[{key}] must be an object with a value field")
        _validate_token(row["value"], field_name=f"modifiedCells[{key}].value")

    session_hash = payload.get("sessionHash")
    if session_hash is not None and not isinstance(session_hash, str):
        raise ValueError("sessionHash must be a string when present")
