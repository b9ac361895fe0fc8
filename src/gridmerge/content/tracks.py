from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from gridmerge.sim.movement import PositionFix

POSITION_TRACK_SCHEMA_VERSION = 1
DEFAULT_POSITION_TRACK_PATH = "content/tracks/campus_walk.json"


@dataclass(frozen=True)
class PositionTrack:
    schema_version: int
    fixes: tuple[PositionFix, ...]

    def __iter__(self) -> Iterator[PositionFix]:
        return iter(self.fixes)

    def __len__(self) -> int:
        return len(self.fixes)


def load_position_track_json(path: str | Path) -> PositionTrack:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _track_from_payload(payload)


def _track_from_payload(payload: dict[str, Any]) -> PositionTrack:
    if not isinstance(payload, dict):
        raise ValueError("position track payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("position track payload must contain integer field: schema_version")
    if schema_version != POSITION_TRACK_SCHEMA_VERSION:
        raise ValueError(f"unsupported position track schema_version: {schema_version}")

    rows = payload.get("fixes")
    if not isinstance(rows, list):
        raise ValueError("position track payload must contain list field: fixes")

    fixes: list[PositionFix] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValueError(f"fixes[{index}] must be an object")
        if "lat" not in row or "lng" not in row:
            raise ValueError(f"fixes[{index}] requires lat and lng")
        try:
            fixes.append(PositionFix.from_dict(row))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"fixes[{index}] invalid: {exc}") from exc
    return PositionTrack(schema_version=schema_version, fixes=tuple(fixes))
