from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable

from gridmerge.sim.grid import CellCoord, GridAnchor, LatLng

MOVEMENT_MODE_MANUAL = "manual"
MOVEMENT_MODE_SENSOR = "sensor"
MOVEMENT_MODES = (MOVEMENT_MODE_MANUAL, MOVEMENT_MODE_SENSOR)

CARDINAL_DIRECTIONS: dict[str, tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}

PositionChanged = Callable[[CellCoord, "LatLng | None"], None]


@dataclass(frozen=True)
class PositionFix:
    lat: float
    lng: float
    accuracy_m: float = 0.0

    def __post_init__(self) -> None:
        for field_name in ("lat", "lng", "accuracy_m"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"position fix {field_name} must be a finite number")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError("position fix lat must be within [-90, 90]")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError("position fix lng must be within [-180, 180]")
        if self.accuracy_m < 0.0:
            raise ValueError("position fix accuracy_m must be >= 0")

    def latlng(self) -> LatLng:
        return LatLng(lat=float(self.lat), lng=float(self.lng))

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng, "accuracy_m": self.accuracy_m}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PositionFix":
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            accuracy_m=float(data.get("accuracy_m", 0.0)),
        )


class MovementController:
    """Translates one kind of position input into cell changes.

    Exactly one controller is active per session. Controllers never touch
    session state themselves; they report through ``on_position_changed``.
    """

    mode: str

    def __init__(self, on_position_changed: PositionChanged) -> None:
        self.on_position_changed = on_position_changed
        self.active = False

    def start(self) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False


class ManualMovement(MovementController):
    mode = MOVEMENT_MODE_MANUAL

    def step(self, current: CellCoord, direction: str) -> CellCoord:
        if direction not in CARDINAL_DIRECTIONS:
            raise ValueError(f"unknown direction: {direction}")
        di, dj = CARDINAL_DIRECTIONS[direction]
        destination = current.offset(di, dj)
        if self.active:
            self.on_position_changed(destination, None)
        return destination


class SensorMovement(MovementController):
    mode = MOVEMENT_MODE_SENSOR

    def __init__(self, on_position_changed: PositionChanged, anchor: GridAnchor) -> None:
        super().__init__(on_position_changed)
        self.anchor = anchor
        self.last_fix: PositionFix | None = None

    def stop(self) -> None:
        super().stop()
        self.last_fix = None

    def accept_fix(self, fix: PositionFix) -> CellCoord:
        position = fix.latlng()
        destination = self.anchor.cell_for(position)
        if self.active:
            self.last_fix = fix
            self.on_position_changed(destination, position)
        return destination


def build_controller(mode: str, on_position_changed: PositionChanged, anchor: GridAnchor) -> MovementController:
    if mode == MOVEMENT_MODE_MANUAL:
        return ManualMovement(on_position_changed)
    if mode == MOVEMENT_MODE_SENSOR:
        return SensorMovement(on_position_changed, anchor)
    raise ValueError(f"unknown movement mode: {mode}")
