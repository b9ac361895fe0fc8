from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(frozen=True, order=True)
class CellCoord:
    """Integer grid cell (i, j) relative to the world origin; i grows north, j grows east."""

    i: int
    j: int

    def __post_init__(self) -> None:
        if isinstance(self.i, bool) or not isinstance(self.i, int):
            raise ValueError("cell i must be an integer")
        if isinstance(self.j, bool) or not isinstance(self.j, int):
            raise ValueError("cell j must be an integer")

    def key(self) -> str:
        return f"{self.i},{self.j}"

    def offset(self, di: int, dj: int) -> "CellCoord":
        return CellCoord(self.i + di, self.j + dj)

    def to_dict(self) -> dict[str, int]:
        return {"i": self.i, "j": self.j}

    @classmethod
    def from_key(cls, key: str) -> "CellCoord":
        if not isinstance(key, str):
            raise ValueError("cell key must be a string")
        parts = key.split(",")
        if len(parts) != 2:
            raise ValueError(f"invalid cell key: {key!r}")
        try:
            return cls(i=int(parts[0]), j=int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"invalid cell key: {key!r}") from exc

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CellCoord":
        return cls(i=int(data["i"]), j=int(data["j"]))


WORLD_ORIGIN_CELL = CellCoord(0, 0)


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LatLng":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass(frozen=True)
class CellBounds:
    south_west: LatLng
    north_east: LatLng

    def center(self) -> LatLng:
        return LatLng(
            lat=(self.south_west.lat + self.north_east.lat) / 2.0,
            lng=(self.south_west.lng + self.north_east.lng) / 2.0,
        )


@dataclass(frozen=True)
class GridAnchor:
    """Pins cell (0, 0) to a real-world origin; each cell spans tile_degrees on both axes."""

    origin: LatLng
    tile_degrees: float

    def __post_init__(self) -> None:
        if not isinstance(self.tile_degrees, (int, float)) or self.tile_degrees <= 0:
            raise ValueError("tile_degrees must be > 0")

    def cell_bounds(self, coord: CellCoord) -> CellBounds:
        return CellBounds(
            south_west=LatLng(
                lat=self.origin.lat + coord.i * self.tile_degrees,
                lng=self.origin.lng + coord.j * self.tile_degrees,
            ),
            north_east=LatLng(
                lat=self.origin.lat + (coord.i + 1) * self.tile_degrees,
                lng=self.origin.lng + (coord.j + 1) * self.tile_degrees,
            ),
        )

    def cell_center(self, coord: CellCoord) -> LatLng:
        return self.cell_bounds(coord).center()

    def cell_for(self, position: LatLng) -> CellCoord:
        return CellCoord(
            i=math.floor((position.lat - self.origin.lat) / self.tile_degrees),
            j=math.floor((position.lng - self.origin.lng) / self.tile_degrees),
        )


def haversine_distance_m(a: LatLng, b: LatLng, radius_m: float = EARTH_RADIUS_METERS) -> float:
    """Great-circle distance in meters."""
    lat_a = math.radians(a.lat)
    lat_b = math.radians(b.lat)
    d_lat = lat_b - lat_a
    d_lng = math.radians(b.lng - a.lng)
    h = math.sin(d_lat / 2.0) ** 2 + math.cos(lat_a) * math.cos(lat_b) * math.sin(d_lng / 2.0) ** 2
    return 2.0 * radius_m * math.asin(min(1.0, math.sqrt(h)))


def is_token_value(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return value > 0 and value & (value - 1) == 0
