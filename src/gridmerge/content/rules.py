from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gridmerge.sim.grid import GridAnchor, LatLng, is_token_value
from gridmerge.sim.worldgen import WorldGenerator

GAME_RULES_SCHEMA_VERSION = 1
DEFAULT_GAME_RULES_PATH = "content/rules/game_rules.json"

CLASSROOM_ORIGIN = LatLng(lat=36.997936938057016, lng=-122.05703507501151)
DEFAULT_TILE_DEGREES = 1e-4
DEFAULT_NEIGHBORHOOD_SIZE = 8
DEFAULT_SPAWN_PROBABILITY = 0.1
DEFAULT_STARTING_VALUE = 2
DEFAULT_INTERACTION_RADIUS_M = 30.0
DEFAULT_WIN_VALUE = 16
DEFAULT_WORLD_SEED = 0


@dataclass(frozen=True)
class GameRules:
    origin: LatLng = field(default=CLASSROOM_ORIGIN)
    tile_degrees: float = DEFAULT_TILE_DEGREES
    neighborhood_size: int = DEFAULT_NEIGHBORHOOD_SIZE
    spawn_probability: float = DEFAULT_SPAWN_PROBABILITY
    starting_value: int = DEFAULT_STARTING_VALUE
    interaction_radius_m: float = DEFAULT_INTERACTION_RADIUS_M
    win_value: int = DEFAULT_WIN_VALUE
    world_seed: int = DEFAULT_WORLD_SEED

    def __post_init__(self) -> None:
        if isinstance(self.neighborhood_size, bool) or not isinstance(self.neighborhood_size, int):
            raise ValueError("neighborhood_size must be an integer")
        if self.neighborhood_size < 0:
            raise ValueError("neighborhood_size must be >= 0")
        if isinstance(self.interaction_radius_m, bool) or not isinstance(self.interaction_radius_m, (int, float)):
            raise ValueError("interaction_radius_m must be numeric")
        if self.interaction_radius_m < 0:
            raise ValueError("interaction_radius_m must be >= 0")
        if not is_token_value(self.win_value):
            raise ValueError("win_value must be a positive power of two")
        # Delegate the remaining checks to the objects built from these fields.
        self.anchor()
        self.generator()

    def anchor(self) -> GridAnchor:
        return GridAnchor(origin=self.origin, tile_degrees=self.tile_degrees)

    def generator(self) -> WorldGenerator:
        return WorldGenerator(
            spawn_probability=self.spawn_probability,
            starting_value=self.starting_value,
            world_seed=self.world_seed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": GAME_RULES_SCHEMA_VERSION,
            "origin": self.origin.to_dict(),
            "tile_degrees": self.tile_degrees,
            "neighborhood_size": self.neighborhood_size,
            "spawn_probability": self.spawn_probability,
            "starting_value": self.starting_value,
            "interaction_radius_m": self.interaction_radius_m,
            "win_value": self.win_value,
            "world_seed": self.world_seed,
        }


def load_game_rules_json(path: str | Path) -> GameRules:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return game_rules_from_payload(payload)


def _require_number(payload: dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"game rules field {key} must be numeric")
    return float(value)


def _require_int(payload: dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"game rules field {key} must be an integer")
    return value


def game_rules_from_payload(payload: dict[str, Any]) -> GameRules:
    if not isinstance(payload, dict):
        raise ValueError("game rules payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("game rules payload must contain integer field: schema_version")
    if schema_version != GAME_RULES_SCHEMA_VERSION:
        raise ValueError(f"unsupported game rules schema_version: {schema_version}")

    origin_payload = payload.get("origin", CLASSROOM_ORIGIN.to_dict())
    if not isinstance(origin_payload, dict) or not {"lat", "lng"} <= origin_payload.keys():
        raise ValueError("game rules origin must be an object with lat and lng")

    return GameRules(
        origin=LatLng.from_dict(origin_payload),
        tile_degrees=_require_number(payload, "tile_degrees", DEFAULT_TILE_DEGREES),
        neighborhood_size=_require_int(payload, "neighborhood_size", DEFAULT_NEIGHBORHOOD_SIZE),
        spawn_probability=_require_number(payload, "spawn_probability", DEFAULT_SPAWN_PROBABILITY),
        starting_value=_require_int(payload, "starting_value", DEFAULT_STARTING_VALUE),
        interaction_radius_m=_require_number(payload, "interaction_radius_m", DEFAULT_INTERACTION_RADIUS_M),
        win_value=_require_int(payload, "win_value", DEFAULT_WIN_VALUE),
        world_seed=_require_int(payload, "world_seed", DEFAULT_WORLD_SEED),
    )
