from __future__ import annotations

from dataclasses import dataclass

from gridmerge.sim.grid import CellCoord, is_token_value
from gridmerge.sim.rng import derive_cell_key, luck

DEFAULT_SPAWN_PROBABILITY = 0.1
DEFAULT_STARTING_VALUE = 2
DEFAULT_WORLD_SEED = 0


@dataclass(frozen=True)
class CellState:
    coord: CellCoord
    value: int | None = None

    @property
    def has_token(self) -> bool:
        return self.value is not None

    def to_dict(self) -> dict[str, object]:
        return {"coord": self.coord.to_dict(), "value": self.value}


@dataclass(frozen=True)
class WorldGenerator:
    """Pure procedural defaults for every cell of the infinite grid.

    The generator holds only immutable parameters, so any number of callers can
    share one instance. Results depend on nothing but the coordinate and the
    world seed.
    """

    spawn_probability: float = DEFAULT_SPAWN_PROBABILITY
    starting_value: int = DEFAULT_STARTING_VALUE
    world_seed: int = DEFAULT_WORLD_SEED

    def __post_init__(self) -> None:
        if isinstance(self.spawn_probability, bool) or not isinstance(self.spawn_probability, (int, float)):
            raise ValueError("spawn_probability must be numeric")
        if self.spawn_probability < 0.0 or self.spawn_probability > 1.0:
            raise ValueError("spawn_probability must be within [0.0, 1.0]")
        if not is_token_value(self.starting_value):
            raise ValueError("starting_value must be a positive power of two")
        if isinstance(self.world_seed, bool) or not isinstance(self.world_seed, int):
            raise ValueError("world_seed must be an integer")

    def luck(self, coord: CellCoord) -> float:
        return luck(derive_cell_key(self.world_seed, coord.key()))

    def spawns(self, coord: CellCoord) -> bool:
        return self.luck(coord) < self.spawn_probability

    def default_value(self, coord: CellCoord) -> int | None:
        return self.starting_value if self.spawns(coord) else None

    def default_state(self, coord: CellCoord) -> CellState:
        return CellState(coord=coord, value=self.default_value(coord))
