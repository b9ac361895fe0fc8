from __future__ import annotations

from typing import Any, Iterator

from gridmerge.sim.grid import CellCoord, is_token_value
from gridmerge.sim.worldgen import CellState, WorldGenerator


def _require_cell_value(value: Any, *, field_name: str) -> int | None:
    if value is None:
        return None
    if not is_token_value(value):
        raise ValueError(f"{field_name} must be null or a positive power of two")
    return value


class OverlayStore:
    """Sparse record of cells whose value differs from the generator default.

    Mutations go through ``apply`` so that a cell returning to its default is
    dropped immediately and the persisted payload stays bounded by the number of
    cells the player has actually changed.
    """

    def __init__(self, generator: WorldGenerator) -> None:
        self.generator = generator
        self._cells: dict[CellCoord, int | None] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, coord: object) -> bool:
        return coord in self._cells

    def get(self, coord: CellCoord) -> CellState | None:
        if coord not in self._cells:
            return None
        return CellState(coord=coord, value=self._cells[coord])

    def set(self, coord: CellCoord, value: int | None) -> None:
        self._cells[coord] = _require_cell_value(value, field_name=f"cell[{coord.key()}].value")

    def reconcile_or_remove(self, coord: CellCoord) -> bool:
        if coord not in self._cells:
            return False
        if self._cells[coord] != self.generator.default_value(coord):
            return False
        del self._cells[coord]
        return True

    def apply(self, coord: CellCoord, value: int | None) -> CellState:
        self.set(coord, value)
        self.reconcile_or_remove(coord)
        return self.resolve(coord)

    def resolve(self, coord: CellCoord) -> CellState:
        stored = self.get(coord)
        if stored is not None:
            return stored
        return self.generator.default_state(coord)

    def items(self) -> Iterator[tuple[CellCoord, int | None]]:
        for coord in sorted(self._cells):
            yield coord, self._cells[coord]

    def snapshot(self) -> dict[str, dict[str, int | None]]:
        return {coord.key(): {"value": value} for coord, value in self.items()}

    def restore(self, mapping: dict[str, Any]) -> None:
        if not isinstance(mapping, dict):
            raise ValueError("modifiedCells must be an object")
        restored: dict[CellCoord, int | None] = {}
        for key, row in mapping.items():
            coord = CellCoord.from_key(key)
            if coord.key() != key:
                raise ValueError(f"modifiedCells key is not canonical: {key!r}")
            if not isinstance(row, dict) or "value" not in row:
                raise ValueError(f"modifiedCells[{key}] must be an object with a value field")
            restored[coord] = _require_cell_value(row["value"], field_name=f"modifiedCells[{key}].value")
        self._cells = restored
        for coord in list(self._cells):
            self.reconcile_or_remove(coord)

    def clear(self) -> None:
        self._cells.clear()
