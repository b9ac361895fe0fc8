from __future__ import annotations

from gridmerge.sim.grid import CellCoord
from gridmerge.sim.overlay import OverlayStore
from gridmerge.sim.worldgen import CellState


class RenderSink:
    """Receiver for visible-cell changes.

    The viewport calls these hooks in a stable order: removals first, then
    additions, then display updates, each sorted by coordinate.
    """

    def add_cell(self, state: CellState) -> None:
        """Called when a coordinate enters the visible window."""

    def remove_cell(self, coord: CellCoord) -> None:
        """Called when a coordinate leaves the visible window."""

    def update_cell_display(self, state: CellState) -> None:
        """Called when a visible cell resolves to a different value."""


def window_coords(center: CellCoord, radius: int) -> list[CellCoord]:
    if isinstance(radius, bool) or not isinstance(radius, int):
        raise ValueError("viewport radius must be an integer")
    if radius < 0:
        raise ValueError("viewport radius must be >= 0")
    return [
        CellCoord(center.i + di, center.j + dj)
        for di in range(-radius, radius + 1)
        for dj in range(-radius, radius + 1)
    ]


class ViewportManager:
    def __init__(self, overlay: OverlayStore, sink: RenderSink | None = None) -> None:
        self.overlay = overlay
        self.sink = sink if sink is not None else RenderSink()
        self._visible: dict[CellCoord, CellState] = {}
        self.center: CellCoord | None = None
        self.radius: int | None = None

    def refresh(self, center: CellCoord, radius: int) -> dict[CellCoord, CellState]:
        resolved = {coord: self.overlay.resolve(coord) for coord in window_coords(center, radius)}

        departed = sorted(coord for coord in self._visible if coord not in resolved)
        arrived = sorted(coord for coord in resolved if coord not in self._visible)
        changed = sorted(
            coord
            for coord, state in resolved.items()
            if coord in self._visible and self._visible[coord] != state
        )

        for coord in departed:
            self.sink.remove_cell(coord)
        for coord in arrived:
            self.sink.add_cell(resolved[coord])
        for coord in changed:
            self.sink.update_cell_display(resolved[coord])

        self._visible = resolved
        self.center = center
        self.radius = radius
        return dict(resolved)

    def refresh_cell(self, coord: CellCoord) -> CellState | None:
        if coord not in self._visible:
            return None
        state = self.overlay.resolve(coord)
        self._visible[coord] = state
        self.sink.update_cell_display(state)
        return state

    def visible(self) -> dict[CellCoord, CellState]:
        return dict(self._visible)

    def clear(self) -> None:
        for coord in sorted(self._visible):
            self.sink.remove_cell(coord)
        self._visible = {}
        self.center = None
        self.radius = None
