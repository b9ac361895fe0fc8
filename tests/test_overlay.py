import pytest

from gridmerge.sim.grid import CellCoord
from gridmerge.sim.overlay import OverlayStore
from gridmerge.sim.worldgen import CellState, WorldGenerator


def _build_overlay() -> OverlayStore:
    return OverlayStore(WorldGenerator(world_seed=86))


def test_resolve_falls_back_to_generator_default() -> None:
    overlay = _build_overlay()

    assert overlay.resolve(CellCoord(0, 0)) == CellState(CellCoord(0, 0), 2)
    assert overlay.resolve(CellCoord(1, 0)) == CellState(CellCoord(1, 0), None)
    assert len(overlay) == 0


def test_apply_stores_only_values_that_differ_from_default() -> None:
    overlay = _build_overlay()

    assert overlay.apply(CellCoord(0, 0), None) == CellState(CellCoord(0, 0), None)
    assert CellCoord(0, 0) in overlay
    assert overlay.apply(CellCoord(1, 0), None) == CellState(CellCoord(1, 0), None)
    assert CellCoord(1, 0) not in overlay

    overlay.apply(CellCoord(0, 0), 2)

    assert len(overlay) == 0


def test_reconcile_or_remove_reports_removal() -> None:
    overlay = _build_overlay()
    overlay.set(CellCoord(0, 1), 2)
    overlay.set(CellCoord(0, 0), 4)

    assert overlay.reconcile_or_remove(CellCoord(0, 1)) is True
    assert overlay.reconcile_or_remove(CellCoord(0, 0)) is False
    assert overlay.reconcile_or_remove(CellCoord(9, 9)) is False
    assert list(overlay.items()) == [(CellCoord(0, 0), 4)]


def test_set_rejects_non_token_values() -> None:
    overlay = _build_overlay()

    with pytest.raises(ValueError, match="positive power of two"):
        overlay.set(CellCoord(0, 0), 3)


def test_snapshot_uses_sorted_canonical_keys() -> None:
    overlay = _build_overlay()
    overlay.apply(CellCoord(5, -1), 8)
    overlay.apply(CellCoord(-2, 0), None)

    assert overlay.snapshot() == {"-2,0": {"value": None}, "5,-1": {"value": 8}}
    assert list(overlay.snapshot()) == ["-2,0", "5,-1"]


def test_restore_drops_entries_equal_to_default() -> None:
    overlay = _build_overlay()

    overlay.restore({"0,0": {"value": 2}, "1,0": {"value": None}, "0,1": {"value": 4}})

    assert overlay.snapshot() == {"0,1": {"value": 4}}


@pytest.mark.parametrize(
    ("mapping", "message"),
    [
        ({"01,0": {"value": 4}}, "not canonical"),
        ({"0, 1": {"value": 4}}, "not canonical"),
        ({"0,1": 4}, "must be an object with a value field"),
        ({"0,1": {}}, "must be an object with a value field"),
        ({"0,1": {"value": 5}}, "positive power of two"),
        ({"zero": {"value": 4}}, "invalid cell key"),
    ],
)
def test_restore_rejects_malformed_entries(mapping: dict, message: str) -> None:
    overlay = _build_overlay()

    with pytest.raises(ValueError, match=message):
        overlay.restore(mapping)


def test_clear_forgets_every_modification() -> None:
    overlay = _build_overlay()
    overlay.apply(CellCoord(3, 3), 16)

    overlay.clear()

    assert len(overlay) == 0
    assert overlay.get(CellCoord(3, 3)) is None
