import math

import pytest

from gridmerge.sim.grid import CellCoord, GridAnchor, LatLng, haversine_distance_m, is_token_value


def test_cell_key_round_trips_through_from_key() -> None:
    for coord in (CellCoord(0, 0), CellCoord(-3, 12), CellCoord(2_000_000, -9_999_999)):
        assert CellCoord.from_key(coord.key()) == coord

    assert CellCoord(-3, 12).key() == "-3,12"


@pytest.mark.parametrize("key", ["1", "a,b", "1,2,3", "", "1,"])
def test_from_key_rejects_malformed_keys(key: str) -> None:
    with pytest.raises(ValueError, match="invalid cell key"):
        CellCoord.from_key(key)


def test_cell_coord_rejects_non_integer_components() -> None:
    with pytest.raises(ValueError, match="cell i must be an integer"):
        CellCoord(True, 0)
    with pytest.raises(ValueError, match="cell j must be an integer"):
        CellCoord(0, 1.0)


def test_cell_coords_sort_row_major() -> None:
    coords = [CellCoord(1, 0), CellCoord(0, 5), CellCoord(0, -1), CellCoord(-2, 3)]

    assert sorted(coords) == [CellCoord(-2, 3), CellCoord(0, -1), CellCoord(0, 5), CellCoord(1, 0)]


def test_anchor_maps_positions_to_cells_with_floor() -> None:
    anchor = GridAnchor(origin=LatLng(0.0, 0.0), tile_degrees=1.0)

    assert anchor.cell_for(LatLng(0.5, 0.5)) == CellCoord(0, 0)
    assert anchor.cell_for(LatLng(-0.5, 2.5)) == CellCoord(-1, 2)
    assert anchor.cell_for(LatLng(0.0, -0.25)) == CellCoord(0, -1)


def test_cell_center_lies_inside_its_own_cell() -> None:
    anchor = GridAnchor(origin=LatLng(36.997936938057016, -122.05703507501151), tile_degrees=1e-4)

    for coord in (CellCoord(0, 0), CellCoord(5, -7), CellCoord(-40, 40)):
        assert anchor.cell_for(anchor.cell_center(coord)) == coord

    bounds = GridAnchor(origin=LatLng(0.0, 0.0), tile_degrees=1.0).cell_bounds(CellCoord(2, -1))
    assert bounds.south_west == LatLng(2.0, -1.0)
    assert bounds.north_east == LatLng(3.0, 0.0)


def test_anchor_rejects_non_positive_tile_size() -> None:
    with pytest.raises(ValueError, match="tile_degrees must be > 0"):
        GridAnchor(origin=LatLng(0.0, 0.0), tile_degrees=0.0)


def test_haversine_distance_matches_equatorial_degree() -> None:
    origin = LatLng(0.0, 0.0)

    assert haversine_distance_m(origin, origin) == 0.0
    assert haversine_distance_m(origin, LatLng(0.0, 1.0)) == pytest.approx(2 * math.pi * 6_371_000.0 / 360.0)
    assert haversine_distance_m(origin, LatLng(1.0, 0.0)) == haversine_distance_m(LatLng(1.0, 0.0), origin)


def test_is_token_value_accepts_only_positive_powers_of_two() -> None:
    assert all(is_token_value(value) for value in (1, 2, 16, 1024))
    assert not any(is_token_value(value) for value in (0, -2, 3, 6, True, 2.0, "2", None))
