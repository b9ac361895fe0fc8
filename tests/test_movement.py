import pytest

from gridmerge.sim.grid import CellCoord, GridAnchor, LatLng
from gridmerge.sim.movement import (
    MOVEMENT_MODE_MANUAL,
    MOVEMENT_MODE_SENSOR,
    ManualMovement,
    PositionFix,
    SensorMovement,
    build_controller,
)

ANCHOR = GridAnchor(origin=LatLng(0.0, 0.0), tile_degrees=1.0)


def test_manual_steps_follow_compass_directions() -> None:
    seen: list[tuple[CellCoord, LatLng | None]] = []
    controller = ManualMovement(lambda coord, position: seen.append((coord, position)))
    controller.start()

    assert controller.step(CellCoord(0, 0), "north") == CellCoord(1, 0)
    assert controller.step(CellCoord(0, 0), "south") == CellCoord(-1, 0)
    assert controller.step(CellCoord(0, 0), "east") == CellCoord(0, 1)
    assert controller.step(CellCoord(0, 0), "west") == CellCoord(0, -1)
    assert seen[0] == (CellCoord(1, 0), None)
    assert len(seen) == 4


def test_stopped_controller_does_not_report() -> None:
    seen: list[CellCoord] = []
    controller = ManualMovement(lambda coord, _position: seen.append(coord))

    controller.step(CellCoord(0, 0), "north")

    assert seen == []


def test_manual_step_rejects_unknown_direction() -> None:
    controller = ManualMovement(lambda coord, position: None)

    with pytest.raises(ValueError, match="unknown direction"):
        controller.step(CellCoord(0, 0), "up")


def test_sensor_maps_fix_to_containing_cell() -> None:
    seen: list[tuple[CellCoord, LatLng | None]] = []
    controller = SensorMovement(lambda coord, position: seen.append((coord, position)), ANCHOR)
    controller.start()

    destination = controller.accept_fix(PositionFix(lat=2.5, lng=-0.5, accuracy_m=4.0))

    assert destination == CellCoord(2, -1)
    assert seen == [(CellCoord(2, -1), LatLng(2.5, -0.5))]
    assert controller.last_fix == PositionFix(lat=2.5, lng=-0.5, accuracy_m=4.0)

    controller.stop()
    assert controller.last_fix is None


def test_build_controller_selects_by_mode() -> None:
    assert build_controller(MOVEMENT_MODE_MANUAL, lambda c, p: None, ANCHOR).mode == MOVEMENT_MODE_MANUAL
    assert build_controller(MOVEMENT_MODE_SENSOR, lambda c, p: None, ANCHOR).mode == MOVEMENT_MODE_SENSOR
    with pytest.raises(ValueError, match="unknown movement mode"):
        build_controller("teleport", lambda c, p: None, ANCHOR)


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ({"lat": 91.0, "lng": 0.0}, "lat must be within"),
        ({"lat": 0.0, "lng": -181.0}, "lng must be within"),
        ({"lat": 0.0, "lng": 0.0, "accuracy_m": -1.0}, "accuracy_m must be >= 0"),
        ({"lat": float("nan"), "lng": 0.0}, "lat must be a finite number"),
    ],
)
def test_position_fix_validation(data: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        PositionFix.from_dict(data)


def test_position_fix_round_trips_through_dict() -> None:
    fix = PositionFix(lat=36.99, lng=-122.05, accuracy_m=7.5)

    assert PositionFix.from_dict(fix.to_dict()) == fix
    assert PositionFix.from_dict({"lat": 1.0, "lng": 2.0}).accuracy_m == 0.0
