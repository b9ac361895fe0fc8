import json
from pathlib import Path

import pytest

from gridmerge.content.rules import GameRules
from gridmerge.content.tracks import DEFAULT_POSITION_TRACK_PATH, load_position_track_json
from gridmerge.sim.grid import CellCoord
from gridmerge.sim.movement import PositionFix
from gridmerge.sim.session import GameSession


def _write_track(tmp_path: Path, payload) -> Path:
    path = tmp_path / "track.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_bundled_track_loads_and_stays_near_origin() -> None:
    track = load_position_track_json(DEFAULT_POSITION_TRACK_PATH)
    anchor = GameRules().anchor()

    assert len(track) == 7
    assert all(isinstance(fix, PositionFix) for fix in track)
    assert anchor.cell_for(next(iter(track)).latlng()) == CellCoord(0, 0)
    assert all(abs(anchor.cell_for(fix.latlng()).i) <= 8 for fix in track)


def test_track_drives_sensor_session() -> None:
    session = GameSession(GameRules(world_seed=86), movement_mode="sensor")

    results = [session.update_position(fix) for fix in load_position_track_json(DEFAULT_POSITION_TRACK_PATH)]

    assert all(result.outcome == "moved" for result in results)
    assert session.state.player.coord == results[-1].coord
    assert session.state.player.coord != CellCoord(0, 0)


def test_track_accuracy_defaults_to_zero(tmp_path: Path) -> None:
    path = _write_track(tmp_path, {"schema_version": 1, "fixes": [{"lat": 1.0, "lng": 2.0}]})

    track = load_position_track_json(path)

    assert track.fixes == (PositionFix(lat=1.0, lng=2.0, accuracy_m=0.0),)


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "must be an object"),
        ({"fixes": []}, "integer field: schema_version"),
        ({"schema_version": 9, "fixes": []}, "unsupported position track schema_version"),
        ({"schema_version": 1}, "list field: fixes"),
        ({"schema_version": 1, "fixes": ["here"]}, r"fixes\[0\] must be an object"),
        ({"schema_version": 1, "fixes": [{"lat": 1.0}]}, r"fixes\[0\] requires lat and lng"),
        ({"schema_version": 1, "fixes": [{"lat": 1.0, "lng": 2.0}, {"lat": 95.0, "lng": 2.0}]}, r"fixes\[1\] invalid"),
    ],
)
def test_invalid_track_payload_is_rejected(tmp_path: Path, payload, message: str) -> None:
    path = _write_track(tmp_path, payload)

    with pytest.raises(ValueError, match=message):
        load_position_track_json(path)
