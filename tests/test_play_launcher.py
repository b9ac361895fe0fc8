import json
from pathlib import Path

from gridmerge.cli.play import main
from gridmerge.content.io import DEFAULT_STORAGE_KEY


def test_play_launcher_creates_default_save_when_missing(tmp_path: Path, monkeypatch) -> None:
    save_dir = tmp_path / "saves"

    def fake_run(**kwargs):
        assert kwargs["save_dir"] == str(save_dir)
        assert kwargs["storage_key"] == "slot"
        assert kwargs["headless"] is True
        return 0

    monkeypatch.setattr("gridmerge.cli.play.run_pygame_viewer", fake_run)

    result = main(["--headless", "--save-dir", str(save_dir), "--storage-key", "slot"])

    assert result == 0
    payload = json.loads((save_dir / "slot.json").read_text(encoding="utf-8"))
    assert payload["playerI"] == 0
    assert payload["modifiedCells"] == {}


def test_play_launcher_keeps_existing_save(tmp_path: Path, monkeypatch) -> None:
    save_path = tmp_path / f"{DEFAULT_STORAGE_KEY}.json"
    save_path.write_text("keep me", encoding="utf-8")
    monkeypatch.setattr("gridmerge.cli.play.run_pygame_viewer", lambda **_: 0)

    assert main(["--save-dir", str(tmp_path)]) == 0
    assert save_path.read_text(encoding="utf-8") == "keep me"


def test_play_launcher_defaults(monkeypatch) -> None:
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)
        return 0

    monkeypatch.setattr("gridmerge.cli.play.run_pygame_viewer", fake_run)
    monkeypatch.setattr("gridmerge.cli.play._ensure_save_exists", lambda **_: None)

    result = main([])

    assert result == 0
    assert captured["rules_path"] == "content/rules/game_rules.json"
    assert captured["storage_key"] == DEFAULT_STORAGE_KEY
    assert captured["movement_mode"] == "manual"
    assert captured["gps_track"] == "content/tracks/campus_walk.json"
    assert captured["headless"] is False
