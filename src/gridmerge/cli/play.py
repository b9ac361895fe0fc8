from __future__ import annotations

import argparse
from typing import Sequence

from gridmerge.cli.pygame_viewer import DEFAULT_SAVE_DIR, run_pygame_viewer
from gridmerge.content.io import DEFAULT_STORAGE_KEY, JsonFileBlobStore, save_session
from gridmerge.content.rules import DEFAULT_GAME_RULES_PATH, load_game_rules_json
from gridmerge.content.tracks import DEFAULT_POSITION_TRACK_PATH
from gridmerge.sim.movement import MOVEMENT_MODE_MANUAL, MOVEMENT_MODES
from gridmerge.sim.session import SessionState


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gridmerge-play", description="Canonical gridmerge launcher.")
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Rules used if the save must be created.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding session saves.")
    parser.add_argument("--storage-key", default=DEFAULT_STORAGE_KEY, help="Save slot to load at startup.")
    parser.add_argument("--movement-mode", choices=MOVEMENT_MODES, default=MOVEMENT_MODE_MANUAL)
    parser.add_argument("--gps-track", default=DEFAULT_POSITION_TRACK_PATH, help="Recorded position track for sensor mode.")
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    return parser


def _ensure_save_exists(*, rules_path: str, save_dir: str, storage_key: str) -> None:
    store = JsonFileBlobStore(save_dir)
    if store.path_for(storage_key).exists():
        return
    rules = load_game_rules_json(rules_path)
    if not save_session(store, storage_key, SessionState(rules.generator())):
        raise OSError(f"could not create save {store.path_for(storage_key)}")
    print(f"[gridmerge.play] created save path={store.path_for(storage_key)}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _ensure_save_exists(rules_path=args.rules_path, save_dir=args.save_dir, storage_key=args.storage_key)
    return run_pygame_viewer(
        rules_path=args.rules_path,
        save_dir=args.save_dir,
        storage_key=args.storage_key,
        movement_mode=args.movement_mode,
        gps_track=args.gps_track,
        headless=args.headless,
    )


if __name__ == "__main__":
    raise SystemExit(main())
