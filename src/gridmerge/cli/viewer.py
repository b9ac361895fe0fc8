from __future__ import annotations

import argparse
from typing import Sequence

from gridmerge.content.io import DEFAULT_STORAGE_KEY, JsonFileBlobStore, open_session
from gridmerge.content.rules import DEFAULT_GAME_RULES_PATH, load_game_rules_json
from gridmerge.sim.grid import CellCoord
from gridmerge.sim.interactions import describe_hand
from gridmerge.sim.movement import CARDINAL_DIRECTIONS
from gridmerge.sim.session import (
    INTERACT_COMMAND_TYPE,
    MOVE_COMMAND_TYPE,
    NEW_GAME_COMMAND_TYPE,
    SET_MOVEMENT_MODE_COMMAND_TYPE,
    GameCommand,
    GameSession,
)

DEFAULT_SAVE_DIR = "saves"
SHORT_DIRECTIONS = {"n": "north", "s": "south", "e": "east", "w": "west"}
HELP_TEXT = "Commands: n | s | e | w | i <i> <j> | new | mode manual|sensor | show | quit"


class AsciiViewer:
    """Read-only projection of the visible cells for terminal display."""

    def render(self, session: GameSession) -> str:
        visible = session.viewport.visible()
        player = session.state.player
        lines = [f"cell=({player.coord.i},{player.coord.j}) mode={session.movement_mode} | {describe_hand(player.held)}"]
        if not visible:
            return "\n".join(lines + ["<empty viewport>"])

        rows = sorted({coord.i for coord in visible}, reverse=True)
        columns = sorted({coord.j for coord in visible})
        width = max([3, *(len(str(state.value)) for state in visible.values() if state.value is not None)])
        for i in rows:
            glyphs: list[str] = []
            for j in columns:
                coord = CellCoord(i, j)
                state = visible.get(coord)
                if coord == player.coord:
                    glyph = "@"
                elif state is None or state.value is None:
                    glyph = "."
                else:
                    glyph = str(state.value)
                glyphs.append(glyph.rjust(width))
            lines.append(f"i={i:>4}: " + " ".join(glyphs))
        return "\n".join(lines)


def parse_command(raw: str) -> GameCommand | None:
    parts = raw.strip().split()
    if not parts:
        return None
    head = parts[0].lower()
    if len(parts) == 1 and (head in SHORT_DIRECTIONS or head in CARDINAL_DIRECTIONS):
        return GameCommand(MOVE_COMMAND_TYPE, {"direction": SHORT_DIRECTIONS.get(head, head)})
    if len(parts) == 3 and head in {"i", "interact"}:
        try:
            return GameCommand(INTERACT_COMMAND_TYPE, {"i": int(parts[1]), "j": int(parts[2])})
        except ValueError:
            return None
    if len(parts) == 1 and head == "new":
        return GameCommand(NEW_GAME_COMMAND_TYPE)
    if len(parts) == 2 and head == "mode":
        return GameCommand(SET_MOVEMENT_MODE_COMMAND_TYPE, {"mode": parts[1].lower()})
    return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gridmerge-text", description="Terminal gridmerge session.")
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Path to game rules JSON.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding session saves.")
    parser.add_argument("--storage-key", default=DEFAULT_STORAGE_KEY, help="Save slot name inside --save-dir.")
    return parser


def run_demo(
    rules_path: str = DEFAULT_GAME_RULES_PATH,
    save_dir: str = DEFAULT_SAVE_DIR,
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> None:
    rules = load_game_rules_json(rules_path)
    session, loaded = open_session(JsonFileBlobStore(save_dir), storage_key, rules)
    if loaded.restored:
        print(f"[gridmerge.text] restored session key={storage_key} cells={len(session.state.overlay)}")
    else:
        print(f"[gridmerge.text] fresh session key={storage_key} reason={loaded.reason}")

    view = AsciiViewer()
    print(HELP_TEXT)
    print(view.render(session))

    while True:
        raw = input("> ").strip()
        if raw in {"quit", "exit"}:
            break
        if raw == "show":
            print(view.render(session))
            continue
        command = parse_command(raw)
        if command is None:
            print("unknown command")
            continue
        result = session.execute(command)
        print(result.status)
        print(view.render(session))


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    run_demo(rules_path=args.rules_path, save_dir=args.save_dir, storage_key=args.storage_key)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
