import pytest

from gridmerge.cli.viewer import AsciiViewer, _build_parser, parse_command, run_demo
from gridmerge.content.rules import GameRules
from gridmerge.sim.session import GameCommand, GameSession


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("n", GameCommand("move", {"direction": "north"})),
        ("West", GameCommand("move", {"direction": "west"})),
        ("i 2 -1", GameCommand("interact", {"i": 2, "j": -1})),
        ("interact 0 0", GameCommand("interact", {"i": 0, "j": 0})),
        ("new", GameCommand("new_game")),
        ("mode Sensor", GameCommand("set_movement_mode", {"mode": "sensor"})),
    ],
)
def test_parse_command_accepts_known_commands(raw: str, expected: GameCommand) -> None:
    assert parse_command(raw) == expected


@pytest.mark.parametrize("raw", ["", "jump", "i 1", "i one two", "n n", "mode"])
def test_parse_command_rejects_unknown_input(raw: str) -> None:
    assert parse_command(raw) is None


def test_ascii_viewer_draws_tokens_and_player() -> None:
    session = GameSession(GameRules(world_seed=86, neighborhood_size=1))

    rendered = AsciiViewer().render(session).splitlines()

    assert rendered == [
        "cell=(0,0) mode=manual | Empty hand.",
        "i=   1:   .   .   .",
        "i=   0:   .   @   2",
        "i=  -1:   .   .   .",
    ]


def test_ascii_viewer_reflects_held_token() -> None:
    session = GameSession(GameRules(world_seed=86, neighborhood_size=1))
    session.move("south")
    session.interact(session.state.player.coord.offset(1, 1))

    header = AsciiViewer().render(session).splitlines()[0]

    assert header == "cell=(-1,0) mode=manual | Holding token: 2"


def test_text_parser_defaults() -> None:
    args = _build_parser().parse_args([])

    assert args.rules_path == "content/rules/game_rules.json"
    assert args.save_dir == "saves"
    assert args.storage_key == "gridmerge_session"


def test_run_demo_applies_commands_and_saves(tmp_path, monkeypatch, capsys) -> None:
    inputs = iter(["i 0 0", "bogus", "e", "quit"])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(inputs))

    run_demo(save_dir=str(tmp_path), storage_key="slot")

    out = capsys.readouterr().out
    assert "[gridmerge.text] fresh session key=slot" in out
    assert "unknown command" in out
    assert "Moved east to cell (0, 1)." in out
    assert (tmp_path / "slot.json").exists()
