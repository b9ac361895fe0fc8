from __future__ import annotations

import copy
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from gridmerge.content.rules import GameRules
from gridmerge.sim.grid import WORLD_ORIGIN_CELL, CellCoord, LatLng, haversine_distance_m, is_token_value
from gridmerge.sim.interactions import describe_hand, describe_outcome, resolve_interaction
from gridmerge.sim.movement import (
    CARDINAL_DIRECTIONS,
    MOVEMENT_MODE_MANUAL,
    MOVEMENT_MODE_SENSOR,
    MOVEMENT_MODES,
    MovementController,
    PositionFix,
    build_controller,
)
from gridmerge.sim.overlay import OverlayStore
from gridmerge.sim.viewport import RenderSink, ViewportManager
from gridmerge.sim.worldgen import CellState, WorldGenerator

SESSION_SCHEMA_VERSION = 1

MOVE_COMMAND_TYPE = "move"
INTERACT_COMMAND_TYPE = "interact"
NEW_GAME_COMMAND_TYPE = "new_game"
SET_MOVEMENT_MODE_COMMAND_TYPE = "set_movement_mode"
POSITION_FIX_COMMAND_TYPE = "position_fix"
LOCATION_UNAVAILABLE_COMMAND_TYPE = "location_unavailable"

OUTCOME_MOVED = "moved"
OUTCOME_NEW_GAME = "new_game"
OUTCOME_MODE_CHANGED = "mode_changed"
OUTCOME_LOCATION_UNAVAILABLE = "location_unavailable"
OUTCOME_IGNORED = "ignored"
OUTCOME_INVALID_PARAMS = "invalid_params"

MAX_INPUT_LOG = 4096


def _is_json_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


def _validate_json_value(value: Any, *, field_name: str) -> None:
    if _is_json_primitive(value):
        return
    if isinstance(value, list):
        for item in value:
            _validate_json_value(item, field_name=field_name)
        return
    if isinstance(value, dict):
        for key, nested_value in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{field_name} keys must be strings")
            _validate_json_value(nested_value, field_name=field_name)
        return
    raise ValueError(f"{field_name} must contain only canonical JSON primitives")


@dataclass
class PlayerState:
    coord: CellCoord = WORLD_ORIGIN_CELL
    held: int | None = None
    position: LatLng | None = None


class SessionState:
    """Everything that survives a restart: the player and the overlay."""

    def __init__(self, generator: WorldGenerator) -> None:
        self.generator = generator
        self.player = PlayerState()
        self.overlay = OverlayStore(generator)

    def reset(self) -> None:
        self.overlay.clear()
        self.player = PlayerState()

    def resolve(self, coord: CellCoord) -> CellState:
        return self.overlay.resolve(coord)

    def to_payload(self) -> dict[str, Any]:
        return {
            "schemaVersion": SESSION_SCHEMA_VERSION,
            "playerI": self.player.coord.i,
            "playerJ": self.player.coord.j,
            "heldToken": self.player.held,
            "modifiedCells": self.overlay.snapshot(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], generator: WorldGenerator) -> "SessionState":
        if not isinstance(payload, dict):
            raise ValueError("session payload must be an object")
        schema_version = payload.get("schemaVersion")
        if schema_version != SESSION_SCHEMA_VERSION:
            raise ValueError(f"unsupported session schemaVersion: {schema_version}")

        held = payload.get("heldToken")
        if held is not None and not is_token_value(held):
            raise ValueError("heldToken must be null or a positive power of two")

        state = cls(generator)
        state.player = PlayerState(coord=CellCoord(payload["playerI"], payload["playerJ"]), held=held)
        state.overlay.restore(payload["modifiedCells"])
        return state


@dataclass
class GameCommand:
    command_type: str
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.command_type, str) or not self.command_type:
            raise ValueError("command_type must be a non-empty string")
        if not isinstance(self.params, dict):
            raise ValueError("params must be a dict")
        _validate_json_value(self.params, field_name="params")

    def to_dict(self) -> dict[str, Any]:
        return {"command_type": self.command_type, "params": copy.deepcopy(self.params)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameCommand":
        return cls(command_type=str(data["command_type"]), params=dict(data.get("params", {})))


@dataclass(frozen=True)
class CommandResult:
    command_type: str
    outcome: str
    status: str
    win: bool = False
    saved: bool | None = None
    coord: CellCoord | None = None


AutosaveHook = Callable[[SessionState], bool]


class GameSession:
    """Single owner of a ``SessionState``.

    Commands are queued with ``submit`` and applied strictly in order by
    ``process_pending``; sensor fixes travel through the same queue as manual
    moves so only one mutation is ever in flight.
    """

    def __init__(
        self,
        rules: GameRules,
        *,
        state: SessionState | None = None,
        sink: RenderSink | None = None,
        autosave: AutosaveHook | None = None,
        movement_mode: str = MOVEMENT_MODE_MANUAL,
    ) -> None:
        self.rules = rules
        self.anchor = rules.anchor()
        self.state = state if state is not None else SessionState(rules.generator())
        self.viewport = ViewportManager(self.state.overlay, sink)
        self.autosave = autosave
        self.input_log: list[GameCommand] = []
        self.last_status = describe_hand(self.state.player.held)
        self._pending: deque[GameCommand] = deque()
        self.controller: MovementController = build_controller(movement_mode, self._on_position_changed, self.anchor)
        self.controller.start()
        self.refresh_viewport()

    @property
    def movement_mode(self) -> str:
        return self.controller.mode

    def player_position(self) -> LatLng:
        if self.state.player.position is not None:
            return self.state.player.position
        return self.anchor.cell_center(self.state.player.coord)

    def distance_to_cell_m(self, coord: CellCoord) -> float:
        # Cells beyond float range have no geographic position and are never in reach.
        try:
            return haversine_distance_m(self.player_position(), self.anchor.cell_center(coord))
        except OverflowError:
            return math.inf

    def refresh_viewport(self) -> dict[CellCoord, CellState]:
        return self.viewport.refresh(self.state.player.coord, self.rules.neighborhood_size)

    def submit(self, command: GameCommand | dict[str, Any]) -> None:
        normalized = command if isinstance(command, GameCommand) else GameCommand.from_dict(command)
        self._pending.append(normalized)

    def pending_count(self) -> int:
        return len(self._pending)

    def process_pending(self) -> list[CommandResult]:
        results: list[CommandResult] = []
        while self._pending:
            command = self._pending.popleft()
            self.input_log.append(command)
            if len(self.input_log) > MAX_INPUT_LOG:
                del self.input_log[: len(self.input_log) - MAX_INPUT_LOG]
            result = self._execute_command(command)
            self.last_status = result.status
            results.append(result)
        return results

    def execute(self, command: GameCommand | dict[str, Any]) -> CommandResult:
        """Queue ``command`` and drain the queue; earlier pending commands run first.

        Returns the result of ``command`` itself. Callers that need the results
        of earlier submissions should call ``process_pending`` before this.
        """
        self.submit(command)
        return self.process_pending()[-1]

    def move(self, direction: str) -> CommandResult:
        return self.execute(GameCommand(MOVE_COMMAND_TYPE, {"direction": direction}))

    def interact(self, coord: CellCoord) -> CommandResult:
        return self.execute(GameCommand(INTERACT_COMMAND_TYPE, {"i": coord.i, "j": coord.j}))

    def new_game(self) -> CommandResult:
        return self.execute(GameCommand(NEW_GAME_COMMAND_TYPE))

    def set_movement_mode(self, mode: str) -> CommandResult:
        return self.execute(GameCommand(SET_MOVEMENT_MODE_COMMAND_TYPE, {"mode": mode}))

    def update_position(self, fix: PositionFix) -> CommandResult:
        return self.execute(GameCommand(POSITION_FIX_COMMAND_TYPE, fix.to_dict()))

    def location_unavailable(self, reason: str) -> CommandResult:
        return self.execute(GameCommand(LOCATION_UNAVAILABLE_COMMAND_TYPE, {"reason": reason}))

    def _execute_command(self, command: GameCommand) -> CommandResult:
        if command.command_type == MOVE_COMMAND_TYPE:
            return self._execute_move(command)
        if command.command_type == POSITION_FIX_COMMAND_TYPE:
            return self._execute_position_fix(command)
        if command.command_type == INTERACT_COMMAND_TYPE:
            return self._execute_interact(command)
        if command.command_type == NEW_GAME_COMMAND_TYPE:
            return self._execute_new_game(command)
        if command.command_type == SET_MOVEMENT_MODE_COMMAND_TYPE:
            return self._execute_set_movement_mode(command)
        if command.command_type == LOCATION_UNAVAILABLE_COMMAND_TYPE:
            reason = command.params.get("reason")
            detail = reason if isinstance(reason, str) and reason else "unknown error"
            return self._result(command, OUTCOME_LOCATION_UNAVAILABLE, f"Location unavailable: {detail}")
        return self._result(command, OUTCOME_INVALID_PARAMS, f"Unknown command: {command.command_type}")

    def _execute_move(self, command: GameCommand) -> CommandResult:
        direction = command.params.get("direction")
        if not isinstance(direction, str) or direction not in CARDINAL_DIRECTIONS:
            return self._result(command, OUTCOME_INVALID_PARAMS, f"Unknown direction: {direction}")
        if self.controller.mode != MOVEMENT_MODE_MANUAL:
            return self._result(command, OUTCOME_IGNORED, "Manual movement is off while following your location.")
        destination = self.controller.step(self.state.player.coord, direction)
        return self._result(
            command,
            OUTCOME_MOVED,
            f"Moved {direction} to cell ({destination.i}, {destination.j}).",
            saved=self._save(),
            coord=destination,
        )

    def _execute_position_fix(self, command: GameCommand) -> CommandResult:
        try:
            fix = PositionFix.from_dict(command.params)
        except (KeyError, TypeError, ValueError) as exc:
            return self._result(command, OUTCOME_INVALID_PARAMS, f"Bad position update: {exc}")
        if self.controller.mode != MOVEMENT_MODE_SENSOR:
            return self._result(command, OUTCOME_IGNORED, "Location update ignored in manual mode.")
        destination = self.controller.accept_fix(fix)
        return self._result(
            command,
            OUTCOME_MOVED,
            f"Location updated to cell ({destination.i}, {destination.j}) (accuracy {fix.accuracy_m:.0f} m).",
            saved=self._save(),
            coord=destination,
        )

    def _execute_interact(self, command: GameCommand) -> CommandResult:
        raw_i = command.params.get("i")
        raw_j = command.params.get("j")
        if isinstance(raw_i, bool) or isinstance(raw_j, bool) or not isinstance(raw_i, int) or not isinstance(raw_j, int):
            return self._result(command, OUTCOME_INVALID_PARAMS, "Interaction target must be an integer cell.")
        coord = CellCoord(raw_i, raw_j)
        target = self.state.resolve(coord)
        result = resolve_interaction(
            self.state.player.held,
            target.value,
            distance_m=self.distance_to_cell_m(coord),
            interaction_radius_m=self.rules.interaction_radius_m,
            win_value=self.rules.win_value,
        )
        saved: bool | None = None
        if result.changed:
            self.state.overlay.apply(coord, result.cell_value)
            self.state.player.held = result.held
            self.viewport.refresh_cell(coord)
            saved = self._save()
        return self._result(
            command,
            result.outcome,
            describe_outcome(result, coord),
            win=result.win,
            saved=saved,
            coord=coord,
        )

    def _execute_new_game(self, command: GameCommand) -> CommandResult:
        self.state.reset()
        self.viewport.clear()
        self.refresh_viewport()
        return self._result(command, OUTCOME_NEW_GAME, "Started a new game. Empty hand.", saved=self._save())

    def _execute_set_movement_mode(self, command: GameCommand) -> CommandResult:
        mode = command.params.get("mode")
        if mode not in MOVEMENT_MODES:
            return self._result(command, OUTCOME_INVALID_PARAMS, f"Unknown movement mode: {mode}")
        if mode == self.controller.mode:
            return self._result(command, OUTCOME_IGNORED, f"Already in {mode} mode.")
        self.controller.stop()
        self.controller = build_controller(mode, self._on_position_changed, self.anchor)
        self.controller.start()
        if mode == MOVEMENT_MODE_MANUAL:
            return self._result(command, OUTCOME_MODE_CHANGED, "Manual movement enabled.")
        return self._result(command, OUTCOME_MODE_CHANGED, "Following your location.")

    def _on_position_changed(self, coord: CellCoord, position: LatLng | None) -> None:
        self.state.player.coord = coord
        self.state.player.position = position
        self.refresh_viewport()

    def _save(self) -> bool | None:
        if self.autosave is None:
            return None
        return self.autosave(self.state)

    @staticmethod
    def _result(
        command: GameCommand,
        outcome: str,
        status: str,
        *,
        win: bool = False,
        saved: bool | None = None,
        coord: CellCoord | None = None,
    ) -> CommandResult:
        if saved is False:
            status = f"{status} (save failed)"
        return CommandResult(
            command_type=command.command_type,
            outcome=outcome,
            status=status,
            win=win,
            saved=saved,
            coord=coord,
        )


def replay_commands(rules: GameRules, commands: list[GameCommand | dict[str, Any]]) -> GameSession:
    session = GameSession(rules)
    for command in commands:
        session.submit(command)
    session.process_pending()
    return session
