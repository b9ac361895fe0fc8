from __future__ import annotations

from dataclasses import dataclass

from gridmerge.sim.grid import CellCoord, is_token_value

OUTCOME_PICKED_UP = "picked_up"
OUTCOME_DROPPED = "dropped"
OUTCOME_MERGED = "merged"
OUTCOME_TOO_FAR = "too_far"
OUTCOME_NO_ACTION = "no_action"

MUTATING_OUTCOMES = frozenset({OUTCOME_PICKED_UP, OUTCOME_DROPPED, OUTCOME_MERGED})
INTERACTION_OUTCOMES = MUTATING_OUTCOMES | {OUTCOME_TOO_FAR, OUTCOME_NO_ACTION}


@dataclass(frozen=True)
class InteractionResult:
    outcome: str
    held: int | None
    cell_value: int | None
    win: bool = False

    @property
    def changed(self) -> bool:
        return self.outcome in MUTATING_OUTCOMES


def _require_optional_token(value: int | None, *, field_name: str) -> None:
    if value is not None and not is_token_value(value):
        raise ValueError(f"{field_name} must be None or a positive power of two")


def resolve_interaction(
    held: int | None,
    cell_value: int | None,
    *,
    distance_m: float,
    interaction_radius_m: float,
    win_value: int,
) -> InteractionResult:
    """Compute the hand/cell pair that results from clicking a cell.

    Rejections return the inputs unchanged. A merge at or above ``win_value``
    sets ``win`` but is otherwise an ordinary merge.
    """
    _require_optional_token(held, field_name="held")
    _require_optional_token(cell_value, field_name="cell_value")

    if distance_m > interaction_radius_m:
        return InteractionResult(outcome=OUTCOME_TOO_FAR, held=held, cell_value=cell_value)

    if held is None and cell_value is not None:
        return InteractionResult(outcome=OUTCOME_PICKED_UP, held=cell_value, cell_value=None)

    if held is not None and cell_value is None:
        return InteractionResult(outcome=OUTCOME_DROPPED, held=None, cell_value=held)

    if held is not None and held == cell_value:
        merged = held + cell_value
        return InteractionResult(
            outcome=OUTCOME_MERGED,
            held=None,
            cell_value=merged,
            win=merged >= win_value,
        )

    return InteractionResult(outcome=OUTCOME_NO_ACTION, held=held, cell_value=cell_value)


def describe_outcome(result: InteractionResult, coord: CellCoord) -> str:
    if result.outcome == OUTCOME_TOO_FAR:
        return "Too far away to interact."
    if result.outcome == OUTCOME_PICKED_UP:
        return f"Picked up token: {result.held}"
    if result.outcome == OUTCOME_DROPPED:
        return f"Placed token in cell ({coord.i}, {coord.j})."
    if result.outcome == OUTCOME_MERGED:
        text = f"Combined tokens into {result.cell_value}!"
        return f"{text} You win!" if result.win else text
    return "No valid action available."


def describe_hand(held: int | None) -> str:
    if held is None:
        return "Empty hand."
    return f"Holding token: {held}"
