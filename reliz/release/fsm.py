from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TypeVar

from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    state: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


type StepOutcome[S] = StepAdvance[S] | StepFinish
type StepHandler[S] = Callable[[S], Result[StepOutcome[S], ReleaseError]]
type OnEnter[S] = Callable[[S], None]

# A transition action: performs the work that moves the workflow into a state.
type Action = Callable[[], Result[None, ReleaseError]]


FINISH = StepFinish()


def advance[S](state: S) -> StepAdvance[S]:
    return StepAdvance(state=state)


def run_state_machine[S](
    *,
    initial_state: S,
    handlers: Mapping[S, StepHandler[S]],
    on_enter: OnEnter[S] | None = None,
) -> Result[list[S], ReleaseError]:
    """Drive handlers until one finishes; returns the visited states in order."""
    current = initial_state
    trail = [current]

    while True:
        handler = handlers.get(current)
        if handler is None:
            return Err(
                ReleaseError(
                    kind="workflow",
                    message=f"unknown workflow state: {current}",
                )
            )

        outcome = handler(current)
        if isinstance(outcome, Err):
            return outcome

        if isinstance(outcome.value, StepFinish):
            return Ok(trail)

        current = outcome.value.state
        trail.append(current)
        if on_enter is not None:
            on_enter(current)


def run_workflow(
    states: Sequence[str],
    actions: Mapping[str, Action],
    on_enter: OnEnter[str] | None = None,
) -> Result[list[str], ReleaseError]:
    """Walk a linear state table.

    ``actions[state]`` is run to move into ``state``; a state without an
    action is entered directly. The last state finishes the machine.
    """
    if not states:
        return Ok([])

    handlers: dict[str, StepHandler[str]] = {}
    for index, state in enumerate(states):
        target = states[index + 1] if index + 1 < len(states) else None
        handlers[state] = _step(target, actions.get(target) if target else None)

    return run_state_machine(initial_state=states[0], handlers=handlers, on_enter=on_enter)


def _step(target: str | None, action: Action | None) -> StepHandler[str]:
    def handler(_state: str) -> Result[StepOutcome[str], ReleaseError]:
        if target is None:
            return Ok(FINISH)
        if action is not None:
            result = action()
            if isinstance(result, Err):
                return result
        return Ok(advance(target))

    return handler
