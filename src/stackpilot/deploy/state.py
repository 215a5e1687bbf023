"""Deployment state model and its pure transition function.

``DeploymentState`` is immutable; the only way to obtain a new state is
``transition(state, action)``. Actions are small frozen dataclasses, one
per kind, and ``transition`` dispatches on the action's class through
``_TRANSITIONS``. Anything that is not one of these classes raises
``UnhandledActionError``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Iterable, Mapping, Union

from stackpilot.core.errors import UnhandledActionError
from stackpilot.deploy.models import OutputValue, Plan, ResourceProgress


class Status(str, Enum):
    """Session lifecycle, in order."""

    STARTING = "starting"
    SYNTHESIZING = "synthesizing"
    SYNTHESIZED = "synthesized"
    INITIALIZING = "initializing"
    PLANNING = "planning"
    PLANNED = "planned"
    DEPLOYING = "deploying"
    DESTROYING = "destroying"
    DONE = "done"


@dataclass(frozen=True)
class DeploymentState:
    status: Status = Status.STARTING
    resources: tuple[ResourceProgress, ...] = ()
    plan: Plan | None = None
    url: str | None = None
    stack_name: str | None = None
    stack_document: str | None = None
    errors: tuple[str, ...] = ()
    outputs: Mapping[str, OutputValue] | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def resource(self, resource_id: str) -> ResourceProgress | None:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None


def initial_state() -> DeploymentState:
    return DeploymentState(status=Status.STARTING, resources=())


# === Actions ===


@dataclass(frozen=True)
class Synth:
    kind: ClassVar[str] = "SYNTH"


@dataclass(frozen=True)
class NewStack:
    kind: ClassVar[str] = "NEW_STACK"
    stack_name: str
    stack_document: str


@dataclass(frozen=True)
class Init:
    kind: ClassVar[str] = "INIT"


@dataclass(frozen=True)
class PlanStarted:
    kind: ClassVar[str] = "PLAN"


@dataclass(frozen=True)
class Planned:
    kind: ClassVar[str] = "PLANNED"
    plan: Plan


@dataclass(frozen=True)
class Deploy:
    kind: ClassVar[str] = "DEPLOY"
    resources: tuple[ResourceProgress, ...]

    def __init__(self, resources: Iterable[ResourceProgress]) -> None:
        object.__setattr__(self, "resources", tuple(resources))


@dataclass(frozen=True)
class Destroy:
    kind: ClassVar[str] = "DESTROY"
    resources: tuple[ResourceProgress, ...]

    def __init__(self, resources: Iterable[ResourceProgress]) -> None:
        object.__setattr__(self, "resources", tuple(resources))


@dataclass(frozen=True)
class UpdateResources:
    kind: ClassVar[str] = "UPDATE_RESOURCES"
    resources: tuple[ResourceProgress, ...]

    def __init__(self, resources: Iterable[ResourceProgress]) -> None:
        object.__setattr__(self, "resources", tuple(resources))


@dataclass(frozen=True)
class Output:
    kind: ClassVar[str] = "OUTPUT"
    outputs: Mapping[str, OutputValue]

    def __init__(self, outputs: Mapping[str, OutputValue]) -> None:
        object.__setattr__(self, "outputs", MappingProxyType(dict(outputs)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Output):
            return NotImplemented
        return dict(self.outputs) == dict(other.outputs)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.outputs)))


@dataclass(frozen=True)
class Done:
    kind: ClassVar[str] = "DONE"


@dataclass(frozen=True)
class Error:
    kind: ClassVar[str] = "ERROR"
    message: str


Action = Union[
    Synth,
    NewStack,
    Init,
    PlanStarted,
    Planned,
    Deploy,
    Destroy,
    UpdateResources,
    Output,
    Done,
    Error,
]


# === Registry merge ===


def merge_resources(
    current: Iterable[ResourceProgress],
    incoming: Iterable[ResourceProgress],
) -> tuple[ResourceProgress, ...]:
    """Merge progress records into the current set, keyed by resource id.

    Known ids are overwritten in place, unseen ids are appended, and ids
    missing from ``incoming`` keep their prior state.
    """
    merged: dict[str, ResourceProgress] = {r.id: r for r in current}
    for resource in incoming:
        merged[resource.id] = resource
    return tuple(merged.values())


# === Transition ===


def _synth(state: DeploymentState, action: Synth) -> DeploymentState:
    return replace(state, status=Status.SYNTHESIZING)


def _new_stack(state: DeploymentState, action: NewStack) -> DeploymentState:
    return replace(
        state,
        status=Status.SYNTHESIZED,
        stack_name=action.stack_name,
        stack_document=action.stack_document,
    )


def _init(state: DeploymentState, action: Init) -> DeploymentState:
    return replace(state, status=Status.INITIALIZING)


def _plan_started(state: DeploymentState, action: PlanStarted) -> DeploymentState:
    return replace(state, status=Status.PLANNING)


def _planned(state: DeploymentState, action: Planned) -> DeploymentState:
    if action.plan.url is not None:
        return replace(state, status=Status.PLANNED, plan=action.plan, url=action.plan.url)
    return replace(state, status=Status.PLANNED, plan=action.plan)


def _deploy(state: DeploymentState, action: Deploy) -> DeploymentState:
    return replace(state, status=Status.DEPLOYING, resources=action.resources)


def _destroy(state: DeploymentState, action: Destroy) -> DeploymentState:
    return replace(state, status=Status.DESTROYING, resources=action.resources)


def _update_resources(state: DeploymentState, action: UpdateResources) -> DeploymentState:
    return replace(state, resources=merge_resources(state.resources, action.resources))


def _output(state: DeploymentState, action: Output) -> DeploymentState:
    return replace(state, outputs=action.outputs)


def _done(state: DeploymentState, action: Done) -> DeploymentState:
    return replace(state, status=Status.DONE)


def _error(state: DeploymentState, action: Error) -> DeploymentState:
    return replace(state, errors=state.errors + (action.message,))


_TRANSITIONS: dict[type, Callable[[DeploymentState, Any], DeploymentState]] = {
    Synth: _synth,
    NewStack: _new_stack,
    Init: _init,
    PlanStarted: _plan_started,
    Planned: _planned,
    Deploy: _deploy,
    Destroy: _destroy,
    UpdateResources: _update_resources,
    Output: _output,
    Done: _done,
    Error: _error,
}


def transition(state: DeploymentState, action: Action) -> DeploymentState:
    """Return the state that results from applying ``action`` to ``state``."""
    handler = _TRANSITIONS.get(type(action))
    if handler is None:
        raise UnhandledActionError(f"Unhandled action type: {action!r}")
    return handler(state, action)
