"""Value types shared by the state machine, parser and backends."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PlannedResourceAction(str, Enum):
    """Change a plan intends to make to a resource."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NO_OP = "no-op"


APPLYABLE_ACTIONS = frozenset(
    {PlannedResourceAction.CREATE, PlannedResourceAction.UPDATE, PlannedResourceAction.DELETE}
)


class ApplyState(str, Enum):
    """Observed lifecycle of a resource while apply/destroy runs."""

    WAITING = "waiting"
    CREATING = "creating"
    CREATED = "created"
    UPDATING = "updating"
    UPDATED = "updated"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"

    @property
    def finished(self) -> bool:
        return self in (ApplyState.CREATED, ApplyState.UPDATED, ApplyState.DESTROYED)


@dataclass(frozen=True)
class ResourceProgress:
    """Progress of one managed resource, keyed by its address."""

    id: str
    action: PlannedResourceAction = PlannedResourceAction.CREATE
    apply_state: ApplyState = ApplyState.WAITING


@dataclass(frozen=True)
class PlannedResource:
    """A resource listed in a plan."""

    id: str
    action: PlannedResourceAction
    resource_type: str | None = None
    name: str | None = None
    module: str | None = None

    def to_progress(self) -> ResourceProgress:
        return ResourceProgress(id=self.id, action=self.action, apply_state=ApplyState.WAITING)


@dataclass(frozen=True)
class Plan:
    """Backend-agnostic plan summary.

    ``plan_file`` is an opaque handle passed back to the backend on apply.
    ``url`` is set only for plans produced by the remote backend.
    """

    plan_file: str | None
    resources: tuple[PlannedResource, ...] = ()
    url: str | None = None

    @property
    def applyable_resources(self) -> tuple[PlannedResource, ...]:
        return tuple(r for r in self.resources if r.action in APPLYABLE_ACTIONS)

    @property
    def needs_apply(self) -> bool:
        return bool(self.applyable_resources)

    @property
    def is_remote(self) -> bool:
        return self.url is not None

    def counts(self) -> dict[str, int]:
        """Number of applyable resources per action."""
        result: dict[str, int] = {}
        for resource in self.applyable_resources:
            result[resource.action.value] = result.get(resource.action.value, 0) + 1
        return result


@dataclass(frozen=True)
class OutputValue:
    """A single stack output as reported by ``terraform output -json``."""

    value: Any
    sensitive: bool = False
    type: Any = None

    def display(self) -> str:
        if self.sensitive:
            return "<sensitive>"
        if isinstance(self.value, str):
            return self.value
        return json.dumps(self.value, sort_keys=True)


@dataclass(frozen=True)
class SynthesizedStack:
    """One synthesized unit: its name and serialized configuration document."""

    name: str
    content: str
    working_directory: str = ""
    _document: dict[str, Any] | None = field(default=None, repr=False, compare=False)

    def document(self) -> dict[str, Any]:
        if self._document is not None:
            return self._document
        data = json.loads(self.content)
        object.__setattr__(self, "_document", data)
        return data

    def remote_backend(self) -> dict[str, Any] | None:
        """Return the ``terraform.backend.remote`` block, if declared."""
        terraform = self.document().get("terraform") or {}
        backend = terraform.get("backend") or {}
        remote = backend.get("remote")
        return remote if isinstance(remote, dict) else None
