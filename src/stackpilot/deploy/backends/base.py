from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from stackpilot.deploy.backends.process import OutputCallback
from stackpilot.deploy.models import OutputValue, Plan, PlannedResource, PlannedResourceAction


class BackendKind(str, Enum):
    """Which executor a session runs against. Decided once, after synthesis."""

    LOCAL = "local"
    REMOTE = "remote"


class Backend(Protocol):
    """Contract the workflow requires of an executor."""

    kind: BackendKind

    async def init(self) -> None:
        ...

    async def plan(self, destroy: bool = False) -> Plan:
        ...

    async def deploy(self, plan_file: str | None, on_output: OutputCallback) -> None:
        ...

    async def destroy(self, on_output: OutputCallback) -> None:
        ...

    async def output(self) -> dict[str, OutputValue]:
        ...


def _planned_action(actions: list[str]) -> PlannedResourceAction:
    if actions == ["create"]:
        return PlannedResourceAction.CREATE
    if actions == ["delete"]:
        return PlannedResourceAction.DELETE
    if actions == ["update"] or sorted(actions) == ["create", "delete"]:
        return PlannedResourceAction.UPDATE
    return PlannedResourceAction.NO_OP


def plan_from_json(data: dict[str, Any], plan_file: str | None, url: str | None = None) -> Plan:
    """Build a Plan from ``terraform show -json`` output.

    Replacements (delete+create) count as updates. Data source reads and
    no-ops are kept as NO_OP so they are listed but never applied.
    """
    resources = []
    for change in data.get("resource_changes") or []:
        if change.get("mode") == "data":
            continue
        actions = list((change.get("change") or {}).get("actions") or [])
        resources.append(
            PlannedResource(
                id=change.get("address", ""),
                action=_planned_action(actions),
                resource_type=change.get("type"),
                name=change.get("name"),
                module=change.get("module_address"),
            )
        )
    return Plan(plan_file=plan_file, resources=tuple(resources), url=url)


def outputs_from_json(data: dict[str, Any]) -> dict[str, OutputValue]:
    """Build outputs from ``terraform output -json``."""
    return {
        name: OutputValue(
            value=raw.get("value"),
            sensitive=bool(raw.get("sensitive", False)),
            type=raw.get("type"),
        )
        for name, raw in data.items()
    }
