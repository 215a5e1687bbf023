"""
Rendering of deployment state for the terminal and for JSON output.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from rich.markup import escape
from rich.table import Table

from stackpilot.cli.ux import console, error, header, info, success, warning
from stackpilot.deploy.models import ApplyState, OutputValue, Plan, PlannedResourceAction
from stackpilot.deploy.state import DeploymentState, Status

# apply state -> (symbol, style)
APPLY_STATE_STYLE = {
    ApplyState.WAITING: ("·", "muted"),
    ApplyState.CREATING: ("…", "info"),
    ApplyState.CREATED: ("✓", "success"),
    ApplyState.UPDATING: ("…", "info"),
    ApplyState.UPDATED: ("✓", "success"),
    ApplyState.DESTROYING: ("…", "orange"),
    ApplyState.DESTROYED: ("✓", "success"),
}

ACTION_STYLE = {
    PlannedResourceAction.CREATE: ("+", "success"),
    PlannedResourceAction.UPDATE: ("~", "warning"),
    PlannedResourceAction.DELETE: ("-", "error"),
    PlannedResourceAction.NO_OP: (" ", "muted"),
}

# The reviewed remote run is speculative; applying runs terraform apply again.
REMOTE_APPLY_NOTICE = (
    "Applying starts a new run in the remote workspace. "
    "Its changes can differ from the plan reviewed above."
)

STATUS_LABELS = {
    Status.STARTING: "Starting",
    Status.SYNTHESIZING: "Synthesizing",
    Status.SYNTHESIZED: "Synthesized",
    Status.INITIALIZING: "Initializing",
    Status.PLANNING: "Planning",
    Status.PLANNED: "Planned",
    Status.DEPLOYING: "Deploying",
    Status.DESTROYING: "Destroying",
    Status.DONE: "Done",
}


def resource_table(state: DeploymentState) -> Table:
    """Build a table of in-flight resources."""
    title = STATUS_LABELS[state.status]
    if state.stack_name:
        title = f"{title} {state.stack_name}"
    table = Table(title=title, show_header=True, title_justify="left")
    table.add_column("", width=1)
    table.add_column("Resource")
    table.add_column("State")

    for resource in state.resources:
        symbol, style = APPLY_STATE_STYLE[resource.apply_state]
        table.add_row(
            f"[{style}]{symbol}[/{style}]",
            resource.id,
            f"[{style}]{resource.apply_state.value}[/{style}]",
        )
    return table


class StatusPrinter:
    """Store listener that prints status changes and resource transitions."""

    def __init__(self) -> None:
        self._status: Status | None = None
        self._seen: dict[str, ApplyState] = {}

    def __call__(self, state: DeploymentState) -> None:
        if state.status is not self._status:
            self._status = state.status
            if state.status is not Status.DONE:
                console.print(f"[muted]{STATUS_LABELS[state.status]}...[/muted]")

        for resource in state.resources:
            if self._seen.get(resource.id) is resource.apply_state:
                continue
            self._seen[resource.id] = resource.apply_state
            if resource.apply_state is ApplyState.WAITING:
                continue
            symbol, style = APPLY_STATE_STYLE[resource.apply_state]
            console.print(
                f"  [{style}]{symbol}[/{style}] {resource.id} [{style}]{resource.apply_state.value}[/{style}]"
            )


def print_plan(plan: Plan, stack_name: str | None = None) -> None:
    """Print plan summary."""
    header(f"Plan: {stack_name}" if stack_name else "Plan")
    console.print()

    if not plan.needs_apply:
        info("No changes. Infrastructure is up-to-date.")
        console.print()
        return

    for resource in plan.applyable_resources:
        symbol, style = ACTION_STYLE[resource.action]
        console.print(f"  [{style}]{symbol}[/{style}] {resource.id}")

    counts = plan.counts()
    console.print()
    console.print(
        f"[bold]Plan:[/bold] {counts.get('create', 0)} to add, "
        f"{counts.get('update', 0)} to change, {counts.get('delete', 0)} to destroy."
    )
    if plan.url:
        console.print(f"[muted]Review the run at[/muted] [info]{plan.url}[/info]")
        warning(REMOTE_APPLY_NOTICE)
    console.print()


def print_outputs(outputs: Mapping[str, OutputValue]) -> None:
    """Print stack outputs."""
    if not outputs:
        return
    console.print()
    console.print("[bold]Outputs:[/bold]")
    for name, output in outputs.items():
        console.print(f"  [cyan]{escape(name)}[/cyan] = {escape(output.display())}")
    console.print()


def print_summary(state: DeploymentState) -> None:
    """Print the final status and any accumulated errors."""
    if state.errors:
        console.print()
        for message in state.errors:
            error(message)
        return

    if state.status is Status.DONE:
        finished = sum(1 for r in state.resources if r.apply_state.finished)
        if state.resources:
            console.print()
            console.print(resource_table(state))
            success(f"{finished}/{len(state.resources)} resources applied")
        else:
            success("Nothing to apply")
    elif state.status is Status.PLANNED and state.plan is not None:
        print_plan(state.plan, state.stack_name)
    else:
        warning(f"Stopped while {STATUS_LABELS[state.status].lower()}")


def state_to_dict(state: DeploymentState) -> dict[str, Any]:
    """Serialize state for ``--format json``."""
    plan = None
    if state.plan is not None:
        plan = {
            "needs_apply": state.plan.needs_apply,
            "plan_file": state.plan.plan_file,
            "resources": [
                {"id": r.id, "action": r.action.value} for r in state.plan.applyable_resources
            ],
        }
    return {
        "status": state.status.value,
        "stack_name": state.stack_name,
        "url": state.url,
        "plan": plan,
        "resources": [
            {"id": r.id, "action": r.action.value, "apply_state": r.apply_state.value}
            for r in state.resources
        ],
        "outputs": {
            name: {"value": None if o.sensitive else o.value, "sensitive": o.sensitive}
            for name, o in (state.outputs or {}).items()
        },
        "errors": list(state.errors),
    }


def print_state_json(state: DeploymentState) -> None:
    print(json.dumps(state_to_dict(state), indent=2))
