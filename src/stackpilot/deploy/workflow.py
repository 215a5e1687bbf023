"""Workflow orchestrator for synth/init/plan/deploy/destroy sessions.

Each workflow is a fixed sequence of awaited stages. A stage only runs
when the previous one left the store in the status it is gated on, so a
failing stage stops the pipeline: its exception is recorded as an
``Error`` action and nothing further is started. Nothing is retried.

Stages:
    synth    Synth → synthesizer → (backend selection) → NewStack
    init     Init → backend.init()
    plan     PlanStarted → backend.plan(destroy) → Planned
    apply    Deploy(waiting resources) → backend.deploy() → Done
    destroy  Destroy(waiting resources) → backend.destroy() → Done
    output   backend.output() → Output

Backend output is parsed chunk by chunk and merged into the store with
``UpdateResources`` while apply/destroy runs.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

import structlog

from stackpilot.config import Settings, get_settings
from stackpilot.core.errors import PreconditionError, UnhandledActionError
from stackpilot.deploy.backends import Backend, select_backend
from stackpilot.deploy.confirmation import Confirmation
from stackpilot.deploy.models import Plan, SynthesizedStack
from stackpilot.deploy.parser import parse_output
from stackpilot.deploy.state import (
    Deploy,
    DeploymentState,
    Destroy,
    Done,
    Error,
    Init,
    NewStack,
    Output,
    Planned,
    PlanStarted,
    Status,
    Synth,
    UpdateResources,
)
from stackpilot.deploy.store import DeploymentStore
from stackpilot.logging import bind_context

logger = structlog.get_logger()

BackendFactory = Callable[[SynthesizedStack], Awaitable[Backend]]


class StackSynthesizer(Protocol):
    async def synthesize(self) -> list[SynthesizedStack]:
        ...


class DeploymentWorkflow:
    """Drives one deployment session against a store.

    Parameters
    ----------
    store
        Dispatch handle holding the session state.
    synthesizer
        Produces the synthesized stacks; only the first one is used.
    confirmation
        Gate for apply/destroy. Defaults to an unresolved confirmation.
    backend_factory
        Picks the executor for the synthesized stack. Called at most once
        per session; defaults to :func:`select_backend`.
    """

    def __init__(
        self,
        store: DeploymentStore,
        synthesizer: StackSynthesizer,
        confirmation: Confirmation | None = None,
        backend_factory: BackendFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.synthesizer = synthesizer
        self.confirmation = confirmation or Confirmation()
        self.settings = settings or get_settings()
        self._backend_factory = backend_factory or self._select_backend
        self._backend: Backend | None = None
        self._stack: SynthesizedStack | None = None

    @property
    def state(self) -> DeploymentState:
        return self.store.state

    @property
    def backend(self) -> Backend | None:
        return self._backend

    @property
    def stack(self) -> SynthesizedStack | None:
        return self._stack

    async def _select_backend(self, stack: SynthesizedStack) -> Backend:
        return await select_backend(stack, self.settings)

    # === Workflows ===

    async def synth(self) -> DeploymentState:
        await self._stage("synth", self._synth, False)
        return self.state

    async def init(self) -> DeploymentState:
        await self._stage("synth", self._synth, True)
        if self.state.status is Status.SYNTHESIZED:
            await self._stage("init", self._init)
        return self.state

    async def plan(self) -> DeploymentState:
        await self._synth_and_plan(destroy=False)
        return self.state

    async def deploy(self) -> DeploymentState:
        await self._synth_and_plan(destroy=False)
        if not await self._await_confirmation():
            return self.state
        if await self._stage("apply", self._apply):
            await self._stage("output", self._output)
        return self.state

    async def destroy(self) -> DeploymentState:
        await self._synth_and_plan(destroy=True)
        if not await self._await_confirmation():
            return self.state
        await self._stage("destroy", self._destroy)
        return self.state

    async def output(self) -> DeploymentState:
        await self._stage("synth", self._synth, True)
        if self.state.status is Status.SYNTHESIZED and await self._stage("init", self._init):
            await self._stage("output", self._output)
        return self.state

    async def _synth_and_plan(self, destroy: bool) -> None:
        await self._stage("synth", self._synth, True)
        if self.state.status is not Status.SYNTHESIZED:
            return
        if await self._stage("init", self._init):
            await self._stage("plan", self._plan, destroy)

    async def _await_confirmation(self) -> bool:
        if self.state.status is not Status.PLANNED:
            return False
        if not await self.confirmation.wait():
            logger.info("workflow_halted", reason="not_confirmed")
            return False
        return True

    # === Stages ===

    async def _stage(self, name: str, func: Callable[..., Awaitable[Any]], *args: Any) -> bool:
        """Run one stage; failures become Error actions instead of raising."""
        log = bind_context(stage=name, stack=self.state.stack_name)
        try:
            await func(*args)
        except UnhandledActionError:
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            log.error("stage_failed", error_type=type(exc).__name__, err=message)
            self.store.dispatch(Error(message))
            return False
        log.debug("stage_finished", status=self.state.status.value)
        return True

    def _require_backend(self) -> Backend:
        if self._backend is None:
            raise PreconditionError("Backend is not initialized yet")
        return self._backend

    def _require_plan(self) -> Plan:
        plan = self.state.plan
        if plan is None:
            raise PreconditionError("No plan")
        return plan

    async def _synth(self, load_backend: bool = True) -> None:
        self.store.dispatch(Synth())
        stacks = await self.synthesizer.synthesize()
        stack = stacks[0]
        self._stack = stack
        if load_backend and self._backend is None:
            self._backend = await self._backend_factory(stack)
        self.store.dispatch(NewStack(stack_name=stack.name, stack_document=stack.content))

    async def _init(self) -> None:
        backend = self._require_backend()
        self.store.dispatch(Init())
        await backend.init()

    async def _plan(self, destroy: bool = False) -> None:
        backend = self._require_backend()
        self.store.dispatch(PlanStarted())
        plan = await backend.plan(destroy)
        self.store.dispatch(Planned(plan))

    async def _apply(self) -> None:
        backend = self._require_backend()
        plan = self._require_plan()
        if plan.needs_apply:
            self.store.dispatch(Deploy(r.to_progress() for r in plan.applyable_resources))
            await backend.deploy(plan.plan_file, self._on_output)
        else:
            logger.info("apply_skipped", reason="no_changes")
        self.store.dispatch(Done())

    async def _destroy(self) -> None:
        backend = self._require_backend()
        plan = self._require_plan()
        if plan.needs_apply:
            self.store.dispatch(Destroy(r.to_progress() for r in plan.applyable_resources))
            await backend.destroy(self._on_output)
        else:
            logger.info("destroy_skipped", reason="no_changes")
        self.store.dispatch(Done())

    async def _output(self) -> None:
        backend = self._require_backend()
        outputs = await backend.output()
        self.store.dispatch(Output(outputs))

    def _on_output(self, chunk: bytes) -> None:
        resources = parse_output(chunk)
        if resources:
            self.store.dispatch(UpdateResources(resources))
