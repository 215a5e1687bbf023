"""Backend that runs the terraform CLI against local state."""

from __future__ import annotations

import json
import os
from typing import Sequence

import structlog

from stackpilot.core.errors import BackendError
from stackpilot.deploy.backends.base import BackendKind, outputs_from_json, plan_from_json
from stackpilot.deploy.backends.process import CommandResult, OutputCallback, run_command
from stackpilot.deploy.models import OutputValue, Plan

logger = structlog.get_logger()

PLAN_FILE = "plan"
# Keeps terraform from asking questions or printing follow-up advice.
TERRAFORM_ENV = {"TF_IN_AUTOMATION": "1", "TF_INPUT": "0"}


class LocalBackend:
    """Runs ``terraform`` in the synthesized stack's working directory."""

    kind = BackendKind.LOCAL

    def __init__(self, working_directory: str, binary: str = "terraform") -> None:
        self.working_directory = working_directory
        self.binary = binary

    async def _terraform(
        self,
        args: Sequence[str],
        on_output: OutputCallback | None = None,
    ) -> CommandResult:
        result = await run_command(
            [self.binary, *args],
            cwd=self.working_directory,
            env=TERRAFORM_ENV,
            on_output=on_output,
        )
        if not result.success:
            logger.error(
                "terraform_failed",
                command=args[0],
                returncode=result.returncode,
                cwd=self.working_directory,
            )
            raise BackendError(
                result.error_message(),
                details={"command": args[0], "returncode": result.returncode},
            )
        return result

    async def init(self) -> None:
        await self._terraform(["init", "-input=false"])

    async def plan(self, destroy: bool = False) -> Plan:
        args = ["plan", "-input=false", f"-out={PLAN_FILE}"]
        if destroy:
            args.append("-destroy")
        await self._terraform(args)

        shown = await self._terraform(["show", "-json", PLAN_FILE])
        try:
            data = json.loads(shown.stdout)
        except json.JSONDecodeError as exc:
            raise BackendError(f"Could not read plan: {exc}") from exc

        plan = plan_from_json(data, plan_file=os.path.join(self.working_directory, PLAN_FILE))
        logger.info("plan_created", destroy=destroy, changes=plan.counts())
        return plan

    async def deploy(self, plan_file: str | None, on_output: OutputCallback) -> None:
        args = ["apply", "-auto-approve", "-input=false"]
        if plan_file:
            args.append(plan_file)
        await self._terraform(args, on_output=on_output)

    async def destroy(self, on_output: OutputCallback) -> None:
        await self._terraform(["destroy", "-auto-approve", "-input=false"], on_output=on_output)

    async def output(self) -> dict[str, OutputValue]:
        result = await self._terraform(["output", "-json"])
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise BackendError(f"Could not read outputs: {exc}") from exc
        return outputs_from_json(data)
