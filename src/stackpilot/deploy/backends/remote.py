"""Backend for stacks that declare a Terraform Cloud ``remote`` backend.

The terraform CLI still drives init/plan/apply; with a remote backend
configured it executes the run in the remote workspace and prints the
run URL. The API client is used to check the workspace and to fetch the
JSON plan of the run, since remote runs cannot save a local plan file.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from stackpilot.clients.base import UNAVAILABLE_ERRORS
from stackpilot.clients.terraform_cloud import TerraformCloudClient
from stackpilot.core.errors import BackendError
from stackpilot.deploy.backends.base import BackendKind, plan_from_json
from stackpilot.deploy.backends.local import LocalBackend
from stackpilot.deploy.backends.process import OutputCallback
from stackpilot.deploy.models import Plan

logger = structlog.get_logger()

RUN_URL_PATTERN = re.compile(r"https://\S+/app/\S+/runs/(run-[A-Za-z0-9]+)")


def find_run_url(text: str) -> tuple[str, str] | None:
    """Return ``(url, run_id)`` of the first run link in CLI output."""
    match = RUN_URL_PATTERN.search(text)
    if match is None:
        return None
    return match.group(0), match.group(1)


class RemoteBackend(LocalBackend):
    """Runs terraform against a remote Terraform Cloud workspace."""

    kind = BackendKind.REMOTE

    def __init__(
        self,
        working_directory: str,
        remote_config: dict[str, Any],
        *,
        speculative: bool = False,
        binary: str = "terraform",
        token: str | None = None,
        hostname: str = "app.terraform.io",
        client: TerraformCloudClient | None = None,
    ) -> None:
        super().__init__(working_directory, binary=binary)
        self.remote_config = remote_config
        self.speculative = speculative
        self.organization: str | None = remote_config.get("organization")
        workspaces = remote_config.get("workspaces") or {}
        self.workspace_name: str | None = workspaces.get("name")
        self.client = client or TerraformCloudClient(
            hostname=remote_config.get("hostname") or hostname,
            token=remote_config.get("token") or token,
        )

    async def is_remote_workspace(self) -> bool:
        """True when the workspace exists and executes runs remotely."""
        if not self.organization or not self.workspace_name:
            logger.info("remote_workspace_unresolved", organization=self.organization)
            return False
        try:
            workspace = await self.client.get_workspace(self.organization, self.workspace_name)
        except UNAVAILABLE_ERRORS as exc:
            logger.warning(
                "remote_workspace_unreachable",
                organization=self.organization,
                workspace=self.workspace_name,
                err=str(exc),
            )
            return False
        mode = (workspace.get("attributes") or {}).get("execution-mode")
        return mode == "remote"

    async def plan(self, destroy: bool = False) -> Plan:
        args = ["plan", "-input=false"]
        if destroy:
            args.append("-destroy")
        result = await self._terraform(args)

        found = find_run_url(result.stdout)
        if found is None:
            raise BackendError("Remote plan did not report a run URL")
        url, run_id = found

        try:
            data = await self.client.get_plan_json(run_id)
        except UNAVAILABLE_ERRORS as exc:
            raise BackendError(f"Could not fetch remote plan: {exc}", details={"run": run_id}) from exc

        plan = plan_from_json(data, plan_file=run_id, url=url)
        logger.info("remote_plan_created", run=run_id, destroy=destroy, changes=plan.counts())
        return plan

    async def deploy(self, plan_file: str | None, on_output: OutputCallback) -> None:
        if self.speculative:
            raise BackendError("Speculative plans cannot be applied")
        # The run behind plan_file came from a CLI plan and is speculative, so
        # apply starts a fresh run that plans again.
        logger.warning("remote_apply_new_run", reviewed_run=plan_file)
        await self._terraform(["apply", "-auto-approve", "-input=false"], on_output=on_output)

    async def destroy(self, on_output: OutputCallback) -> None:
        if self.speculative:
            raise BackendError("Speculative plans cannot be applied")
        await super().destroy(on_output)
