"""Backend executors and backend selection."""

from __future__ import annotations

import os

import structlog

from stackpilot.config import Settings
from stackpilot.deploy.backends.base import Backend, BackendKind, outputs_from_json, plan_from_json
from stackpilot.deploy.backends.local import LocalBackend
from stackpilot.deploy.backends.remote import RemoteBackend
from stackpilot.deploy.models import SynthesizedStack

logger = structlog.get_logger()


async def select_backend(stack: SynthesizedStack, settings: Settings) -> Backend:
    """Pick the executor for a synthesized stack.

    Remote when the stack declares a ``remote`` backend whose workspace
    is reachable and runs remotely, local otherwise.
    """
    working_directory = stack.working_directory or os.getcwd()
    remote_config = stack.remote_backend()

    if remote_config is not None:
        remote = RemoteBackend(
            working_directory,
            remote_config,
            speculative=settings.speculative,
            binary=settings.terraform_binary,
            token=settings.tfc_token,
            hostname=settings.tfc_hostname,
        )
        if await remote.is_remote_workspace():
            logger.info("backend_selected", kind=remote.kind.value, stack=stack.name)
            return remote

    local = LocalBackend(working_directory, binary=settings.terraform_binary)
    logger.info("backend_selected", kind=local.kind.value, stack=stack.name)
    return local


__all__ = [
    "Backend",
    "BackendKind",
    "LocalBackend",
    "RemoteBackend",
    "outputs_from_json",
    "plan_from_json",
    "select_backend",
]
