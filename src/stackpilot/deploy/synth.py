"""Run the user's synth command and collect the stacks it writes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

import structlog

from stackpilot.core.errors import SynthError
from stackpilot.deploy.backends.process import run_command
from stackpilot.deploy.models import SynthesizedStack

logger = structlog.get_logger()

STACKS_DIR = "stacks"
STACK_FILE = "cdk.tf.json"
OUTDIR_ENV = "STACKPILOT_OUTDIR"
CONTEXT_ENV = "STACKPILOT_CONTEXT_JSON"


class Synthesizer:
    """Synthesizes configuration documents into ``target_dir``.

    The synth command receives the output directory in ``STACKPILOT_OUTDIR``
    and is expected to write ``stacks/<name>/cdk.tf.json`` below it.
    """

    def __init__(
        self,
        command: str,
        target_dir: str | Path,
        context: Mapping[str, str] | None = None,
    ) -> None:
        self.command = command
        self.target_dir = Path(target_dir).resolve()
        self.context = dict(context or {})

    async def synthesize(self) -> list[SynthesizedStack]:
        if not self.command:
            raise SynthError("No synth command configured (set 'app' in stackpilot.yaml or --app)")

        self.target_dir.mkdir(parents=True, exist_ok=True)
        env = {OUTDIR_ENV: str(self.target_dir)}
        if self.context:
            env[CONTEXT_ENV] = json.dumps(self.context, sort_keys=True)

        logger.info("synth_started", command=self.command, target_dir=str(self.target_dir))
        result = await run_command([self.command], env=env, shell=True)
        if not result.success:
            raise SynthError(
                f"Synth command failed: {result.error_message()}",
                details={"returncode": result.returncode},
            )

        stacks = self.collect()
        if not stacks:
            raise SynthError(
                "Synth command produced no stacks",
                details={"target_dir": str(self.target_dir)},
            )
        logger.info("synth_finished", stacks=[s.name for s in stacks])
        return stacks

    def collect(self) -> list[SynthesizedStack]:
        """Read every synthesized stack below the target dir, sorted by name."""
        stacks_root = self.target_dir / STACKS_DIR
        if not stacks_root.is_dir():
            return []

        stacks = []
        for stack_dir in sorted(p for p in stacks_root.iterdir() if p.is_dir()):
            stack_file = stack_dir / STACK_FILE
            if not stack_file.is_file():
                continue
            stacks.append(
                SynthesizedStack(
                    name=stack_dir.name,
                    content=stack_file.read_text(),
                    working_directory=str(stack_dir),
                )
            )
        return stacks
