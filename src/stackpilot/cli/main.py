"""
Command-line entry point: ``stackpilot synth|init|plan|deploy|destroy|output|config``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

import structlog

from stackpilot.cli import render, ux
from stackpilot.config import Settings, get_settings
from stackpilot.core.errors import ExitCode, main_with_error_handling
from stackpilot.deploy.confirmation import Confirmation, ConfirmationAborted
from stackpilot.deploy.state import DeploymentState, Status
from stackpilot.deploy.store import DeploymentStore
from stackpilot.deploy.synth import Synthesizer
from stackpilot.deploy.workflow import DeploymentWorkflow
from stackpilot.logging import bind_session, configure_logging
from stackpilot.project_config import PROJECT_CONFIG_FILE, ProjectConfig

logger = structlog.get_logger()

WORKFLOWS = ("synth", "init", "plan", "deploy", "destroy", "output")
CONFIRMED_WORKFLOWS = ("deploy", "destroy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackpilot",
        description="Synthesize, plan and apply infrastructure stacks",
    )
    parser.add_argument("--config", help=f"Path to project config (default: ./{PROJECT_CONFIG_FILE})")
    parser.add_argument("--log-level", default=None, help="Log level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command")

    help_text = {
        "synth": "Synthesize the configuration without running terraform",
        "init": "Synthesize and run terraform init",
        "plan": "Synthesize and show the planned changes",
        "deploy": "Synthesize, plan and apply the changes",
        "destroy": "Synthesize, plan and destroy the stack's resources",
        "output": "Show the stack's outputs",
    }
    for name in WORKFLOWS:
        sub = subparsers.add_parser(name, help=help_text[name])
        sub.add_argument("-a", "--app", help="Command that synthesizes the stacks")
        sub.add_argument("-o", "--output", help="Directory the stacks are synthesized into")
        sub.add_argument(
            "--format", choices=["text", "json"], default="text", dest="output_format"
        )
        if name in CONFIRMED_WORKFLOWS:
            sub.add_argument(
                "--auto-approve",
                action="store_true",
                default=None,
                help="Skip the interactive confirmation",
            )

    config_parser = subparsers.add_parser("config", help="Project configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Show the effective configuration")
    config_init = config_subparsers.add_parser("init", help=f"Write {PROJECT_CONFIG_FILE}")
    config_init.add_argument("--app", required=True, help="Command that synthesizes the stacks")
    config_init.add_argument("--output", help="Directory the stacks are synthesized into")

    return parser


def resolve_options(
    args: argparse.Namespace, project: ProjectConfig, settings: Settings
) -> tuple[str | None, str]:
    """CLI flags win over stackpilot.yaml, which wins over STACKPILOT_* settings."""
    app = getattr(args, "app", None) or project.app or settings.app
    output = getattr(args, "output", None) or project.output or settings.output
    return app, output


def _make_confirmation(
    store: DeploymentStore, auto_approve: bool, interactive: bool
) -> Confirmation:
    if auto_approve:
        return Confirmation(auto_approve=True)

    async def prompt() -> bool:
        state = store.state
        if state.plan is not None and not state.plan.needs_apply:
            return True
        if not interactive:
            ux.warning("Not running interactively; pass --auto-approve to apply without a prompt")
            return False
        question = "Do you want to perform these actions?"
        if state.plan is not None:
            render.print_plan(state.plan, state.stack_name)
            if state.plan.is_remote:
                question = "Start a new remote run and apply it?"
        return await ux.confirm(question, default=False)

    return Confirmation(prompt=prompt)


async def run_workflow(
    command: str,
    workflow: DeploymentWorkflow,
) -> DeploymentState:
    runner = {
        "synth": workflow.synth,
        "init": workflow.init,
        "plan": workflow.plan,
        "deploy": workflow.deploy,
        "destroy": workflow.destroy,
        "output": workflow.output,
    }[command]
    return await runner()


def workflow_command(args: argparse.Namespace, settings: Settings) -> int:
    project = ProjectConfig.load(args.config)
    app, output = resolve_options(args, project, settings)
    auto_approve = bool(getattr(args, "auto_approve", None) or settings.auto_approve)
    text_output = args.output_format == "text"

    bind_session(workflow=args.command, output=output)
    store = DeploymentStore()
    if text_output:
        store.subscribe(render.StatusPrinter())

    workflow = DeploymentWorkflow(
        store,
        Synthesizer(app or "", output, context=project.context),
        confirmation=_make_confirmation(store, auto_approve, ux.is_interactive() and text_output),
        settings=settings,
    )

    try:
        state = asyncio.run(run_workflow(args.command, workflow))
    except ConfirmationAborted:
        if text_output:
            ux.warning("Aborted, nothing was applied")
        raise

    if not text_output:
        render.print_state_json(state)
    elif state.has_errors:
        render.print_summary(state)
    elif args.command == "synth" and state.status is Status.SYNTHESIZED:
        ux.success(f"Synthesized stack '{state.stack_name}' into {output}")
    elif args.command == "init" and state.status is Status.INITIALIZING:
        ux.success(f"Initialized stack '{state.stack_name}'")
    elif args.command == "output":
        if state.outputs:
            render.print_outputs(state.outputs)
        else:
            ux.info("No outputs")
    else:
        render.print_summary(state)
        if state.outputs:
            render.print_outputs(state.outputs)

    if state.has_errors:
        logger.warning("workflow_failed", workflow=args.command, errors=len(state.errors))
        return ExitCode.WARNING
    return ExitCode.SUCCESS


def config_command(args: argparse.Namespace, settings: Settings) -> int:
    if args.config_command == "init":
        project = ProjectConfig(app=args.app, output=args.output)
        path = args.config or PROJECT_CONFIG_FILE
        project.save(path)
        ux.success(f"Wrote {path}")
        return ExitCode.SUCCESS

    project = ProjectConfig.load(args.config)
    app, output = resolve_options(args, project, settings)
    ux.print_table(
        "Configuration",
        ["Setting", "Value"],
        [
            ["app", app or "(not set)"],
            ["output", output],
            ["terraform_binary", settings.terraform_binary],
            ["auto_approve", str(settings.auto_approve)],
            ["speculative", str(settings.speculative)],
            ["tfc_hostname", settings.tfc_hostname],
            ["tfc_token", "(set)" if settings.tfc_token else "(not set)"],
        ],
    )
    return ExitCode.SUCCESS


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None or (args.command == "config" and args.config_command is None):
        parser.print_help()
        return ExitCode.WARNING

    settings = get_settings()
    level = (args.log_level or settings.log_level).upper()
    configure_logging(getattr(logging, level, logging.WARNING))

    if args.command == "config":
        return config_command(args, settings)
    return workflow_command(args, settings)


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
