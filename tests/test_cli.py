"""Tests for the stackpilot command-line entry point."""

import json
import shlex
import sys
import textwrap

import pytest
import yaml
from stackpilot.cli.main import _make_confirmation, build_parser, main, resolve_options
from stackpilot.config import Settings
from stackpilot.core.errors import ExitCode
from stackpilot.deploy.backends import BackendKind
from stackpilot.deploy.models import OutputValue, Plan, PlannedResource, PlannedResourceAction
from stackpilot.deploy.state import Planned
from stackpilot.deploy.store import DeploymentStore
from stackpilot.project_config import PROJECT_CONFIG_FILE, ProjectConfig

SYNTH_SCRIPT = textwrap.dedent(
    """
    import json, os, pathlib

    stack = pathlib.Path(os.environ["STACKPILOT_OUTDIR"]) / "stacks" / "web"
    stack.mkdir(parents=True, exist_ok=True)
    (stack / "cdk.tf.json").write_text(json.dumps({"resource": {"aws_instance": {"web": {}}}}))
    """
)

PLAN = Plan(
    plan_file="plan",
    resources=(
        PlannedResource(id="aws_instance.web", action=PlannedResourceAction.CREATE),
    ),
)


class StubBackend:
    kind = BackendKind.LOCAL

    def __init__(self, plan=PLAN):
        self._plan = plan
        self.calls = []

    async def init(self):
        self.calls.append("init")

    async def plan(self, destroy=False):
        self.calls.append("plan")
        return self._plan

    async def deploy(self, plan_file, on_output):
        self.calls.append("deploy")
        on_output(b"aws_instance.web: Creating...\n")
        on_output(b"aws_instance.web: Creation complete after 2s [id=i-1]\n")

    async def destroy(self, on_output):
        self.calls.append("destroy")
        on_output(b"aws_instance.web: Destroying... [id=i-1]\n")
        on_output(b"aws_instance.web: Destruction complete after 1s\n")

    async def output(self):
        self.calls.append("output")
        return {"ip": OutputValue(value="10.0.0.1")}


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A project directory with a synth script and stackpilot.yaml."""
    script = tmp_path / "app.py"
    script.write_text(SYNTH_SCRIPT)
    app = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    (tmp_path / PROJECT_CONFIG_FILE).write_text(yaml.dump({"app": app, "output": "out"}))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def backend(monkeypatch):
    stub = StubBackend()

    async def select(stack, settings):
        return stub

    monkeypatch.setattr("stackpilot.deploy.workflow.select_backend", select)
    return stub


class TestParser:
    def test_workflow_flags(self):
        args = build_parser().parse_args(
            ["deploy", "--app", "make synth", "-o", "build", "--auto-approve", "--format", "json"]
        )
        assert args.command == "deploy"
        assert args.app == "make synth"
        assert args.output == "build"
        assert args.auto_approve is True
        assert args.output_format == "json"

    def test_plan_has_no_auto_approve(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["plan", "--auto-approve"])

    def test_flags_win_over_project_and_settings(self):
        args = build_parser().parse_args(["synth", "--app", "flag"])
        project = ProjectConfig(app="file", output="file-out")
        settings = Settings(app="env", output="env-out")

        assert resolve_options(args, project, settings) == ("flag", "file-out")

    def test_settings_fill_gaps(self):
        args = build_parser().parse_args(["synth"])
        assert resolve_options(args, ProjectConfig(), Settings(app="env")) == (
            "env",
            "stackpilot.out",
        )


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == ExitCode.WARNING
        assert "usage" in capsys.readouterr().out

    def test_synth(self, project, capsys):
        assert main(["synth"]) == ExitCode.SUCCESS
        assert (project / "out" / "stacks" / "web" / "cdk.tf.json").is_file()
        assert "Synthesized stack 'web'" in capsys.readouterr().out

    def test_synth_without_app_reports_error(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["synth", "--format", "json"]) == ExitCode.WARNING
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "synthesizing"
        assert "No synth command" in result["errors"][0]

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "nope.yaml"), "synth"]) == ExitCode.CONFIG_ERROR

    def test_plan(self, project, backend, capsys):
        assert main(["plan"]) == ExitCode.SUCCESS
        assert backend.calls == ["init", "plan"]
        out = capsys.readouterr().out
        assert "aws_instance.web" in out
        assert "1 to add" in out

    def test_deploy_auto_approve_json(self, project, backend, capsys):
        assert main(["deploy", "--auto-approve", "--format", "json"]) == ExitCode.SUCCESS
        assert backend.calls == ["init", "plan", "deploy", "output"]

        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "done"
        assert result["stack_name"] == "web"
        assert result["resources"] == [
            {"id": "aws_instance.web", "action": "create", "apply_state": "created"}
        ]
        assert result["outputs"] == {"ip": {"value": "10.0.0.1", "sensitive": False}}
        assert result["errors"] == []

    def test_deploy_auto_approve_from_environment(self, project, backend, monkeypatch):
        monkeypatch.setenv("STACKPILOT_AUTO_APPROVE", "1")
        assert main(["deploy"]) == ExitCode.SUCCESS
        assert "deploy" in backend.calls

    def test_deploy_without_tty_is_blocked(self, project, backend, capsys):
        assert main(["deploy"]) == ExitCode.BLOCKED
        assert "deploy" not in backend.calls
        assert "--auto-approve" in capsys.readouterr().out

    def test_destroy(self, project, backend, capsys):
        assert main(["destroy", "--auto-approve"]) == ExitCode.SUCCESS
        assert backend.calls == ["init", "plan", "destroy"]
        assert "1/1 resources applied" in capsys.readouterr().out

    def test_output(self, project, backend, capsys):
        assert main(["output"]) == ExitCode.SUCCESS
        assert backend.calls == ["init", "output"]
        assert "10.0.0.1" in capsys.readouterr().out


class TestConfigCommand:
    def test_init_writes_project_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["config", "init", "--app", "make synth", "--output", "build"]) == 0

        data = yaml.safe_load((tmp_path / PROJECT_CONFIG_FILE).read_text())
        assert data == {"app": "make synth", "output": "build"}

    def test_show(self, project, capsys):
        assert main(["config", "show"]) == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "terraform_binary" in out
        assert "(not set)" in out


class TestConfirmationPrompt:
    @pytest.mark.asyncio
    async def test_remote_plan_asks_to_start_new_run(self, monkeypatch):
        questions = []

        async def answer(message, default=False):
            questions.append(message)
            return True

        monkeypatch.setattr("stackpilot.cli.ux.confirm", answer)
        store = DeploymentStore()
        store.dispatch(
            Planned(Plan(plan_file="run-abc", resources=PLAN.resources, url="https://tfc/runs/run-abc"))
        )

        assert await _make_confirmation(store, auto_approve=False, interactive=True).wait() is True
        assert questions == ["Start a new remote run and apply it?"]

    @pytest.mark.asyncio
    async def test_local_plan_asks_to_perform_actions(self, monkeypatch):
        questions = []

        async def answer(message, default=False):
            questions.append(message)
            return True

        monkeypatch.setattr("stackpilot.cli.ux.confirm", answer)
        store = DeploymentStore()
        store.dispatch(Planned(PLAN))

        assert await _make_confirmation(store, auto_approve=False, interactive=True).wait() is True
        assert questions == ["Do you want to perform these actions?"]


def test_invalid_context_exits_with_config_error(tmp_path, monkeypatch):
    (tmp_path / PROJECT_CONFIG_FILE).write_text(yaml.dump({"app": "true", "context": ["env"]}))
    monkeypatch.chdir(tmp_path)
    assert main(["synth"]) == ExitCode.CONFIG_ERROR
