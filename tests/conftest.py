"""Root test configuration."""

import logging

import pytest
import structlog
from stackpilot.config import get_settings
from stackpilot.deploy.models import (
    Plan,
    PlannedResource,
    PlannedResourceAction,
    SynthesizedStack,
)


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from STACKPILOT_* variables and the settings cache."""
    import os

    for name in list(os.environ):
        if name.startswith("STACKPILOT_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def stack_document():
    return '{"resource": {"aws_instance": {"web": {"ami": "ami-123"}}}}'


@pytest.fixture
def local_stack(tmp_path, stack_document):
    return SynthesizedStack(
        name="web",
        content=stack_document,
        working_directory=str(tmp_path),
    )


@pytest.fixture
def remote_stack(tmp_path):
    return SynthesizedStack(
        name="web",
        content=(
            '{"terraform": {"backend": {"remote": {"organization": "acme",'
            ' "workspaces": {"name": "web-prod"}}}}}'
        ),
        working_directory=str(tmp_path),
    )


@pytest.fixture
def sample_plan():
    return Plan(
        plan_file="/tmp/stack/plan",
        resources=(
            PlannedResource(id="aws_instance.web", action=PlannedResourceAction.CREATE),
            PlannedResource(id="aws_s3_bucket.logs", action=PlannedResourceAction.UPDATE),
            PlannedResource(id="aws_iam_role.unused", action=PlannedResourceAction.NO_OP),
        ),
    )


@pytest.fixture
def empty_plan():
    return Plan(
        plan_file="/tmp/stack/plan",
        resources=(
            PlannedResource(id="aws_iam_role.unused", action=PlannedResourceAction.NO_OP),
        ),
    )
