"""Deployment package: state machine, output parser and workflow orchestrator."""

from stackpilot.deploy.confirmation import Confirmation, ConfirmationAborted
from stackpilot.deploy.models import (
    ApplyState,
    OutputValue,
    Plan,
    PlannedResource,
    PlannedResourceAction,
    ResourceProgress,
    SynthesizedStack,
)
from stackpilot.deploy.parser import parse_output, strip_ansi
from stackpilot.deploy.state import DeploymentState, Status, merge_resources, transition
from stackpilot.deploy.store import DeploymentStore
from stackpilot.deploy.synth import Synthesizer
from stackpilot.deploy.workflow import DeploymentWorkflow

__all__ = [
    "ApplyState",
    "Confirmation",
    "ConfirmationAborted",
    "DeploymentState",
    "DeploymentStore",
    "DeploymentWorkflow",
    "OutputValue",
    "Plan",
    "PlannedResource",
    "PlannedResourceAction",
    "ResourceProgress",
    "Status",
    "SynthesizedStack",
    "Synthesizer",
    "merge_resources",
    "parse_output",
    "strip_ansi",
    "transition",
]
