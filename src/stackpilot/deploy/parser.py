"""Translate raw terraform apply/destroy output into resource progress records."""

from __future__ import annotations

import re

from stackpilot.deploy.models import ApplyState, PlannedResourceAction, ResourceProgress

ANSI_PATTERN = re.compile(
    r"[\u001b\u009b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]"
)
RESOURCE_PATTERN = re.compile(r"^([a-zA-Z\d_.]+):")
OUTPUTS_PATTERN = re.compile(r"^Outputs:")
DATA_SOURCE_PATTERN = re.compile(r"^data\..*")

# Order matters: the first pattern found in a line wins.
STATE_PATTERNS: tuple[tuple[re.Pattern[str], ApplyState], ...] = (
    (re.compile(r"Creating..."), ApplyState.CREATING),
    (re.compile(r"Creation complete"), ApplyState.CREATED),
    (re.compile(r"Modifying..."), ApplyState.UPDATING),
    (re.compile(r"Modifications complete"), ApplyState.UPDATED),
    (re.compile(r"Destroying..."), ApplyState.DESTROYING),
    (re.compile(r"Destruction complete"), ApplyState.DESTROYED),
)


def strip_ansi(text: str) -> str:
    """Remove terminal color and cursor control sequences."""
    return ANSI_PATTERN.sub("", text)


def classify_line(line: str) -> ApplyState:
    """Return the apply state a line announces, or WAITING."""
    for pattern, state in STATE_PATTERNS:
        if pattern.search(line):
            return state
    return ApplyState.WAITING


def parse_line(line: str) -> ResourceProgress | None:
    if OUTPUTS_PATTERN.match(line) or DATA_SOURCE_PATTERN.match(line):
        return None

    match = RESOURCE_PATTERN.match(line)
    if match is None:
        return None

    # Every record is tagged CREATE; the planned action is not derived from the line.
    return ResourceProgress(
        id=match.group(1),
        action=PlannedResourceAction.CREATE,
        apply_state=classify_line(line),
    )


def parse_output(chunk: str | bytes) -> list[ResourceProgress]:
    """Parse a chunk of process output into resource progress records.

    Never raises: lines that do not start with a resource address are
    ignored, so arbitrary output degrades to an empty result.
    """
    if isinstance(chunk, bytes):
        chunk = chunk.decode("utf-8", errors="replace")

    records = []
    for line in strip_ansi(chunk).split("\n"):
        record = parse_line(line)
        if record is not None:
            records.append(record)
    return records
