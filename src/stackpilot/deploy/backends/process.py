"""Async subprocess helper shared by the backends and the synthesizer."""

from __future__ import annotations

import asyncio
import contextlib
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

import structlog

logger = structlog.get_logger()

OutputCallback = Callable[[bytes], None]

READ_CHUNK_SIZE = 65536


@dataclass
class CommandResult:
    """Captured result of a finished process."""

    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def error_message(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return detail or f"{' '.join(self.args)} exited with code {self.returncode}"


async def _pump(
    stream: asyncio.StreamReader,
    sink: list[bytes],
    on_output: OutputCallback | None,
) -> None:
    # Reads fixed-size chunks and splits lines itself, so a line is never
    # bounded by the stream reader's buffer limit.
    pending = b""
    while True:
        data = await stream.read(READ_CHUNK_SIZE)
        if not data:
            break
        sink.append(data)
        if on_output is None:
            continue
        lines = (pending + data).split(b"\n")
        pending = lines.pop()
        for line in lines:
            on_output(line + b"\n")
    if pending and on_output is not None:
        on_output(pending)


async def run_command(
    args: Sequence[str],
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    on_output: OutputCallback | None = None,
    shell: bool = False,
) -> CommandResult:
    """Run a command to completion, streaming stdout lines to ``on_output``.

    With ``shell=True`` the single element of ``args`` is passed to the
    shell as-is.
    """
    process_env = {**os.environ, **env} if env else None
    logger.debug("command_started", args=list(args), cwd=str(cwd) if cwd else None)

    if shell:
        process = await asyncio.create_subprocess_shell(
            args[0],
            cwd=cwd,
            env=process_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    else:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=process_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    stdout: list[bytes] = []
    stderr: list[bytes] = []
    try:
        await asyncio.gather(
            _pump(process.stdout, stdout, on_output),  # type: ignore[arg-type]
            _pump(process.stderr, stderr, None),  # type: ignore[arg-type]
        )
        returncode = await process.wait()
    finally:
        if process.returncode is None:
            logger.warning("command_killed", args=list(args))
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    logger.debug("command_finished", args=list(args), returncode=returncode)
    return CommandResult(
        args=list(args),
        returncode=returncode,
        stdout=b"".join(stdout).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr).decode("utf-8", errors="replace"),
    )
