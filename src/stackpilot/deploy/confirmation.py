"""External yes/no signal that gates apply and destroy."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from stackpilot.core.errors import BlockedError

logger = structlog.get_logger()


class ConfirmationAborted(BlockedError):
    """Raised when the user declines to apply or destroy."""


def _raise_aborted() -> None:
    raise ConfirmationAborted("Confirmation declined, aborting")


class Confirmation:
    """Boolean confirmation signal.

    Starts approved when ``auto_approve`` is set, otherwise unresolved.
    When a ``prompt`` coroutine function is given, ``wait`` asks it for the
    answer instead of waiting for someone else to call ``resolve``.
    ``resolve(False)`` calls ``on_abort`` right away; the default abort
    raises ``ConfirmationAborted`` in the resolving caller.
    """

    def __init__(
        self,
        auto_approve: bool = False,
        on_abort: Callable[[], None] = _raise_aborted,
        prompt: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        self._value: bool | None = True if auto_approve else None
        self._on_abort = on_abort
        self._prompt = prompt
        self._event: asyncio.Event | None = None

    @property
    def confirmed(self) -> bool | None:
        return self._value

    @property
    def is_confirmed(self) -> bool:
        return self._value is True

    def resolve(self, value: bool) -> None:
        self._value = value
        if self._event is not None:
            self._event.set()
        if value is False:
            logger.info("confirmation_declined")
            self._on_abort()
        else:
            logger.info("confirmation_accepted")

    async def wait(self) -> bool:
        """Block until the signal resolves; returns its value."""
        if self._value is not None:
            return self._value
        if self._prompt is not None:
            self.resolve(bool(await self._prompt()))
            return bool(self._value)
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()
        return bool(self._value)
