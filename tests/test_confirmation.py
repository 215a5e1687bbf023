"""Tests for the apply/destroy confirmation signal."""

import asyncio

import pytest
from stackpilot.core.errors import BlockedError, ExitCode
from stackpilot.deploy.confirmation import Confirmation, ConfirmationAborted


class TestConfirmation:
    def test_auto_approve_is_confirmed(self):
        confirmation = Confirmation(auto_approve=True)
        assert confirmation.confirmed is True
        assert confirmation.is_confirmed

    def test_default_is_unresolved(self):
        confirmation = Confirmation()
        assert confirmation.confirmed is None
        assert not confirmation.is_confirmed

    def test_decline_calls_abort(self):
        aborted = []
        confirmation = Confirmation(on_abort=lambda: aborted.append(True))
        confirmation.resolve(False)
        assert aborted == [True]
        assert confirmation.confirmed is False

    def test_default_abort_raises(self):
        confirmation = Confirmation()
        with pytest.raises(ConfirmationAborted):
            confirmation.resolve(False)

    def test_aborted_is_blocked_error(self):
        assert issubclass(ConfirmationAborted, BlockedError)
        assert ConfirmationAborted.exit_code == ExitCode.BLOCKED

    @pytest.mark.asyncio
    async def test_wait_returns_immediately_when_resolved(self):
        assert await Confirmation(auto_approve=True).wait() is True

    @pytest.mark.asyncio
    async def test_wait_unblocks_on_resolve(self):
        confirmation = Confirmation()
        waiter = asyncio.create_task(confirmation.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        confirmation.resolve(True)
        assert await asyncio.wait_for(waiter, timeout=1) is True

    @pytest.mark.asyncio
    async def test_wait_sees_decline_from_other_task(self):
        confirmation = Confirmation(on_abort=lambda: None)
        waiter = asyncio.create_task(confirmation.wait())
        await asyncio.sleep(0)
        confirmation.resolve(False)
        assert await asyncio.wait_for(waiter, timeout=1) is False

    @pytest.mark.asyncio
    async def test_prompt_answers(self):
        async def yes():
            return True

        assert await Confirmation(prompt=yes).wait() is True

    @pytest.mark.asyncio
    async def test_prompt_decline_aborts(self):
        async def no():
            return False

        with pytest.raises(ConfirmationAborted):
            await Confirmation(prompt=no).wait()
