"""Holder for the current deployment state with a serialized dispatch."""

from __future__ import annotations

import threading
from typing import Callable

import structlog

from stackpilot.deploy.state import Action, DeploymentState, initial_state, transition

logger = structlog.get_logger()

Listener = Callable[[DeploymentState], None]


class DeploymentStore:
    """Single source of truth for one deployment session.

    ``dispatch`` may be called from any thread (backend output callbacks
    included); actions are applied one at a time under a lock. Listeners
    run after the lock is released, with the state their action produced.
    """

    def __init__(self, state: DeploymentState | None = None) -> None:
        self._state = state or initial_state()
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._history: list[str] = []

    @property
    def state(self) -> DeploymentState:
        return self._state

    @property
    def history(self) -> list[str]:
        """Kinds of all actions dispatched so far, in order."""
        return list(self._history)

    def dispatch(self, action: Action) -> DeploymentState:
        with self._lock:
            new_state = transition(self._state, action)
            self._state = new_state
            self._history.append(action.kind)
            listeners = list(self._listeners)

        logger.debug("action_dispatched", action=action.kind, status=new_state.status.value)
        for listener in listeners:
            try:
                listener(new_state)
            except Exception as exc:
                logger.warning("state_listener_failed", action=action.kind, err=str(exc), exc_info=True)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
