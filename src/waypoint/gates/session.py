"""SessionGate — tri-state view over the Auth collaborator.

``loading`` is a first-class status: the resolver must be able to tell
"not yet known" from "known signed out", otherwise it redirects before
the session has been restored.

Usage::

    gate = SessionGate(auth)
    gate.open()
    unsubscribe = gate.subscribe(lambda state: print(state.status))
    ...
    gate.close()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from waypoint.gates._listeners import Listeners

logger = logging.getLogger("waypoint.gates")


class SessionStatus(StrEnum):
    LOADING = "loading"
    SIGNED_OUT = "signed-out"
    SIGNED_IN = "signed-in"


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of the authentication session.

    ``user_id`` is set only when signed in.
    """

    status: SessionStatus = SessionStatus.LOADING
    email_verified: bool = False
    user_id: str | None = None

    @classmethod
    def signed_in(cls, user_id: str, *, email_verified: bool = True) -> SessionState:
        return cls(SessionStatus.SIGNED_IN, email_verified=email_verified, user_id=user_id)

    @classmethod
    def signed_out(cls) -> SessionState:
        return cls(SessionStatus.SIGNED_OUT)


LOADING_SESSION = SessionState()


@runtime_checkable
class AuthProvider(Protocol):
    """The external authentication service, consumed read-only."""

    def get_session(self) -> SessionState: ...

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]: ...


class SessionGate:
    """Subscribable, read-only view of the current session.

    Reports ``loading`` until ``open()`` has taken the provider's first
    snapshot. Listeners only hear about real changes.
    """

    __slots__ = ("_auth", "_listeners", "_state", "_unsubscribe")

    def __init__(self, auth: AuthProvider) -> None:
        self._auth = auth
        self._state: SessionState = LOADING_SESSION
        self._listeners: Listeners[SessionState] = Listeners()
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]:
        """Call *listener* with each new ``SessionState``. Returns an unsubscribe callable."""
        return self._listeners.add(listener)

    def open(self) -> None:
        """Start mirroring the Auth collaborator. Idempotent."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._auth.subscribe(self._update)
        self._update(self._auth.get_session())

    def close(self) -> None:
        """Stop mirroring. The last known state is kept."""
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None

    def _update(self, state: SessionState) -> None:
        if state == self._state:
            return
        logger.debug("Session %s -> %s", self._state.status, state.status)
        self._state = state
        self._listeners.notify(state)
