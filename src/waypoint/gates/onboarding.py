"""OnboardingGate — tri-state view of onboarding completion.

Reconciles two sources:

- a local cached hint, readable synchronously at cold start
- the authoritative remote value, fetched over the network

Reconciliation:
    1. Binding a user serves the cached hint (``source=cache``), or
       ``loading`` when there is none.
    2. ``check()`` fetches the remote value once per session. Concurrent
       callers share the in-flight fetch. The fetch is bounded by a
       timeout.
    3. A successful fetch overwrites both the in-memory state and the
       cache (``source=remote``) and notifies listeners. From then on
       the remote value wins for the rest of the session.
    4. A failed or timed-out fetch keeps the cached value and leaves the
       remote value unfetched, so the next ``check()`` retries. With no
       cached value the gate settles at ``incomplete`` rather than
       blocking navigation.
    5. Signing out resets to ``loading`` and stops trusting the cache
       until a remote read succeeds for the next user.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from time import time
from typing import Protocol, runtime_checkable

import anyio

from waypoint.errors import ConfigurationError, OnboardingError
from waypoint.gates._listeners import Listeners

logger = logging.getLogger("waypoint.gates")


class OnboardingStatus(StrEnum):
    LOADING = "loading"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class OnboardingSource(StrEnum):
    CACHE = "cache"
    REMOTE = "remote"


@dataclass(frozen=True, slots=True)
class OnboardingState:
    """Snapshot of onboarding completion for the bound user."""

    status: OnboardingStatus = OnboardingStatus.LOADING
    source: OnboardingSource = OnboardingSource.CACHE
    last_checked_at: float | None = None


LOADING_ONBOARDING = OnboardingState()


@runtime_checkable
class OnboardingStore(Protocol):
    """Local cache plus remote profile record holding the completion flag."""

    def get_cached_completion(self) -> bool | None: ...

    def set_cached_completion(self, completed: bool) -> None: ...

    async def fetch_remote_completion(self, user_id: str) -> bool: ...

    async def save_remote_completion(self, user_id: str, completed: bool) -> None: ...


def _status_for(completed: bool) -> OnboardingStatus:
    return OnboardingStatus.COMPLETE if completed else OnboardingStatus.INCOMPLETE


class OnboardingGate:
    """Subscribable view of onboarding completion for the signed-in user.

    Usage::

        gate = OnboardingGate(store, timeout=5.0)
        gate.bind_user("user-1")   # cached hint, if any
        await gate.check()         # authoritative remote value

    The cache is process-wide; this gate is its only writer.
    """

    __slots__ = (
        "_cache_trusted",
        "_clock",
        "_generation",
        "_inflight",
        "_listeners",
        "_state",
        "_store",
        "_timeout",
        "_user_id",
    )

    def __init__(
        self,
        store: OnboardingStore,
        *,
        timeout: float = 10.0,
        clock: Callable[[], float] = time,
    ) -> None:
        if timeout <= 0:
            msg = f"Onboarding fetch timeout must be positive, got {timeout!r}."
            raise ConfigurationError(msg)
        self._store = store
        self._timeout = timeout
        self._clock = clock
        self._state: OnboardingState = LOADING_ONBOARDING
        self._listeners: Listeners[OnboardingState] = Listeners()
        self._user_id: str | None = None
        # Bumped whenever an in-flight fetch must no longer land
        self._generation = 0
        self._inflight: anyio.Event | None = None
        self._cache_trusted = True

    @property
    def state(self) -> OnboardingState:
        return self._state

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def fetching(self) -> bool:
        """True while a remote fetch is in flight."""
        return self._inflight is not None

    def subscribe(self, listener: Callable[[OnboardingState], None]) -> Callable[[], None]:
        """Call *listener* when status or source changes. Returns an unsubscribe callable."""
        return self._listeners.add(listener)

    def bind_user(self, user_id: str | None) -> None:
        """Track *user_id*'s onboarding state. ``None`` means signed out."""
        if user_id == self._user_id:
            return

        if self._user_id is not None:
            # The cache may hold the previous user's answer
            self._cache_trusted = False
        self._user_id = user_id
        self._generation += 1
        self._inflight = None

        if user_id is None:
            self._set(LOADING_ONBOARDING)
            return

        cached = self._store.get_cached_completion() if self._cache_trusted else None
        if cached is None:
            self._set(LOADING_ONBOARDING)
        else:
            self._set(OnboardingState(_status_for(cached), OnboardingSource.CACHE))

    async def check(self) -> OnboardingState:
        """Reconcile with the remote value and return the resulting state.

        Returns immediately when no user is bound or the remote value is
        already known. Never raises for network failures.
        """
        user_id = self._user_id
        if user_id is None or self._state.source is OnboardingSource.REMOTE:
            return self._state

        if self._inflight is not None:
            await self._inflight.wait()
            return self._state

        done = anyio.Event()
        self._inflight = done
        try:
            await self._fetch(user_id, self._generation)
        finally:
            if self._inflight is done:
                self._inflight = None
            done.set()
        return self._state

    async def complete(self) -> OnboardingState:
        """Mark onboarding complete remotely and locally.

        Raises ``OnboardingError`` if no user is bound. Errors from the
        store propagate so the calling screen can report them.
        """
        user_id = self._user_id
        if user_id is None:
            msg = "Cannot complete onboarding without a signed-in user."
            raise OnboardingError(msg)

        generation = self._generation
        await self._store.save_remote_completion(user_id, True)
        if generation != self._generation:
            return self._state

        # A fetch still in flight predates this write
        self._generation += 1
        self._inflight = None
        self._write_cache(True)
        self._set(OnboardingState(OnboardingStatus.COMPLETE, OnboardingSource.REMOTE, self._clock()))
        return self._state

    async def _fetch(self, user_id: str, generation: int) -> None:
        completed: bool | None = None
        try:
            with anyio.move_on_after(self._timeout) as scope:
                completed = await self._store.fetch_remote_completion(user_id)
        except Exception as exc:
            if generation == self._generation:
                logger.warning("Onboarding status fetch failed for user %s: %s", user_id, exc)
                self._fall_back()
            return

        if generation != self._generation:
            logger.debug("Discarding onboarding status for superseded user %s", user_id)
            return

        if scope.cancelled_caught or completed is None:
            logger.warning(
                "Onboarding status fetch for user %s timed out after %.1fs",
                user_id,
                self._timeout,
            )
            self._fall_back()
            return

        completed = bool(completed)
        self._write_cache(completed)
        self._set(OnboardingState(_status_for(completed), OnboardingSource.REMOTE, self._clock()))

    def settle(self) -> OnboardingState:
        """Stop waiting without a fetch: ``loading`` becomes ``incomplete``.

        For a signed-in session that carries no user id, where there is
        nothing to fetch.
        """
        self._fall_back()
        return self._state

    def _write_cache(self, completed: bool) -> None:
        """Write the cached hint. The remote value stands even if this fails."""
        try:
            self._store.set_cached_completion(completed)
        except Exception as exc:
            logger.warning("Could not cache onboarding status: %s", exc)
            self._cache_trusted = False
        else:
            self._cache_trusted = True

    def _fall_back(self) -> None:
        """Keep serving the cached value; settle ``loading`` at ``incomplete``."""
        now = self._clock()
        if self._state.status is OnboardingStatus.LOADING:
            self._set(OnboardingState(OnboardingStatus.INCOMPLETE, OnboardingSource.CACHE, now))
        else:
            self._set(dataclasses.replace(self._state, last_checked_at=now))

    def _set(self, state: OnboardingState) -> None:
        previous = self._state
        self._state = state
        if (previous.status, previous.source) != (state.status, state.source):
            logger.debug(
                "Onboarding %s/%s -> %s/%s",
                previous.status,
                previous.source,
                state.status,
                state.source,
            )
            self._listeners.notify(state)
