"""In-memory collaborators for exercising waypoint without a backend.

Same protocols as production: the navigator and gates cannot tell these
apart from the real Auth service, profile store and router.

Usage::

    auth = FakeAuth(SessionState.signed_in("user-1"))
    store = MemoryOnboardingStore(cached=False, remote={"user-1": True})
    router = RecordingRouter()
    async with Navigator.build(auth, store, router) as navigator:
        navigator.open("/(app)/index")
        await navigator.refresh()
    assert router.targets[-1] == "/app"
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import anyio
from anyio.lowlevel import checkpoint

from waypoint.gates._listeners import Listeners
from waypoint.gates.session import LOADING_SESSION, SessionState
from waypoint.resolver import NavigationMode


class FakeAuth:
    """Auth collaborator whose session is set by the test."""

    __slots__ = ("_listeners", "_session")

    def __init__(self, session: SessionState = LOADING_SESSION) -> None:
        self._session = session
        self._listeners: Listeners[SessionState] = Listeners()

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def get_session(self) -> SessionState:
        return self._session

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]:
        return self._listeners.add(listener)

    def set_session(self, session: SessionState) -> None:
        """Change the session and notify subscribers, like a token refresh would."""
        self._session = session
        self._listeners.notify(session)


class MemoryOnboardingStore:
    """Onboarding collaborator backed by a dict.

    Attributes:
        cached: The local cached hint (``None`` when never written).
        remote: Per-user remote completion flags. Missing users read as
            not completed.
        error: When set, remote reads raise it.
        release: When set, remote reads wait for this event first, so a
            test can hold a fetch in flight.
        fetches: User ids passed to ``fetch_remote_completion``, in order.
    """

    __slots__ = ("cached", "error", "fetches", "release", "remote", "saves")

    def __init__(
        self,
        *,
        cached: bool | None = None,
        remote: dict[str, bool] | None = None,
        error: Exception | None = None,
        release: anyio.Event | None = None,
    ) -> None:
        self.cached = cached
        self.remote: dict[str, bool] = dict(remote or {})
        self.error = error
        self.release = release
        self.fetches: list[str] = []
        self.saves: list[tuple[str, bool]] = []

    def get_cached_completion(self) -> bool | None:
        return self.cached

    def set_cached_completion(self, completed: bool) -> None:
        self.cached = completed

    async def fetch_remote_completion(self, user_id: str) -> bool:
        self.fetches.append(user_id)
        if self.release is not None:
            await self.release.wait()
        else:
            await checkpoint()
        if self.error is not None:
            raise self.error
        return self.remote.get(user_id, False)

    async def save_remote_completion(self, user_id: str, completed: bool) -> None:
        await checkpoint()
        if self.error is not None:
            raise self.error
        self.remote[user_id] = completed
        self.saves.append((user_id, completed))


@dataclass(frozen=True, slots=True)
class NavigationCommand:
    """One call made to the router."""

    target: str
    mode: NavigationMode


@dataclass(slots=True)
class RecordingRouter:
    """Router collaborator that records every navigation command."""

    commands: list[NavigationCommand] = field(default_factory=list)

    @property
    def targets(self) -> list[str]:
        return [command.target for command in self.commands]

    @property
    def last(self) -> NavigationCommand | None:
        return self.commands[-1] if self.commands else None

    def navigate(self, target: str, mode: NavigationMode) -> None:
        self.commands.append(NavigationCommand(target, mode))
