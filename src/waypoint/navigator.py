"""Navigator — drives resolution from the client's event loop.

Resolution is triggered by three kinds of events:

1. A raw path arriving (cold start, OS deep link, in-app request)
2. A session change
3. An onboarding change

Paths that arrive while either gate is loading are buffered; a newer
path replaces an older buffered one, so only the latest path can ever
issue a navigation command. Once both gates are settled, resolution runs
synchronously to completion before any command is sent to the router.

Usage::

    navigator = Navigator.build(auth, store, router, config=config)
    async with navigator:
        navigator.open(RawPath(url, PathSource.DEEP_LINK))
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Protocol, runtime_checkable

import anyio
from anyio.abc import TaskGroup

from waypoint.config import WaypointConfig
from waypoint.fallback import FallbackHandler
from waypoint.gates.onboarding import (
    OnboardingGate,
    OnboardingSource,
    OnboardingState,
    OnboardingStatus,
    OnboardingStore,
)
from waypoint.gates.session import AuthProvider, SessionGate, SessionState, SessionStatus
from waypoint.resolver import NavigationMode, RedirectDecision, RedirectResolver
from waypoint.routing.categories import RouteClassifier
from waypoint.routing.paths import PathSource, RawPath, normalize, route_group

logger = logging.getLogger("waypoint.navigator")


@runtime_checkable
class Router(Protocol):
    """The client's router. Waypoint never renders screens itself."""

    def navigate(self, target: str, mode: NavigationMode) -> None: ...


class Navigator:
    """Connects the gates, the resolver and the router.

    Must be entered (``async with``) before paths are opened; entering
    starts the session mirror and the first onboarding check.
    """

    __slots__ = (
        "_classifier",
        "_config",
        "_fallback",
        "_last_decision",
        "_onboarding",
        "_pending",
        "_resolver",
        "_route",
        "_route_group",
        "_router",
        "_session",
        "_subscriptions",
        "_task_group",
        "not_found",
    )

    def __init__(
        self,
        session: SessionGate,
        onboarding: OnboardingGate,
        router: Router,
        *,
        config: WaypointConfig | None = None,
        classifier: RouteClassifier | None = None,
        resolver: RedirectResolver | None = None,
        fallback: FallbackHandler | None = None,
    ) -> None:
        self._config = config or WaypointConfig()
        self._session = session
        self._onboarding = onboarding
        self._router = router
        self._classifier = classifier or RouteClassifier(self._config)
        self._resolver = resolver or RedirectResolver(self._config)
        self._fallback = fallback or FallbackHandler(self._config)
        self._pending: RawPath | None = None
        self._route: str | None = None
        self._route_group: str | None = None
        self._last_decision: RedirectDecision | None = None
        self._subscriptions: list[Callable[[], None]] = []
        self._task_group: TaskGroup | None = None
        # Rendered not-found surface, set when resolution produced no decision
        self.not_found: str | None = None

    @classmethod
    def build(
        cls,
        auth: AuthProvider,
        store: OnboardingStore,
        router: Router,
        *,
        config: WaypointConfig | None = None,
    ) -> Navigator:
        """Wire gates and resolver from the external collaborators."""
        config = config or WaypointConfig()
        return cls(
            SessionGate(auth),
            OnboardingGate(store, timeout=config.onboarding_fetch_timeout),
            router,
            config=config,
        )

    # -- State ------------------------------------------------------------

    @property
    def route(self) -> str | None:
        """The canonical path the client is on, once known."""
        return self._route

    @property
    def pending(self) -> RawPath | None:
        """The buffered raw path waiting for the gates to settle."""
        return self._pending

    @property
    def last_decision(self) -> RedirectDecision | None:
        return self._last_decision

    @property
    def loading(self) -> bool:
        """True while session or onboarding state blocks resolution."""
        session = self._session.state
        if session.status is SessionStatus.LOADING:
            return True
        return (
            session.status is SessionStatus.SIGNED_IN
            and self._onboarding.state.status is OnboardingStatus.LOADING
        )

    # -- Lifecycle --------------------------------------------------------

    async def __aenter__(self) -> Navigator:
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        self._subscriptions = [
            self._session.subscribe(self._on_session),
            self._onboarding.subscribe(self._on_onboarding),
        ]
        before = self._session.state
        self._session.open()
        if self._session.state is before:
            # No change notification fired, so bind and resolve here
            self._bind(before)
            self._resolve()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        self._session.close()
        task_group, self._task_group = self._task_group, None
        if task_group is None:
            return None
        task_group.cancel_scope.cancel()
        return await task_group.__aexit__(exc_type, exc, tb)

    # -- Events -----------------------------------------------------------

    def open(self, raw: RawPath | str) -> None:
        """Handle an incoming path. Replaces any path still buffered."""
        if isinstance(raw, str):
            raw = RawPath(raw)
        if self._pending is not None:
            logger.debug("Superseding buffered path %r with %r", self._pending.text, raw.text)
        self._pending = raw
        self._resolve()

    async def refresh(self) -> OnboardingState:
        """Explicitly re-check onboarding (retries after a failed fetch)."""
        return await self._onboarding.check()

    def recover(self) -> RedirectDecision:
        """Take the not-found surface's single action: go to app-home."""
        decision = self._fallback.recover()
        self.not_found = None
        self._last_decision = decision
        self._issue(decision.target or self._config.app_home_path, decision.mode)
        return decision

    def _on_session(self, state: SessionState) -> None:
        self._bind(state)
        self._resolve()

    def _on_onboarding(self, _state: OnboardingState) -> None:
        self._resolve()

    def _bind(self, state: SessionState) -> None:
        """Point the onboarding gate at the session's user."""
        if state.status is SessionStatus.SIGNED_IN and state.user_id is None:
            logger.warning("Signed-in session has no user id; treating onboarding as incomplete")
            self._onboarding.bind_user(None)
            self._onboarding.settle()
        elif state.status is SessionStatus.SIGNED_IN:
            self._onboarding.bind_user(state.user_id)
            if (
                self._onboarding.state.source is not OnboardingSource.REMOTE
                and not self._onboarding.fetching
            ):
                self._start_check()
        elif state.status is SessionStatus.SIGNED_OUT:
            self._onboarding.bind_user(None)

    def _start_check(self) -> None:
        if self._task_group is None:
            return
        self._task_group.start_soon(self._onboarding.check)

    # -- Resolution -------------------------------------------------------

    def _resolve(self) -> None:
        raw = self._pending
        if raw is not None:
            path = normalize(
                raw,
                marker=self._config.dev_marker,
                max_passes=self._config.max_normalize_passes,
            )
            group = route_group(raw)
        elif self._route is not None:
            path, group = self._route, self._route_group
        else:
            return

        category = self._classifier.classify(path, group=group)
        decision = self._resolver.decide(
            path, category, self._session.state, self._onboarding.state
        )

        if decision is None:
            self._pending = None
            self.not_found = self._fallback.render(path)
            return

        if decision.is_loading:
            logger.debug("Holding %s until state settles (%s)", path, decision.reason)
            return

        self._pending = None
        self._last_decision = decision
        self.not_found = None

        if decision.is_redirect:
            target = decision.target or self._config.app_home_path
            if target != self._route:
                self._issue(target, decision.mode)
            return

        if decision.is_suppressed or path == self._route:
            return

        if raw is None:
            return
        if raw.source is PathSource.IN_APP:
            self._issue(path, NavigationMode.PUSH, group)
        elif path != raw.text:
            # The router is showing the raw form; swap in the canonical one
            self._issue(path, NavigationMode.REPLACE, group)
        else:
            self._route, self._route_group = path, group

    def _issue(self, target: str, mode: NavigationMode, group: str | None = None) -> None:
        logger.info("Navigate %s (%s)", target, mode)
        try:
            self._router.navigate(target, mode)
        except Exception:
            # The client stays where it was
            logger.exception("Router failed to navigate to %s", target)
            return
        self._route, self._route_group = target, group
