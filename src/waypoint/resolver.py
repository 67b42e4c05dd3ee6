"""Redirect resolution — the one place the decision table lives.

Given (canonical path, category, session, onboarding) the resolver
either stays or redirects to one of the three entry points. Rows are
evaluated top to bottom and the first match wins; the loading rows come
first so nothing redirects while asynchronous state is unresolved.

=========== ============ ============================== ====================
Session     Onboarding   Category                       Decision
=========== ============ ============================== ====================
loading     any          any                            stay (loading)
signed-out  any          auth                           stay
signed-out  any          any other                      redirect sign-in
signed-in   loading      any                            stay (loading)
signed-in   incomplete   onboarding                     stay
signed-in   incomplete   any other                      redirect onboarding
signed-in   complete     app, debug                     stay
signed-in   complete     auth, onboarding               redirect app-home
signed-in   complete     unknown                        redirect app-home
=========== ============ ============================== ====================

Loop guard:
    The resolver remembers the last few redirects it emitted together
    with the state that triggered them. A redirect identical to the one
    immediately before it, for the same (path, session, onboarding)
    fingerprint and inside the rolling window, is suppressed and
    reported as ``stay``.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from time import monotonic

from waypoint.config import WaypointConfig
from waypoint.errors import ConfigurationError
from waypoint.gates.onboarding import OnboardingState, OnboardingStatus
from waypoint.gates.session import SessionState, SessionStatus
from waypoint.routing.categories import RouteCategory

logger = logging.getLogger("waypoint.resolver")

REASON_SESSION_LOADING = "session-loading"
REASON_ONBOARDING_LOADING = "onboarding-loading"
REASON_LOOP_SUPPRESSED = "redirect-loop-suppressed"


class Action(StrEnum):
    STAY = "stay"
    REDIRECT = "redirect"


class NavigationMode(StrEnum):
    PUSH = "push"
    REPLACE = "replace"


class EntryPoint(StrEnum):
    """The fixed set of redirect targets, resolved to paths via config."""

    SIGN_IN = "sign-in"
    ONBOARDING = "onboarding-start"
    APP_HOME = "app-home"


@dataclass(frozen=True, slots=True)
class RedirectDecision:
    """Outcome of one resolution. Computed fresh, never cached."""

    action: Action
    target: str | None = None
    mode: NavigationMode = NavigationMode.PUSH
    reason: str = ""

    @classmethod
    def stay(cls, reason: str) -> RedirectDecision:
        return cls(Action.STAY, reason=reason)

    @classmethod
    def redirect(cls, target: str, reason: str) -> RedirectDecision:
        return cls(Action.REDIRECT, target=target, mode=NavigationMode.REPLACE, reason=reason)

    @property
    def is_redirect(self) -> bool:
        return self.action is Action.REDIRECT

    @property
    def is_loading(self) -> bool:
        return self.reason in (REASON_SESSION_LOADING, REASON_ONBOARDING_LOADING)

    @property
    def is_suppressed(self) -> bool:
        return self.reason == REASON_LOOP_SUPPRESSED


@dataclass(frozen=True, slots=True)
class _Rule:
    """One row of the decision table. ``None`` matches anything."""

    session: SessionStatus
    onboarding: frozenset[OnboardingStatus] | None
    categories: frozenset[RouteCategory] | None
    target: EntryPoint | None
    reason: str

    def matches(
        self,
        session: SessionStatus,
        onboarding: OnboardingStatus,
        category: RouteCategory,
    ) -> bool:
        if session is not self.session:
            return False
        if self.onboarding is not None and onboarding not in self.onboarding:
            return False
        return self.categories is None or category in self.categories


_S = SessionStatus
_O = OnboardingStatus
_C = RouteCategory

DECISION_TABLE: tuple[_Rule, ...] = (
    _Rule(_S.LOADING, None, None, None, REASON_SESSION_LOADING),
    _Rule(_S.SIGNED_OUT, None, frozenset({_C.AUTH}), None, "signed-out-on-auth"),
    _Rule(_S.SIGNED_OUT, None, None, EntryPoint.SIGN_IN, "signed-out"),
    _Rule(_S.SIGNED_IN, frozenset({_O.LOADING}), None, None, REASON_ONBOARDING_LOADING),
    _Rule(_S.SIGNED_IN, frozenset({_O.INCOMPLETE}), frozenset({_C.ONBOARDING}), None, "onboarding-in-progress"),
    _Rule(_S.SIGNED_IN, frozenset({_O.INCOMPLETE}), None, EntryPoint.ONBOARDING, "onboarding-incomplete"),
    _Rule(_S.SIGNED_IN, frozenset({_O.COMPLETE}), frozenset({_C.APP, _C.DEBUG}), None, "ready"),
    _Rule(_S.SIGNED_IN, frozenset({_O.COMPLETE}), frozenset({_C.AUTH, _C.ONBOARDING}), EntryPoint.APP_HOME, "already-onboarded"),
    _Rule(_S.SIGNED_IN, frozenset({_O.COMPLETE}), frozenset({_C.UNKNOWN}), EntryPoint.APP_HOME, "unknown-route"),
)

type Fingerprint = tuple[str, SessionStatus, OnboardingStatus]


class LoopGuard:
    """Rolling history of emitted redirects.

    Keeps the last ``history`` redirects; entries older than
    ``window_seconds`` are forgotten.
    """

    __slots__ = ("_clock", "_entries", "_window")

    def __init__(
        self,
        *,
        history: int = 4,
        window_seconds: float = 2.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        if history < 2:
            msg = f"Loop guard history must hold at least 2 redirects, got {history}."
            raise ConfigurationError(msg)
        if window_seconds <= 0:
            msg = f"Loop guard window must be positive, got {window_seconds!r}."
            raise ConfigurationError(msg)
        self._window = window_seconds
        self._clock = clock
        self._entries: deque[tuple[str, Fingerprint, float]] = deque(maxlen=history)

    @property
    def recent(self) -> tuple[str, ...]:
        """Targets still inside the window, oldest first."""
        self._expire(self._clock())
        return tuple(target for target, _, _ in self._entries)

    def is_repeat(self, target: str, fingerprint: Fingerprint) -> bool:
        """True if *target* repeats the previous redirect for the same state."""
        self._expire(self._clock())
        if not self._entries:
            return False
        last_target, last_fingerprint, _ = self._entries[-1]
        return last_target == target and last_fingerprint == fingerprint

    def record(self, target: str, fingerprint: Fingerprint) -> None:
        self._entries.append((target, fingerprint, self._clock()))

    def clear(self) -> None:
        self._entries.clear()

    def _expire(self, now: float) -> None:
        while self._entries and now - self._entries[0][2] > self._window:
            self._entries.popleft()


class RedirectResolver:
    """Evaluates the decision table and guards against redirect loops.

    Usage::

        resolver = RedirectResolver(config)
        decision = resolver.decide("/app", RouteCategory.APP, session, onboarding)
        if decision.is_redirect:
            router.navigate(decision.target, decision.mode)
    """

    __slots__ = ("_guard", "_targets")

    def __init__(
        self,
        config: WaypointConfig | None = None,
        *,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        config = config or WaypointConfig()
        self._targets: dict[EntryPoint, str] = {
            EntryPoint.SIGN_IN: config.sign_in_path,
            EntryPoint.ONBOARDING: config.onboarding_path,
            EntryPoint.APP_HOME: config.app_home_path,
        }
        self._guard = LoopGuard(
            history=config.loop_history,
            window_seconds=config.loop_window_seconds,
            clock=clock,
        )

    @property
    def guard(self) -> LoopGuard:
        return self._guard

    def target_for(self, entry_point: EntryPoint) -> str:
        return self._targets[entry_point]

    def decide(
        self,
        path: str,
        category: RouteCategory,
        session: SessionState,
        onboarding: OnboardingState,
    ) -> RedirectDecision | None:
        """Decide whether to stay on *path* or redirect.

        Returns ``None`` only when no table row matches, which a
        well-formed state cannot produce; callers hand that case to the
        fallback handler.
        """
        for rule in DECISION_TABLE:
            if rule.matches(session.status, onboarding.status, category):
                break
        else:
            return None

        if rule.target is None:
            return RedirectDecision.stay(rule.reason)

        target = self._targets[rule.target]
        fingerprint: Fingerprint = (path, session.status, onboarding.status)
        if self._guard.is_repeat(target, fingerprint):
            logger.warning(
                "Suppressed repeated redirect %s -> %s (%s, %s/%s)",
                path,
                target,
                rule.reason,
                session.status,
                onboarding.status,
            )
            return RedirectDecision.stay(REASON_LOOP_SUPPRESSED)

        self._guard.record(target, fingerprint)
        logger.debug("Redirect %s -> %s (%s)", path, target, rule.reason)
        return RedirectDecision.redirect(target, rule.reason)
