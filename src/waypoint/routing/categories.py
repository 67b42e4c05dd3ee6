"""Route classification — canonical path to a coarse route category.

Precedence:

1. A screen defined in more than one group, resolved by the group the
   raw path named (``/(onboarding)/notifications``)
2. Exact match against the known-screen table (entry points included)
3. First-segment prefix match: ``auth``, ``onboarding``, ``app``, ``debug``
4. ``UNKNOWN``

Debug routes only exist in development builds; in production they
classify as ``UNKNOWN``.
"""

from collections.abc import Iterable, Mapping
from enum import StrEnum
from types import MappingProxyType

from waypoint.config import WaypointConfig
from waypoint.errors import ConfigurationError
from waypoint.routing.paths import is_canonical


class RouteCategory(StrEnum):
    """Coarse category of a canonical path."""

    AUTH = "auth"
    ONBOARDING = "onboarding"
    APP = "app"
    DEBUG = "debug"
    UNKNOWN = "unknown"


# Screens from the grouped route tree surface at top level once their
# "(group)" segment is stripped, so they need an exact entry.
SCREENS: Mapping[str, RouteCategory] = MappingProxyType({
    # (app)
    "/index": RouteCategory.APP,
    "/journal": RouteCategory.APP,
    "/insights": RouteCategory.APP,
    "/achievements": RouteCategory.APP,
    "/settings": RouteCategory.APP,
    "/check-in": RouteCategory.APP,
    "/notifications": RouteCategory.APP,
    "/entry": RouteCategory.APP,
    # (auth)
    "/sign-in": RouteCategory.AUTH,
    "/sign-up": RouteCategory.AUTH,
    "/forgot-password": RouteCategory.AUTH,
    "/reset-password": RouteCategory.AUTH,
    "/verify-email": RouteCategory.AUTH,
    "/manual-verification": RouteCategory.AUTH,
    "/confirm-email": RouteCategory.AUTH,
    # (onboarding)
    "/welcome": RouteCategory.ONBOARDING,
    "/personalize": RouteCategory.ONBOARDING,
    "/purpose": RouteCategory.ONBOARDING,
    "/setup": RouteCategory.ONBOARDING,
    "/challenges": RouteCategory.ONBOARDING,
    "/first-check-in": RouteCategory.ONBOARDING,
    "/complete": RouteCategory.ONBOARDING,
    # development-only screens
    "/debug-onboarding": RouteCategory.DEBUG,
    "/test": RouteCategory.DEBUG,
})

# Screens defined in more than one group. Without a group hint they
# classify by their SCREENS entry.
SHARED_SCREENS: Mapping[str, frozenset[RouteCategory]] = MappingProxyType({
    "/index": frozenset({RouteCategory.APP, RouteCategory.ONBOARDING}),
    "/notifications": frozenset({RouteCategory.APP, RouteCategory.ONBOARDING}),
})

_GROUPS: Mapping[str, RouteCategory] = MappingProxyType({
    "app": RouteCategory.APP,
    "auth": RouteCategory.AUTH,
    "onboarding": RouteCategory.ONBOARDING,
})

_PREFIXES: Mapping[str, RouteCategory] = MappingProxyType({
    "auth": RouteCategory.AUTH,
    "onboarding": RouteCategory.ONBOARDING,
    "app": RouteCategory.APP,
    "debug": RouteCategory.DEBUG,
})


class RouteClassifier:
    """Total mapping from canonical path to ``RouteCategory``.

    Usage::

        classifier = RouteClassifier(WaypointConfig(dev_build=True))
        classifier.classify("/debug/app-info")  # RouteCategory.DEBUG
        classifier.classify("/nowhere")         # RouteCategory.UNKNOWN

    Raises ``ConfigurationError`` at construction if an entry point is
    not canonical or the entry points are not distinct.
    """

    __slots__ = ("_dev_build", "_exact", "_shared")

    def __init__(
        self,
        config: WaypointConfig | None = None,
        screens: Mapping[str, RouteCategory] | Iterable[tuple[str, RouteCategory]] = SCREENS,
        shared: Mapping[str, frozenset[RouteCategory]] = SHARED_SCREENS,
    ) -> None:
        config = config or WaypointConfig()
        self._dev_build = config.dev_build

        exact = dict(screens)
        exact.update({
            config.sign_in_path: RouteCategory.AUTH,
            config.onboarding_path: RouteCategory.ONBOARDING,
            config.app_home_path: RouteCategory.APP,
        })
        for path in exact:
            if not is_canonical(path, marker=config.dev_marker):
                msg = f"Known screen {path!r} is not a canonical path."
                raise ConfigurationError(msg)
        self._exact: Mapping[str, RouteCategory] = MappingProxyType(exact)
        self._shared: Mapping[str, frozenset[RouteCategory]] = MappingProxyType(dict(shared))

        if len(config.entry_points) != 3:
            msg = (
                "Entry points must be distinct: "
                f"sign-in={config.sign_in_path!r}, "
                f"onboarding={config.onboarding_path!r}, "
                f"app-home={config.app_home_path!r}"
            )
            raise ConfigurationError(msg)

    @property
    def screens(self) -> Mapping[str, RouteCategory]:
        """The exact-match table, entry points included."""
        return self._exact

    def classify(self, path: str, *, group: str | None = None) -> RouteCategory:
        """Classify a canonical path. Never raises.

        *group* is the ``(group)`` the raw path named, if any (see
        ``route_group``). It only decides between the categories of a
        shared screen.
        """
        if not isinstance(path, str):
            return RouteCategory.UNKNOWN

        hinted = _GROUPS.get(group) if isinstance(group, str) else None
        if hinted is not None and hinted in self._shared.get(path, ()):
            return hinted

        category = self._exact.get(path)
        if category is None:
            head = path.strip("/").partition("/")[0]
            category = _PREFIXES.get(head, RouteCategory.UNKNOWN)

        if category is RouteCategory.DEBUG and not self._dev_build:
            return RouteCategory.UNKNOWN
        return category
