"""Waypoint — route resolution and redirects for the journaling client.

Decides which canonical screen the client should be on, given an
incoming path, the session, and onboarding completion.

Basic usage::

    from waypoint import Navigator, PathSource, RawPath

    navigator = Navigator.build(auth, onboarding_store, router)
    async with navigator:
        navigator.open(RawPath("exp://127.0.0.1:8081/--/app", PathSource.DEEP_LINK))

Pure helpers::

    from waypoint import normalize
    normalize("/--/(app)/journal/")  # "/journal"
"""

__version__ = "0.1.0-dev"
__all__ = [
    "ConfigurationError",
    "FallbackHandler",
    "Navigator",
    "OnboardingError",
    "OnboardingGate",
    "OnboardingState",
    "OnboardingStatus",
    "PathSource",
    "RawPath",
    "RedirectDecision",
    "RedirectResolver",
    "RouteCategory",
    "RouteClassifier",
    "SessionGate",
    "SessionState",
    "SessionStatus",
    "WaypointConfig",
    "WaypointError",
    "normalize",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import waypoint`` fast while providing a clean top-level API.
    """
    if name == "Navigator":
        from waypoint.navigator import Navigator

        return Navigator

    if name == "WaypointConfig":
        from waypoint.config import WaypointConfig

        return WaypointConfig

    if name == "FallbackHandler":
        from waypoint.fallback import FallbackHandler

        return FallbackHandler

    if name in ("PathSource", "RawPath", "normalize"):
        from waypoint.routing import paths as _paths

        return getattr(_paths, name)

    if name in ("RouteCategory", "RouteClassifier"):
        from waypoint.routing import categories as _categories

        return getattr(_categories, name)

    if name in ("SessionGate", "SessionState", "SessionStatus"):
        from waypoint.gates import session as _session

        return getattr(_session, name)

    if name in ("OnboardingGate", "OnboardingState", "OnboardingStatus"):
        from waypoint.gates import onboarding as _onboarding

        return getattr(_onboarding, name)

    if name in ("RedirectDecision", "RedirectResolver"):
        from waypoint import resolver as _resolver

        return getattr(_resolver, name)

    if name in ("ConfigurationError", "OnboardingError", "WaypointError"):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
