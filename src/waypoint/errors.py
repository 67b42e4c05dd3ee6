"""Waypoint exception hierarchy.

Raised at setup time or on collaborator misuse. Nothing on the
navigation path raises: every failure there degrades to "stay on a
safe screen".
"""


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


class ConfigurationError(WaypointError):
    """Raised when a ``WaypointConfig`` cannot produce a sound resolver.

    Typically raised while constructing the classifier or resolver, so a
    bad entry point fails at startup rather than as a redirect loop.
    """


class OnboardingError(WaypointError):
    """Raised when onboarding completion is requested without a bound user."""
