"""Routing configuration.

WaypointConfig is a frozen dataclass, immutable after creation and shared
by every component that needs entry points or tuning knobs.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WaypointConfig:
    """Routing configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = WaypointConfig(dev_build=True, onboarding_fetch_timeout=5.0)
    """

    # Entry points (the only targets a redirect may name)
    sign_in_path: str = "/auth/sign-in"
    onboarding_path: str = "/onboarding/welcome"
    app_home_path: str = "/app"

    # Build flavour: debug screens are only routable in development builds
    dev_build: bool = False

    # Normalization
    dev_marker: str = "--"  # Path segment the dev server injects into deep links
    max_normalize_passes: int = 8

    # Onboarding gate
    onboarding_fetch_timeout: float = 10.0

    # Loop guard
    loop_window_seconds: float = 2.0
    loop_history: int = 4

    @property
    def entry_points(self) -> frozenset[str]:
        """The fixed set of canonical redirect targets."""
        return frozenset({self.sign_in_path, self.onboarding_path, self.app_home_path})
