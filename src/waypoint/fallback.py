"""Not-found terminal state.

Reached only when the resolver yields no decision, which the total
classifier and decision table should make impossible. The surface is a
static page with exactly one way out: back to app-home.
"""

import logging

from kida import Environment

from waypoint.config import WaypointConfig
from waypoint.resolver import RedirectDecision

logger = logging.getLogger("waypoint.navigator")

NOT_FOUND_TEMPLATE = """\
<section class="waypoint-not-found" data-path="{{ path }}">
  <h1>{{ title }}</h1>
  <p>We couldn't find <code>{{ path }}</code>.</p>
  <a class="waypoint-recover" href="{{ home }}">{{ action }}</a>
</section>
"""


class FallbackHandler:
    """Renders the not-found surface and provides its single recovery action.

    Usage::

        fallback = FallbackHandler(config)
        html = fallback.render("/nowhere")
        decision = fallback.recover()   # redirect to app-home
    """

    __slots__ = ("_home", "_template")

    def __init__(
        self,
        config: WaypointConfig | None = None,
        *,
        env: Environment | None = None,
        source: str = NOT_FOUND_TEMPLATE,
    ) -> None:
        config = config or WaypointConfig()
        self._home = config.app_home_path
        env = env or Environment(autoescape=True)
        self._template = env.from_string(source)

    def render(self, path: str) -> str:
        """Render the not-found surface for *path*."""
        logger.error("No route decision for %r, showing not-found", path)
        return self._template.render({
            "path": path,
            "title": "Page not found",
            "home": self._home,
            "action": "Go to home",
        })

    def recover(self) -> RedirectDecision:
        """The one deterministic action offered by the not-found surface."""
        return RedirectDecision.redirect(self._home, "not-found-recovery")
