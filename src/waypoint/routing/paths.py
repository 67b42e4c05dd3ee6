"""Path normalization — raw, tooling-mangled paths to canonical paths.

Every entry point (cold start, OS deep link, in-app navigation) funnels
through ``normalize()``, so there is exactly one definition of what a
canonical path looks like::

    "/--/app"                      -> "/app"
    "--/--/onboarding/welcome/"    -> "/onboarding/welcome"
    "/(app)/index"                 -> "/index"
    "exp://127.0.0.1:8081/--/app"  -> "/app"
    "daily-glow://confirm-email?code=abc" -> "/confirm-email"
    ""                             -> "/"

Rules run as a pass; passes repeat until the path stops changing,
bounded by ``max_passes``. ``normalize`` never raises.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from functools import lru_cache
from urllib.parse import parse_qsl, urlsplit

logger = logging.getLogger("waypoint.routing")

ROOT = "/"

# Schemes whose URL *path* is the route. Custom app schemes carry the
# first route segment in the host position instead.
_PATH_SCHEMES = frozenset({"http", "https", "exp", "exps"})

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_GROUP_RE = re.compile(r"(^|/)\([^/]*\)(?=/|$)")
_GROUP_NAME_RE = re.compile(r"(?:^|/)\(([^/]*)\)(?=/|$)")


class PathSource(StrEnum):
    """Where a raw path came from."""

    COLD_START = "cold-start"
    DEEP_LINK = "deep-link"
    IN_APP = "in-app"


@dataclass(frozen=True, slots=True)
class RawPath:
    """A path as delivered, before normalization. Never assumed well-formed."""

    text: str
    source: PathSource = PathSource.IN_APP


@dataclass(frozen=True, slots=True)
class DeepLink:
    """A parsed deep-link URL: canonical route plus its parameters."""

    path: str
    params: dict[str, str] = field(default_factory=dict)


@lru_cache(maxsize=8)
def _marker_pattern(marker: str) -> re.Pattern[str]:
    """Match a segment made only of repeated *marker* tokens."""
    return re.compile(rf"(^|/)(?:{re.escape(marker)})+(?=/|$)")


def _routable_text(text: str) -> str:
    """Reduce *text* to its routable part: no scheme, host, query or fragment."""
    text = text.strip()
    if _SCHEME_RE.match(text):
        try:
            parts = urlsplit(text)
        except ValueError:
            logger.debug("Unparseable URL %r, routing to root", text)
            return ROOT
        if parts.scheme.lower() in _PATH_SCHEMES:
            return parts.path
        return f"{parts.netloc}/{parts.path}"

    for separator in ("?", "#"):
        text = text.partition(separator)[0]
    return text


def _apply_rules(text: str, marker_re: re.Pattern[str] | None) -> str:
    """One normalization pass."""
    # 1. Dev-server marker segments, anywhere in the path
    if marker_re is not None:
        text = marker_re.sub(r"\1", text)
    # 2. Parenthesized group segments
    text = _GROUP_RE.sub(r"\1", text)
    # 3. Collapse separators, trim segments, drop the trailing separator
    segments = [segment.strip() for segment in text.split("/")]
    # 4. Nothing left -> root
    return ROOT + "/".join(segment for segment in segments if segment)


def normalize(raw: RawPath | str, *, marker: str = "--", max_passes: int = 8) -> str:
    """Normalize a raw path (or URL) to its canonical path.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``. Malformed
    input degrades to ``"/"``.

    Args:
        raw: The incoming path, either wrapped in a ``RawPath`` or bare.
        marker: The dev-server marker token stripped wherever it forms a
            whole segment.
        max_passes: Upper bound on rule passes.
    """
    text = raw.text if isinstance(raw, RawPath) else raw
    if not isinstance(text, str):
        return ROOT

    marker_re = _marker_pattern(marker) if marker else None
    path = _apply_rules(_routable_text(text), marker_re)
    for _ in range(max(1, max_passes) - 1):
        cleaned = _apply_rules(path, marker_re)
        if cleaned == path:
            break
        path = cleaned
    return path


def is_canonical(path: str, *, marker: str = "--") -> bool:
    """Return True if *path* is already in canonical form."""
    return isinstance(path, str) and normalize(path, marker=marker) == path


def route_group(raw: RawPath | str) -> str | None:
    """Return the innermost ``(group)`` named in *raw*, or ``None``.

    Normalization drops group segments, but a screen that exists in two
    groups needs the group to be classified::

        >>> route_group("/(onboarding)/notifications")
        'onboarding'
    """
    text = raw.text if isinstance(raw, RawPath) else raw
    if not isinstance(text, str):
        return None
    names = [name.strip().lower() for name in _GROUP_NAME_RE.findall(_routable_text(text))]
    names = [name for name in names if name]
    return names[-1] if names else None


def parse_deep_link(url: str, *, marker: str = "--") -> DeepLink:
    """Split a deep-link URL into its canonical path and parameters.

    Fragment parameters win over query parameters with the same name,
    since auth providers deliver tokens in the fragment::

        >>> parse_deep_link("daily-glow://confirm-email?code=abc")
        DeepLink(path='/confirm-email', params={'code': 'abc'})

    Never raises; an unparseable URL yields ``DeepLink(path="/")``.
    """
    if not isinstance(url, str):
        return DeepLink(path=ROOT)

    try:
        parts = urlsplit(url.strip())
    except ValueError:
        logger.debug("Unparseable deep link %r", url)
        return DeepLink(path=ROOT)

    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    if "=" in parts.fragment:
        params.update(parse_qsl(parts.fragment, keep_blank_values=True))
    return DeepLink(path=normalize(url, marker=marker), params=params)
