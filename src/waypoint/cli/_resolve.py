"""``waypoint normalize`` and ``waypoint resolve``.

Run the same normalizer, classifier and resolver the client uses, with
session and onboarding state supplied on the command line.
"""

import argparse

from waypoint.config import WaypointConfig
from waypoint.fallback import FallbackHandler
from waypoint.gates.onboarding import OnboardingSource, OnboardingState, OnboardingStatus
from waypoint.gates.session import SessionState, SessionStatus
from waypoint.resolver import RedirectResolver
from waypoint.routing.categories import RouteClassifier
from waypoint.routing.paths import normalize, route_group


def run_normalize(args: argparse.Namespace) -> None:
    """Print one ``RAW  CANONICAL  CATEGORY`` row per path."""
    config = WaypointConfig(dev_build=args.dev)
    classifier = RouteClassifier(config)

    rows: list[tuple[str, str, str]] = []
    for raw in args.paths:
        path = normalize(raw, marker=config.dev_marker, max_passes=config.max_normalize_passes)
        rows.append((raw or '""', path, str(classifier.classify(path, group=route_group(raw)))))

    max_raw = max(max(len(r[0]) for r in rows), 3)  # "RAW" header
    max_path = max(max(len(r[1]) for r in rows), 9)  # "CANONICAL" header
    fmt = f"{{:<{max_raw}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("RAW", "CANONICAL", "CATEGORY"))
    print("-" * min(max_raw + max_path + 14, 80))
    for raw, path, category in rows:
        print(fmt.format(raw, path, category))


def run_resolve(args: argparse.Namespace) -> None:
    """Print each resolution step for ``args.path``."""
    config = WaypointConfig(dev_build=args.dev)
    classifier = RouteClassifier(config)
    resolver = RedirectResolver(config)

    session_status = SessionStatus(args.session)
    session = SessionState(
        session_status,
        email_verified=session_status is SessionStatus.SIGNED_IN,
        user_id="cli-user" if session_status is SessionStatus.SIGNED_IN else None,
    )
    onboarding = OnboardingState(OnboardingStatus(args.onboarding), OnboardingSource.REMOTE)

    path = normalize(args.path, marker=config.dev_marker, max_passes=config.max_normalize_passes)
    category = classifier.classify(path, group=route_group(args.path))
    decision = resolver.decide(path, category, session, onboarding)

    print(f"raw:        {args.path!r}")
    print(f"canonical:  {path}")
    print(f"category:   {category}")
    print(f"session:    {session.status}")
    print(f"onboarding: {onboarding.status}")
    if decision is None:
        decision = FallbackHandler(config).recover()
        print(f"decision:   not-found, recover -> {decision.target}")
    elif decision.is_redirect:
        print(f"decision:   redirect -> {decision.target} ({decision.mode}) [{decision.reason}]")
    else:
        print(f"decision:   stay [{decision.reason}]")
