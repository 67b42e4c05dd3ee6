"""Waypoint CLI — inspect how paths normalize, classify and resolve.

Entry point registered as ``waypoint`` in ``pyproject.toml``::

    [project.scripts]
    waypoint = "waypoint.cli:main"
"""

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``waypoint`` command."""
    parser = argparse.ArgumentParser(
        prog="waypoint",
        description="Waypoint — route resolution for the journaling client.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log routing decisions to stderr",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- waypoint normalize -----------------------------------------------
    normalize_parser = subparsers.add_parser(
        "normalize", help="Print the canonical path and category of each PATH"
    )
    normalize_parser.add_argument("paths", nargs="+", metavar="PATH", help="Raw path or URL")
    normalize_parser.add_argument(
        "--dev",
        action="store_true",
        help="Classify as a development build (debug routes enabled)",
    )

    # -- waypoint resolve -------------------------------------------------
    resolve_parser = subparsers.add_parser(
        "resolve", help="Show where PATH lands for a given session and onboarding state"
    )
    resolve_parser.add_argument("path", metavar="PATH", help="Raw path or URL")
    resolve_parser.add_argument(
        "--session",
        choices=("loading", "signed-out", "signed-in"),
        default="signed-in",
        help="Session status (default: signed-in)",
    )
    resolve_parser.add_argument(
        "--onboarding",
        choices=("loading", "incomplete", "complete"),
        default="complete",
        help="Onboarding status (default: complete)",
    )
    resolve_parser.add_argument(
        "--dev",
        action="store_true",
        help="Resolve as a development build (debug routes enabled)",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "normalize":
        from waypoint.cli._resolve import run_normalize

        run_normalize(args)
    elif args.command == "resolve":
        from waypoint.cli._resolve import run_resolve

        run_resolve(args)
