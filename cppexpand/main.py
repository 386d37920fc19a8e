#!/usr/bin/env python3
"""cppexpand/main.py — command-line driver.

Usage examples
--------------
    # Everything about the call at line 12, column 5 of the dump's main file
    python -m cppexpand unit.sexp --line 12 --column 5

    # Only the call-site data, for a call in a header of the same unit
    python -m cppexpand unit.sexp --file util.h --line 3 --column 10 \\
        --no-declaration --no-definition

Exit codes
----------
    0   Resolved; the JSON result is on stdout (``{}`` if nothing matched).
    1   The call cannot be expanded (unsafe context or internal defect).
    2   Infrastructure failure (missing file, unreadable dump, bad location).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from cppexpand import __version__
from cppexpand.config import DEFAULT_CONTEXT_DEPTH, ExpandConfig
from cppexpand.dump import load_unit_file
from cppexpand.errors import DumpError, ExpandError, ResolutionError
from cppexpand.matcher import resolve
from cppexpand.query import QueryOptions

_log = logging.getLogger("cppexpand")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


def _configure_logging(verbosity: int) -> None:
    """Set up the ``cppexpand`` logger: 0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("cppexpand")
    root.setLevel(level)
    root.addHandler(handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cppexpand",
        description="Resolve the call at a source location for inline expansion.",
    )
    parser.add_argument("dump", help="S-expression translation-unit dump")
    parser.add_argument("--file", help="Buffer holding the target (default: the dump's main file)")
    parser.add_argument("--line", type=int, required=True, help="1-based target line")
    parser.add_argument("--column", type=int, required=True, help="1-based target column")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    g = parser.add_argument_group("requested output")
    g.add_argument("--call", action=argparse.BooleanOptionalAction, default=True,
                   help="Collect call-site data (default: on)")
    g.add_argument("--declaration", action=argparse.BooleanOptionalAction, default=True,
                   help="Collect the callee's declaration (default: on)")
    g.add_argument("--definition", action=argparse.BooleanOptionalAction, default=True,
                   help="Collect the callee's body (default: on)")
    g.add_argument("--rewrite", action=argparse.BooleanOptionalAction, default=False,
                   help="Request rewritten text (implies declaration and definition)")

    t = parser.add_argument_group("tuning")
    t.add_argument("--max-depth", type=int, default=DEFAULT_CONTEXT_DEPTH,
                   help="Ancestor levels searched for a consuming context (default: %(default)s)")
    t.add_argument("--indent", type=int, default=2, help="JSON indentation (default: %(default)s)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        unit = load_unit_file(args.dump)
    except OSError as exc:
        _log.error("Cannot read %s: %s", args.dump, exc)
        return EXIT_INFRA
    except UnicodeDecodeError as exc:
        _log.error("%s is not valid UTF-8: %s", args.dump, exc)
        return EXIT_INFRA
    except DumpError as exc:
        _log.error("%s: %s", args.dump, exc)
        return EXIT_INFRA

    try:
        target = unit.location(args.line, args.column, args.file)
    except ExpandError as exc:
        _log.error("Bad target location: %s", exc.message)
        return EXIT_INFRA

    options = QueryOptions(
        wants_call=args.call,
        wants_declaration=args.declaration,
        wants_definition=args.definition,
        wants_rewritten=args.rewrite,
    )
    try:
        query = resolve(unit, target, options, ExpandConfig(max_context_depth=args.max_depth))
    except ResolutionError as exc:
        sys.stderr.write(f"{exc}\n")
        return EXIT_ERROR

    sys.stdout.write(json.dumps(query.to_dict(), indent=args.indent or None) + "\n")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
