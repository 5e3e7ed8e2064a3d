#!/usr/bin/env python3
"""
Render a double elimination bracket to SVG (or layout JSON).

Usage:
    python src/render_bracket.py matches.yaml -o bracket.svg
    python src/render_bracket.py matches.json --style style.yaml --hovered team-7
    python src/render_bracket.py matches.yaml --json

The input holds ``upper`` and ``lower`` match lists (YAML or JSON, camelCase
or snake_case keys), or a ``teams`` list in seed order with optional
``results`` to generate the bracket from.

Exit codes:
    0  success
    1  input file missing or unreadable
    2  invalid bracket or style data
    3  output could not be written
"""

import argparse
import json
import logging
import sys

import yaml

from core.bracket_layout import DoubleEliminationBracket
from core.double_elimination import load_bracket
from core.highlight import HoverStore, resolve_party_id
from core.models import BracketDataError
from core.settings import StyleError, load_style

EXIT_OK = 0
EXIT_UNREADABLE = 1
EXIT_INVALID = 2
EXIT_WRITE_FAILED = 3


def error(message: str, code: int = EXIT_INVALID):
    """Print error and exit."""
    print(f"ERROR: {message}", file=sys.stderr)
    sys.exit(code)


def read_matches(path: str):
    """Read a bracket file. JSON is valid YAML, so one parser covers both."""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return load_bracket(data)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Render a double elimination bracket to SVG',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('matches', help='YAML or JSON file with upper/lower matches or teams')
    parser.add_argument('-o', '--output', help='Output file (default: stdout)')
    parser.add_argument('--style', help='YAML style file merged over the default style')
    parser.add_argument('--hovered', help='Participant id to highlight')
    parser.add_argument('--json', action='store_true', help='Write the layout as JSON instead of SVG')
    parser.add_argument('--fill-byes', action='store_true',
                        help='Insert BYE matches so every later round match has two feeders')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log layout details')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        matches = read_matches(args.matches)
    except OSError as e:
        error(f"Cannot read {args.matches}: {e}", EXIT_UNREADABLE)
    except yaml.YAMLError as e:
        error(f"Cannot parse {args.matches}: {e}", EXIT_INVALID)
    except BracketDataError as e:
        error(f"Invalid bracket data in {args.matches}: {e}", EXIT_INVALID)

    try:
        style = load_style(args.style) if args.style else None
    except OSError as e:
        error(f"Cannot read {args.style}: {e}", EXIT_UNREADABLE)
    except StyleError as e:
        error(str(e), EXIT_INVALID)

    hover_store = HoverStore()
    if args.hovered:
        hover_store.set_hovered(resolve_party_id(matches, args.hovered))

    try:
        bracket = DoubleEliminationBracket(matches, style=style, hover_store=hover_store,
                                           fill_byes=args.fill_byes)
        layout = bracket.layout()
        if args.json:
            output = json.dumps(layout.to_dict(), indent=2)
        else:
            output = bracket.render_svg(layout)
    except (BracketDataError, StyleError) as e:
        error(str(e), EXIT_INVALID)

    if not args.output:
        sys.stdout.write(output + '\n')
        return EXIT_OK
    try:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(output)
    except OSError as e:
        error(f"Cannot write {args.output}: {e}", EXIT_WRITE_FAILED)
    print(f"Wrote {args.output}", file=sys.stderr)
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
