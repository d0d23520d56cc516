"""Argument parsing functionality for bomgraph."""

import argparse
from typing import Optional, Sequence

from cli_config import apply_config_defaults


def build_parser(analyzers: Optional[Sequence] = None) -> argparse.ArgumentParser:
    """Create the parser with core options plus one group per analyzer."""
    parser = argparse.ArgumentParser(
        prog="bomgraph",
        description=(
            "bomgraph - Build a dependency graph from package manifests and lock files"
        ),
        add_help=True,
    )

    parser.add_argument("-d", "--directory",
                        dest="DIRECTORY",
                        help="Project directory to scan (default: current directory)",
                        action="store",
                        type=str,
                        default=".")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to the JSON output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to a YAML or JSON configuration file",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--error-on-warnings",
                        dest="ERROR_ON_WARNINGS",
                        help="Exit with a non-zero status code if warnings are present.",
                        action="store_true")
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true")

    for analyzer in analyzers or ():
        analyzer.initialize(parser)
    return parser


def parse_args(argv: Optional[Sequence[str]] = None, analyzers: Optional[Sequence] = None):
    """Parses the arguments passed to the program.

    When ``-c/--config`` is given, the file's ``options`` mapping is applied
    as parser defaults first, so explicit command-line flags win.
    """
    parser = build_parser(analyzers)
    preliminary, _ = parser.parse_known_args(argv)
    if preliminary.CONFIG:
        apply_config_defaults(parser, preliminary.CONFIG)
    return parser.parse_args(argv)
