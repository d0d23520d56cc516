"""bomgraph - Dependency graph builder for npm, Python Poetry and NuGet projects.

    Returns:
        int: Exit code
"""
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

from analysis.context import AnalysisSettings
from analysis.orchestrator import AnalysisResult, Orchestrator
from args import parse_args
from bom.models import Component
from common.logging_utils import (
    add_file_handler,
    configure_logging,
    extra_context,
    is_debug_enabled,
    silence_console,
)
from constants import ExitCodes
from ecosystems import default_analyzers

logger = logging.getLogger(__name__)


def component_ref(component: Component) -> str:
    """Stable textual reference, ``ecosystem:name@version``."""
    ref = f"{component.ecosystem.value}:{component.name}"
    if component.version is not None:
        ref += f"@{component.version.text}"
    return ref


def component_to_dict(component: Component) -> Dict[str, Any]:
    return {
        "ref": component_ref(component),
        "ecosystem": component.ecosystem.value,
        "name": component.name,
        "version": component.version_text,
        "kind": component.kind.value,
        "license": component.license.to_dict() if component.license is not None else None,
        "hash": str(component.hash) if component.hash is not None else None,
    }


def result_to_dict(result: AnalysisResult) -> Dict[str, Any]:
    """Serialize the graph and diagnostics into plain JSON-compatible data."""
    graph = result.graph
    return {
        "components": [component_to_dict(c) for c in graph.nodes],
        "dependencies": [
            {"source": component_ref(source), "target": component_ref(target)}
            for source, target in graph.edges()
        ],
        "diagnostics": [d.to_dict() for d in result.diagnostics.items],
    }


def export_json(result: AnalysisResult, path: str) -> None:
    """Exports the dependency graph to a JSON file.

    Args:
        result: Finished analysis result.
        path (str): File path to export the JSON.
    """
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(result_to_dict(result), file, ensure_ascii=False, indent=4)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def log_summary(result: AnalysisResult) -> None:
    graph = result.graph
    diagnostics = result.diagnostics
    logging.info(
        "Dependency graph: %d component(s) (%d root(s)), %d edge(s) from %d manifest(s).",
        graph.node_count, len(graph.roots), graph.edge_count, result.dispatched,
    )
    logging.info(
        "Diagnostics: %d warning(s), %d error(s).",
        len(diagnostics.warnings), len(diagnostics.errors),
    )


def _setup_logging(args) -> None:
    configure_logging(getattr(args, "LOG_LEVEL", None))
    if getattr(args, "LOG_FILE", None):
        add_file_handler(args.LOG_FILE)
    if getattr(args, "QUIET", False):
        silence_console()


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments, build the graph, report, and return the exit code."""
    analyzers = default_analyzers()
    args = parse_args(argv, analyzers)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    directory = args.DIRECTORY
    if not os.path.isdir(directory):
        logging.error("Directory not found: %s, aborting", directory)
        return ExitCodes.FILE_ERROR.value

    settings = AnalysisSettings(directory, vars(args))
    result = Orchestrator(analyzers, settings).run()
    log_summary(result)

    if getattr(args, "OUTPUT", None):
        export_json(result, args.OUTPUT)

    if result.diagnostics.has_errors:
        logging.error("Errors were reported during analysis.")
        return ExitCodes.FILE_ERROR.value
    if result.diagnostics.has_warnings:
        logging.warning("One or more warnings were reported during analysis.")
        if args.ERROR_ON_WARNINGS:
            logging.error("Warnings present, exiting with non-zero status code.")
            return ExitCodes.EXIT_WARNINGS.value
    return ExitCodes.SUCCESS.value


def main(argv: Optional[List[str]] = None) -> None:
    """Main function of the program."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
