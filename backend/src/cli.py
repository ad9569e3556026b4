"""
Command-line interface for DesignScout.

Provides commands for running searches, extracting keywords from a query and
showing the effective configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog

from designscout import __version__
from designscout.config import ConfigurationError, load_scout_config
from designscout.models import ExecutionPhase, Platform, RouteKind
from designscout.orchestrator.keywords import decide_route, extract_keywords
from designscout.orchestrator.phases import PhaseFailedError, RunReport
from designscout.orchestrator.pipeline import PhaseLayout, SearchRequest
from designscout.service import ScoutService

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose if hasattr(args, "verbose") else False)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error("Command failed", error=str(e))
        if hasattr(args, "verbose") and args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="designscout",
        description="DesignScout - capture design references from an authenticated design library",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"designscout {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config",
        dest="config_file",
        help="Path to YAML config file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    search_parser = subparsers.add_parser("search", help="Search keywords and capture results")
    search_parser.add_argument(
        "keywords",
        nargs="*",
        help="Keywords to search (extracted from --query when omitted)",
    )
    search_parser.add_argument(
        "--query", "-q",
        help="Free-text query to extract keywords from",
    )
    search_parser.add_argument(
        "--route", "-r",
        action="append",
        choices=[r.value for r in RouteKind],
        default=[],
        dest="routes",
        help="Route to search (can be repeated; decided from the keywords when omitted)",
    )
    search_parser.add_argument(
        "--platform", "-p",
        choices=[p.value for p in Platform],
        default=None,
        help="Platform to search",
    )
    search_parser.add_argument(
        "--per-keyword", "-n",
        type=int,
        default=None,
        help="Results to capture per keyword",
    )
    search_parser.add_argument(
        "--layout",
        choices=[layout.value for layout in PhaseLayout],
        default=PhaseLayout.PER_ROUTE.value,
        help="Phase layout",
    )
    search_parser.add_argument(
        "--output-file", "-o",
        help="Write the JSON report to this file",
    )
    search_parser.set_defaults(func=cmd_search)

    keywords_parser = subparsers.add_parser("keywords", help="Extract keywords from a query")
    keywords_parser.add_argument("query", help="Free-text query")
    keywords_parser.set_defaults(func=cmd_keywords)

    config_parser = subparsers.add_parser("config", help="Show effective configuration")
    config_parser.set_defaults(func=cmd_config)

    return parser


def configure_logging(verbose: bool) -> None:
    """Configure structured logging."""
    level = "DEBUG" if verbose else "INFO"
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, level), stream=sys.stderr)


def print_phase(phase: ExecutionPhase) -> None:
    """Progress line for a phase transition."""
    line = f"[{phase.status.value:>9}] {phase.id}: {phase.message}"
    if phase.is_terminal:
        line += f" ({phase.duration_ms}ms, {len(phase.results)} results"
        if phase.errors:
            line += f", {len(phase.errors)} errors"
        line += ")"
    print(line, file=sys.stderr)


def cmd_search(args: argparse.Namespace) -> int:
    """Run a search."""
    from dotenv import load_dotenv

    # Load environment variables from .env file
    load_dotenv()

    config = load_scout_config(args.config_file)
    request = SearchRequest(
        keywords=list(args.keywords),
        query=args.query,
        routes=[RouteKind(r) for r in args.routes],
        platform=Platform(args.platform) if args.platform else config.default_platform,
        results_per_keyword=args.per_keyword,
        layout=PhaseLayout(args.layout),
    )

    async def run() -> RunReport:
        async with ScoutService(config) as service:
            return await service.search(request, on_phase_update=print_phase)

    exit_code = 0
    try:
        report = asyncio.run(run())
    except PhaseFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        report = e.report
        exit_code = 1

    output = json.dumps(report.to_dict(), indent=2)
    if args.output_file:
        Path(args.output_file).write_text(output)
        print(f"Report written to {args.output_file}")
    else:
        print(output)

    print(f"\nSummary: {report.summary or report.summarize()}")
    return exit_code


def cmd_keywords(args: argparse.Namespace) -> int:
    """Extract keywords and a route from a query."""
    keywords = extract_keywords(args.query)
    print(json.dumps({"keywords": keywords, "route": decide_route(args.query).value}, indent=2))
    return 0 if keywords else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective configuration with secrets masked."""
    from dotenv import load_dotenv

    load_dotenv()
    config = load_scout_config(args.config_file)
    print(json.dumps(config.masked(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
