"""
CLI interface for contract_audit.

Provides the command-line interface for auditing a backend against its
frontend and design system.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from contract_audit import __version__
from contract_audit.cache import CacheStore
from contract_audit.config import get_config_template, load_config, merge_config
from contract_audit.scanner import AuditConfigError, ContractAuditor

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Exit status when --fail-on-critical is set and critical issues were found
EXIT_CRITICAL = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="contract-audit",
        description="Statically reconcile a backend API against its frontend and design system",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
QUICK START
  contract-audit --backend ./api --frontend ./web
  contract-audit --backend ./api --frontend ./web --design-system ./ui -o report.json
  contract-audit --init-config > contract-audit.yaml

DISCLAIMER
This tool uses static analysis. It may miss dynamically built routes and
URLs. Always verify critical findings against the actual source code.
        """,
    )

    roots_group = parser.add_argument_group("Project roots")
    roots_group.add_argument(
        "--backend",
        metavar="DIR",
        help="Backend source root (Express-style routes)",
    )
    roots_group.add_argument(
        "--frontend",
        metavar="DIR",
        help="Frontend source root (HTTP calls, components)",
    )
    roots_group.add_argument(
        "--design-system",
        metavar="DIR",
        help="Design system source root (components)",
    )

    parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Only output the summary",
    )
    parser.add_argument(
        "--fail-on-critical",
        action="store_true",
        help=f"Exit with status {EXIT_CRITICAL} when critical issues are found",
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        metavar="FILE",
        help="Load config from YAML file",
    )
    config_group.add_argument(
        "--init-config",
        action="store_true",
        help="Print a starter config file and exit",
    )
    config_group.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Extraction worker threads (default: number of CPUs)",
    )

    cache_group = parser.add_argument_group("Cache")
    cache_group.add_argument(
        "--cache-dir",
        metavar="DIR",
        help="Cache directory (default: .audit-cache)",
    )
    cache_group.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable the extraction cache",
    )
    cache_group.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete every cache entry and exit",
    )
    cache_group.add_argument(
        "--cache-stats",
        action="store_true",
        help="Print cache statistics and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"contract_audit {__version__}",
    )

    return parser


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> dict[str, Any]:
    """Config file (if any) with command-line overrides applied."""
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file '{config_path}' does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            config = load_config(config_path)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        if args.verbose:
            print(f"Loaded config: {config_path}", file=sys.stderr)
    else:
        config = merge_config(None)

    roots = {
        "backend": args.backend,
        "frontend": args.frontend,
        "design_system": args.design_system,
    }
    for role, path in roots.items():
        if path:
            config["projects"][role]["path"] = path

    if args.workers:
        config["workers"] = args.workers
    if args.cache_dir:
        config["cache"]["directory"] = args.cache_dir
    if args.no_cache:
        config["cache"]["enabled"] = False
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.init_config:
        print(get_config_template())
        return 0

    config = build_config(args)

    if args.clear_cache or args.cache_stats:
        cache = CacheStore.from_config(config)
        if args.cache_stats:
            print(json.dumps(cache.stats(), indent=2))
        if args.clear_cache:
            cache.clear()
            print(f"Cleared cache: {cache.directory}", file=sys.stderr)
        return 0

    try:
        result = ContractAuditor(config).run()
    except AuditConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    report = result.to_dict()
    if args.summary:
        report = {"summary": report["summary"]}
    report["meta"] = {"version": __version__, "roots": {
        role: project.get("path") for role, project in config["projects"].items()
    }}

    output = json.dumps(report, indent=2, default=str)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        if args.verbose:
            print(f"Output written to: {args.output}", file=sys.stderr)
    else:
        print(output)

    if args.fail_on_critical and result.summary.get("has_critical"):
        return EXIT_CRITICAL
    return 0
