"""Command-line interface for flowwatch."""

import argparse
import asyncio
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConfigError, init_config, load_config, merge_config_and_args
from .console import ConsoleReporter
from .execution import (
    EventBus,
    ExecutionStateAggregator,
    SessionAlreadyRunningError,
    SessionRegistry,
)
from .execution.observers import ConsoleObserver, LoggingObserver
from .models import StepStatus
from .proc_wrap import DEFAULT_EXECUTABLE, ExecutionOptions, get_tool_version
from .suite import PRIORITY_LEVELS, validate_suite_file

logger = logging.getLogger(__name__)

SUITE_SUFFIXES = (".yaml", ".yml")


def comma_list(value: str) -> List[str]:
    """Argparse type for comma-separated lists (used for tags)."""
    items = [item.strip() for item in value.split(",") if item.strip()]
    if not items:
        raise argparse.ArgumentTypeError(f"expected a comma-separated list, got '{value}'")
    return items


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    By default nothing is logged to the console. In verbose mode DEBUG-level
    logs, including the mirrored engine output, go to stderr.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if verbose:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        root_logger.addHandler(console_handler)
    root_logger.setLevel(logging.DEBUG)


def resolve_executable(value) -> List[str]:
    """Normalize --executable / config 'executable' to an argv prefix."""
    if value is None:
        return list(DEFAULT_EXECUTABLE)
    if isinstance(value, str):
        return shlex.split(value)
    return list(value)


def _suite_path(suite: str, collection: Optional[str]) -> Path:
    path = Path(suite)
    if not path.is_absolute() and collection:
        return Path(collection) / path
    return path


def validate_before_run(suite: str, collection: Optional[str]) -> int:
    """Check a YAML suite file before handing it to the engine.

    Targets that are not .yaml/.yml files are left to the engine.

    Returns:
        0 if the run may proceed, 1 otherwise
    """
    path = _suite_path(suite, collection)
    if path.suffix.lower() not in SUITE_SUFFIXES:
        return 0
    if not path.is_file():
        print(f"Error: Suite file does not exist: {path}", file=sys.stderr)
        return 1

    result = validate_suite_file(path)
    if not result.valid:
        print(f"Error: Invalid suite file {path}:", file=sys.stderr)
        for error in result.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    logger.info(f"Suite '{result.suite.suite_name}' ({result.suite.step_count} steps) is valid")
    return 0


async def run_suite(
    options: ExecutionOptions,
    executable: List[str],
    empty_status: StepStatus,
    reporter: Optional[ConsoleReporter],
) -> "ExecutionStateAggregator":
    """Run the engine once with console and logging observers attached."""
    bus = EventBus()
    registry = SessionRegistry()
    observers = [LoggingObserver(bus)]
    if reporter is not None:
        observers.append(ConsoleObserver(reporter, bus, suite=options.suite_file_path or ""))

    aggregator = ExecutionStateAggregator(
        registry=registry,
        bus=bus,
        executable=executable,
        empty_status=empty_status,
    )
    try:
        await aggregator.execute(options)
    finally:
        # Ctrl-C cancels execute(); make sure no engine outlives the CLI
        await registry.terminate_all()
        for observer in observers:
            observer.close()
    return aggregator


def cmd_run(args: argparse.Namespace) -> int:
    """Run a suite and report the result."""
    setup_logging(args.verbose)

    if not args.no_validate:
        status = validate_before_run(args.suite, args.collection)
        if status != 0:
            return status

    options = ExecutionOptions(
        suite_file_path=args.suite,
        collection_path=args.collection,
        verbose=args.verbose,
        dry_run=args.dry_run,
        priority=args.priority,
        tags=list(args.tags or []),
    )
    empty_status = StepStatus(args.empty_status or StepStatus.PASSED.value)
    reporter = None if args.json else ConsoleReporter(quiet=args.quiet, show_output=args.verbose)

    try:
        aggregator = asyncio.run(run_suite(options, resolve_executable(args.executable), empty_status, reporter))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        return 130
    except SessionAlreadyRunningError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    view = aggregator.view
    if args.json:
        print(json.dumps(view_to_dict(view), indent=2, default=str))

    if view.last_error:
        if not args.json:
            print(f"Error: {view.last_error}", file=sys.stderr)
        return 1
    if view.terminal_result is None or not view.terminal_result.success:
        return 1
    return 0


def view_to_dict(view) -> dict:
    """Convert an AggregatedView to a JSON-serialisable dictionary."""
    result = view.terminal_result
    return {
        "handle": view.handle,
        "success": bool(result and result.success),
        "exit_code": result.exit_code if result else None,
        "duration_ms": result.duration_ms if result else None,
        "stats": {
            "total": result.stats.total,
            "passed": result.stats.passed,
            "failed": result.stats.failed,
            "skipped": result.stats.skipped,
        } if result else None,
        "last_error": view.last_error,
        "steps": [step.to_dict() for step in view.steps],
        "logs": view.logs,
    }


def cmd_tool_version(args: argparse.Namespace) -> int:
    """Print the engine's version."""
    setup_logging(args.verbose)
    try:
        version = asyncio.run(get_tool_version(resolve_executable(args.executable)))
    except OSError as e:
        print(f"Error: Failed to run the engine: {e}", file=sys.stderr)
        return 1
    except asyncio.TimeoutError:
        print("Error: Timed out waiting for the engine version", file=sys.stderr)
        return 1
    print(version)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="flowwatch",
        description="Run flow-test suites and report step results as they complete",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flowwatch suites/login.yaml                 Run a suite
  flowwatch suites/login.yaml --dry-run       Plan the run without sending requests
  flowwatch . --collection api-tests          Run a whole collection
  flowwatch suites/login.yaml --tags smoke    Only run steps tagged 'smoke'
  flowwatch suites/login.yaml --json          Print the result as JSON
  flowwatch --tool-version                    Show the engine version
""",
    )

    parser.add_argument(
        "suite",
        nargs="?",
        default=None,
        metavar="SUITE",
        help="Suite file (or collection target) passed to the engine",
    )

    run_group = parser.add_argument_group("run options")
    run_group.add_argument(
        "--collection",
        metavar="DIR",
        default=None,
        help="Collection directory; the engine runs with this as its working directory",
    )
    run_group.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Ask the engine to plan the run without executing requests",
    )
    run_group.add_argument(
        "--priority",
        choices=PRIORITY_LEVELS,
        default=None,
        help="Only run steps with this priority",
    )
    run_group.add_argument(
        "--tags",
        type=comma_list,
        metavar="A,B",
        default=None,
        help="Only run steps carrying one of these comma-separated tags",
    )
    run_group.add_argument(
        "--executable",
        metavar="CMD",
        default=None,
        help=f"Command that starts the engine (default: {' '.join(DEFAULT_EXECUTABLE)})",
    )
    run_group.add_argument(
        "--empty-status",
        dest="empty_status",
        choices=[StepStatus.PASSED.value, StepStatus.SKIPPED.value],
        default=None,
        help="Status for steps that recorded no assertions (default: passed)",
    )
    run_group.add_argument(
        "--no-validate",
        dest="no_validate",
        action="store_true",
        help="Skip checking the suite file before running it",
    )

    output_group = parser.add_argument_group("output options")
    output_group.add_argument(
        "--quiet",
        action="store_true",
        help="Only print failed steps, errors and the summary",
    )
    output_group.add_argument(
        "--json",
        action="store_true",
        help="Print the final result as JSON instead of progress output",
    )
    output_group.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Pass --verbose to the engine, echo its output and enable verbose logging",
    )

    global_group = parser.add_argument_group("global options")
    global_group.add_argument(
        "--tool-version",
        dest="tool_version",
        action="store_true",
        help="Print the engine's version and exit",
    )
    global_group.add_argument(
        "--init-config",
        action="store_true",
        help="Generate a new .flowwatch/config.toml file with all options commented out",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.init_config:
        return init_config()

    try:
        config = load_config()
        args = merge_config_and_args(config, args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.tool_version:
        return cmd_tool_version(args)

    if args.suite is None:
        parser.print_help()
        return 0

    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
