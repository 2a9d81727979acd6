"""
Command-line interface for the pester runtime.

Provides the main entry point for the pester-runtime command:

    pester-runtime config show [--file F] [--set Run.Exit=true] [--modified-only]
    pester-runtime config merge BASE OVERRIDE
    pester-runtime config describe [Section]
    pester-runtime run [PATH ...] [--file F] [--tag T] [--exclude-tag T]
"""

import argparse
import json
import sys
from collections.abc import Sequence
from typing import Any

import yaml

from . import __version__
from .configuration import ConfigLoader, PesterConfiguration
from .discovery import module_file_loader
from .errors import ConfigurationError, RunFailedError
from .logging_config import configure_logging, get_logger, setup_from_config
from .models import Run
from .models.formatting import to_plain
from .models.report import RunReport
from .runner import TestRunner

logger = get_logger(__name__)


def parse_assignments(assignments: Sequence[str]) -> dict[str, dict[str, Any]]:
    """
    Turn ``Section.Option=value`` strings into a sparse configuration mapping.

    Values are parsed as YAML scalars or flow sequences, so ``true``, ``75``
    and ``[a, b]`` arrive typed.

    Raises:
        ConfigurationError: If an assignment is malformed
    """
    mapping: dict[str, dict[str, Any]] = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        section, dot, option = key.strip().partition(".")
        if not sep or not dot or not section or not option:
            raise ConfigurationError(
                f"Expected Section.Option=value, got {assignment!r}", "--set"
            )
        try:
            value = yaml.safe_load(raw) if raw.strip() else None
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Cannot parse value of {key}: {e}", "--set"
            ) from e
        mapping.setdefault(section, {})[option] = value
    return mapping


def dump(data: Any, format_type: str) -> str:
    data = to_plain(data)
    if format_type == "json":
        return json.dumps(data, indent=2, default=str)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def _load(args: argparse.Namespace) -> PesterConfiguration:
    loader = ConfigLoader()
    overrides = parse_assignments(getattr(args, "set", None) or [])
    return loader.load_config(
        args.file, overrides=overrides, include_env=not args.no_env, search=False
    )


def failed_exit_code(run: Run) -> int:
    """Exit code of a failed run: failed tests, blocks and containers, at most 255."""
    return (
        min(
            run.failed_count + run.failed_blocks_count + run.failed_containers_count,
            255,
        )
        or 1
    )


def config_show_command(args: argparse.Namespace) -> int:
    """Show the effective configuration."""
    config = _load(args)
    print(dump(config.to_dict(modified_only=args.modified_only), args.format))
    return 0


def config_merge_command(args: argparse.Namespace) -> int:
    """Show the option-by-option merge of two configuration files."""
    loader = ConfigLoader()
    base = PesterConfiguration.from_mapping(loader.load_from_file(args.base))
    override = PesterConfiguration.from_mapping(loader.load_from_file(args.override))
    merged = PesterConfiguration.merge(base, override)
    print(dump(merged.to_dict(modified_only=args.modified_only), args.format))
    return 0


def config_describe_command(args: argparse.Namespace) -> int:
    """Describe every option with its value and default."""
    config = PesterConfiguration.default()
    for key, section in config.sections():
        if args.section and key.lower() != args.section.lower():
            continue
        print(f"{key}: {section.description}")
        for option_key, option in section.options():
            print(f"  {option_key}: {option}")
        print()
    return 0


def run_command(args: argparse.Namespace) -> int:
    """Discover and run Python test files."""
    overrides = parse_assignments(args.set or [])
    run_section = overrides.setdefault("Run", {})
    filter_section = overrides.setdefault("Filter", {})
    if args.paths:
        run_section["Path"] = args.paths
    if args.extension:
        run_section["TestExtension"] = args.extension
    if args.tag:
        filter_section["Tag"] = args.tag
    if args.exclude_tag:
        filter_section["ExcludeTag"] = args.exclude_tag
    if args.full_name:
        filter_section["FullName"] = args.full_name

    config = ConfigLoader().load_config(
        args.file, overrides=overrides, include_env=not args.no_env, search=False
    )
    setup_from_config(config)

    runner = TestRunner(config, file_loader=module_file_loader(args.definition))
    failure = None
    try:
        run = runner.invoke()
    except RunFailedError as e:
        failure = e
        run = e.run

    if args.format == "json":
        print(RunReport.from_run(run).model_dump_json(indent=2))
    else:
        for container in run.containers:
            print(container)
            for test in container.iter_tests():
                print(f"  {test} ({test.full_name})")
        print(
            f"{run}: {run.passed_count} passed, {run.failed_count} failed, "
            f"{run.skipped_count} skipped, {run.not_run_count} not run"
        )

    if failure is not None:
        raise failure
    if config.run.exit.value and run.result.value == "Failed":
        return failed_exit_code(run)
    return 0


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--file", "-f", help="Configuration file (YAML or JSON)")
    parser.add_argument(
        "--set",
        action="append",
        metavar="SECTION.OPTION=VALUE",
        help="Override an option, may be repeated",
    )
    parser.add_argument(
        "--no-env",
        action="store_true",
        help="Ignore PESTER_* environment variables",
    )


def add_config_subcommands(subparsers: argparse._SubParsersAction) -> None:
    """Add configuration subcommands."""
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration commands",
        description="Inspect and merge Pester configuration",
    )
    config_subparsers = config_parser.add_subparsers(
        dest="config_command",
        help="Configuration commands",
        required=True,
    )

    show_parser = config_subparsers.add_parser(
        "show",
        help="Show effective configuration",
        description="Merge defaults, file, environment and --set overrides",
    )
    _add_source_arguments(show_parser)
    show_parser.add_argument(
        "--format", choices=["yaml", "json"], default="yaml", help="Output format"
    )
    show_parser.add_argument(
        "--modified-only",
        action="store_true",
        help="Only show explicitly set options",
    )
    show_parser.set_defaults(func=config_show_command)

    merge_parser = config_subparsers.add_parser(
        "merge",
        help="Merge two configuration files",
        description="Options set in OVERRIDE replace the ones from BASE",
    )
    merge_parser.add_argument("base", help="Base configuration file")
    merge_parser.add_argument("override", help="Override configuration file")
    merge_parser.add_argument(
        "--format", choices=["yaml", "json"], default="yaml", help="Output format"
    )
    merge_parser.add_argument(
        "--modified-only",
        action="store_true",
        help="Only show explicitly set options",
    )
    merge_parser.set_defaults(func=config_merge_command)

    describe_parser = config_subparsers.add_parser(
        "describe",
        help="Describe options",
        description="Print each option with its description and default",
    )
    describe_parser.add_argument("section", nargs="?", help="Only this section")
    describe_parser.set_defaults(func=config_describe_command)


def add_run_subcommand(subparsers: argparse._SubParsersAction) -> None:
    run_parser = subparsers.add_parser(
        "run",
        help="Run Python test files",
        description="Discover test files, filter and run them",
    )
    run_parser.add_argument("paths", nargs="*", help="Files or directories to run")
    _add_source_arguments(run_parser)
    run_parser.add_argument(
        "--extension", help="Test file suffix searched for in directories"
    )
    run_parser.add_argument(
        "--definition",
        default="define",
        help="Name of the function that declares the tests in each file",
    )
    run_parser.add_argument("--tag", action="append", help="Include tag")
    run_parser.add_argument("--exclude-tag", action="append", help="Exclude tag")
    run_parser.add_argument("--full-name", action="append", help="Include full name")
    run_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )
    run_parser.set_defaults(func=run_command)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pester-runtime",
        description="Pester runtime object model and configuration",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    subparsers = parser.add_subparsers(
        dest="command", help="Available commands", required=True
    )
    add_config_subcommands(subparsers)
    add_run_subcommand(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the pester-runtime CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level="warning")

    try:
        return int(args.func(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        if e.source:
            print(f"Source: {e.source}", file=sys.stderr)
        return 2
    except RunFailedError as e:
        print(f"Run failed: {e}", file=sys.stderr)
        return failed_exit_code(e.run) if e.run is not None else 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
