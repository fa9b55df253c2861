#!/usr/bin/env python3
"""Main entry point for repofan."""

from __future__ import annotations

import argparse
import asyncio
import shlex
import sys
from pathlib import Path

from .clone import CloneStatus, clone_missing
from .config import Config, load_config
from .errors import RepofanError
from .executor import Dispatcher
from .logging_utils import configure_logging
from .registry import TargetRegistry, scan_root, targets_to_json
from .reporter import ConsoleReporter


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_arg_parser() -> _ArgumentParser:
    parser = _ArgumentParser(
        prog="repofan",
        description="Run git commands across a set of registered repositories",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file (default: ~/.config/repofan/config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be specified multiple times)",
    )
    subparsers = parser.add_subparsers(dest="command", parser_class=_ArgumentParser)

    list_parser = subparsers.add_parser("list", help="List the repositories")
    list_parser.add_argument(
        "mode",
        nargs="?",
        choices=["full"],
        help="'full' prints the detailed format including configuration",
    )

    do_parser = subparsers.add_parser(
        "do", help="Execute a command in all repositories, or in one"
    )
    do_parser.add_argument("cmd", help="Command shortcut or quoted git arguments, e.g. 'pull --rebase'")
    do_parser.add_argument("repo", nargs="?", help="Only run in this repository")
    do_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        help="Maximum number of repositories processed at once (default: unbounded)",
    )
    do_parser.add_argument(
        "--no-logs",
        action="store_true",
        help="Disable logging to files",
    )
    do_parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )

    show_parser = subparsers.add_parser(
        "show", help="Show the command 'do' would run, without running it"
    )
    show_parser.add_argument("cmd", help="Command shortcut or quoted git arguments")
    show_parser.add_argument("repo", nargs="?", help="Only show this repository")

    subparsers.add_parser("clone", help="Clone the repositories that are missing")

    genrepos_parser = subparsers.add_parser(
        "genrepos",
        help="Print a JSON repository list for all git repositories under a root folder",
    )
    genrepos_parser.add_argument("root", type=Path, help="Root folder to scan")
    genrepos_parser.add_argument(
        "--with-config",
        action="store_true",
        help="Include the parsed git configuration of each repository",
    )

    help_parser = subparsers.add_parser("help", help="Print help for repofan or a command")
    help_parser.add_argument("topic", nargs="?", help="Command to describe")

    parser.set_defaults(subparsers=subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging(verbosity=args.verbose)
    reporter = ConsoleReporter()

    if args.command is None:
        reporter.info("repofan - run git commands across many repositories")
        print("Usage: repofan <command> [args]")
        print("Use 'repofan help' to see the list of available commands.")
        return 0

    if args.command == "help":
        return _print_help(parser, args.topic, reporter)

    if args.command == "genrepos":
        return _genrepos(args.root, args.with_config, reporter)

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        reporter.error(str(e))
        return 1
    except (ValueError, OSError) as e:
        reporter.error(f"Configuration error: {e}")
        return 1

    registry = TargetRegistry(config.repos_file)
    try:
        registry.load()
    except RepofanError as e:
        reporter.error(f"Error loading repositories: {e}")
        print(
            "The repository file is a JSON array of {name, local, remote} objects,"
            f" expected at {config.repos_file}",
            file=sys.stderr,
        )
        return 1

    for warning in registry.warnings:
        if registry.find_by_name(warning.target_name).local_path.exists():
            reporter.warning(str(warning))
        else:
            reporter.warning(f"{warning} -- Have you cloned this repository? Run <repofan clone>")

    try:
        if args.command == "list":
            reporter.print_targets(registry.targets, full=args.mode == "full")
            return 0
        if args.command == "clone":
            return _clone(registry, config, reporter)
        if args.command == "show":
            return _show(registry, config, args.cmd, args.repo, reporter)
        if args.command == "do":
            return _do(registry, config, args, reporter)
    except (RepofanError, ValueError, OSError) as e:
        reporter.error(str(e))
        return 1

    parser.error(f"unknown command '{args.command}'")
    return 1


def _print_help(parser: argparse.ArgumentParser, topic: str | None, reporter: ConsoleReporter) -> int:
    if topic is None:
        parser.print_help()
        return 0
    subparser = parser.get_default("subparsers").choices.get(topic)
    if subparser is None:
        reporter.error(f"Unknown command '{topic}'")
        return 1
    subparser.print_help()
    return 0


def _genrepos(root: Path, with_config: bool, reporter: ConsoleReporter) -> int:
    try:
        targets = scan_root(root)
    except RepofanError as e:
        reporter.error(f"Error generating repositories: {e}")
        return 1
    print(targets_to_json(targets, include_config=with_config))
    return 0


def _clone(registry: TargetRegistry, config: Config, reporter: ConsoleReporter) -> int:
    targets = registry.targets
    if not targets:
        reporter.info("No repositories found")
        return 0

    for result in clone_missing(targets, program=config.program):
        if result.status == CloneStatus.CLONED:
            print(f"Cloned {result.target_name}")
        elif result.status == CloneStatus.SKIPPED:
            reporter.info(f"Skipping {result.target_name}: {result.message}")
        else:
            reporter.error(f"Error cloning {result.target_name}: {result.message}")
    return 0


def _show(
    registry: TargetRegistry,
    config: Config,
    cmd: str,
    repo: str | None,
    reporter: ConsoleReporter,
) -> int:
    targets = [registry.find_by_name(repo)] if repo else registry.targets
    command_line = config.commands.resolve(cmd)
    command = shlex.join([config.program, *command_line])
    if not targets:
        reporter.info("No repositories found")
        return 0
    for target in targets:
        print(f"{target.name}: (cd {shlex.quote(str(target.local_path))} && {command})")
    return 0


def _do(
    registry: TargetRegistry,
    config: Config,
    args: argparse.Namespace,
    reporter: ConsoleReporter,
) -> int:
    targets = registry.targets
    if args.repo is None and not targets:
        reporter.info("No repositories found")
        return 0

    command_line = config.commands.resolve(args.cmd)
    max_concurrency = args.jobs if args.jobs is not None else config.max_concurrency
    log_dir = None if args.no_logs else config.log_dir

    if args.dashboard:
        # Imported lazily so the plain console path does not load textual
        from .dashboard import Dashboard

        working_set = [registry.find_by_name(args.repo)] if args.repo else targets
        app = Dashboard(
            working_set,
            command_line,
            program=config.program,
            max_concurrency=max_concurrency,
            log_dir=log_dir,
        )
        app.run()
        reporter.print_summary(app.outcomes)
        return 0

    command = " ".join(command_line)
    dispatcher = Dispatcher(
        program=config.program,
        on_outcome=lambda outcome: reporter.print_outcome(outcome, command),
        max_concurrency=max_concurrency,
        log_dir=log_dir,
    )
    outcomes = asyncio.run(dispatcher.run(targets, command_line, target_filter=args.repo))
    reporter.print_summary(outcomes)
    return 0


if __name__ == "__main__":
    sys.exit(main())
