from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from blok.app import apply_plan, diff_ontology, plan_ontology, sync_ontology
from blok.config import configure_logging, level_for

from .render import render_build_errors, render_change_set, render_plan, render_report

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths",
        nargs="+",
        help="Declaration JSON files or directories searched for *.json",
    )
    parser.add_argument(
        "--override",
        dest="overrides",
        action="append",
        default=[],
        metavar="FILE",
        help="Declaration file whose types replace the local ones (repeatable)",
    )
    parser.add_argument(
        "--managed-prefix",
        dest="managed_prefixes",
        action="append",
        default=None,
        metavar="PREFIX",
        help="Identifier prefix owned by this project; defaults to BLOK_MANAGED_PREFIXES",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="blok",
        description="Reconcile local ontology declarations with a type registry",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="count", default=0, help="Log debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings")
    subparsers = parser.add_subparsers(dest="command", required=True)

    diff = subparsers.add_parser("diff", help="Show how the registry differs (read-only)")
    _add_source_arguments(diff)
    diff.add_argument(
        "--show-unchanged",
        action="store_true",
        help="Also list types that need no change",
    )

    plan = subparsers.add_parser("plan", help="Compile the ordered write plan (read-only)")
    _add_source_arguments(plan)
    plan.add_argument("--out", metavar="FILE", help="Write the plan to a JSON file for 'apply'")

    sync = subparsers.add_parser("sync", help="Diff, plan and apply in one go")
    _add_source_arguments(sync)
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the executor without writing to the registry",
    )

    apply = subparsers.add_parser("apply", help="Execute a plan file")
    apply.add_argument("plan_file", metavar="FILE", help="Plan file written by 'plan --out'")
    apply.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the executor without writing to the registry",
    )

    return parser.parse_args(list(argv))


def _run_command(args: argparse.Namespace) -> int:
    if args.command == "diff":
        outcome = diff_ontology(
            args.paths,
            overrides=args.overrides,
            managed_prefixes=args.managed_prefixes,
        )
        _emit(render_build_errors(outcome.build.errors))
        _emit(render_change_set(outcome.change_set, show_unchanged=args.show_unchanged))
        return 1 if outcome.build.errors else 0

    if args.command == "plan":
        planned = plan_ontology(
            args.paths,
            out=args.out,
            overrides=args.overrides,
            managed_prefixes=args.managed_prefixes,
        )
        _emit(render_build_errors(planned.build.errors))
        _emit(render_plan(planned.plan))
        return 1 if planned.build.errors else 0

    if args.command == "sync":
        synced = sync_ontology(
            args.paths,
            overrides=args.overrides,
            managed_prefixes=args.managed_prefixes,
            dry_run=args.dry_run,
        )
        _emit(render_build_errors(synced.build.errors))
        _emit(render_report(synced.report))
        return synced.exit_code

    if args.command == "apply":
        report = apply_plan(args.plan_file, dry_run=args.dry_run)
        _emit(render_report(report))
        return report.exit_code

    raise ValueError(f"Unsupported command: {args.command}")


def _emit(text: str) -> None:
    if text:
        print(text)  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=level_for(verbose=parsed_args.verbose, quiet=parsed_args.quiet))

    try:
        exit_code = _run_command(parsed_args)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(130)


def run() -> None:
    """Console script entry: load ``.env`` and handle Ctrl+C before ``main``."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
