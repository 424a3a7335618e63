"""CLI entry point for dispatching TAP test subjects."""

import argparse
import logging
import sys
from collections.abc import Sequence

from tap_dispatch.dispatcher import Dispatcher
from tap_dispatch.faults import (
    ConfigurationError,
    FaultKind,
    UsageError,
    parse_fault_kinds,
)
from tap_dispatch.models.config import DispatchConfig
from tap_dispatch.models.result import RunResult
from tap_dispatch.subjects.base import SubjectFactory
from tap_dispatch.subjects.loading import SubjectNotFoundError, load_subject

EXIT_USAGE = 2

RANGE_HELP = """\
ranges:
  A..B                       inclusive range of test indices
  -i, --include <range>...   include these ranges
                             (default: include everything)
  -x, --exclude <range>...   exclude these ranges
                             (default: exclude nothing)

The last range covering a test decides whether it runs. Tests no range
covers run only when no include range was given.
"""


def log_run_summary(log: logging.Logger, result: RunResult) -> None:
    """Log a summary of a finished dispatch run."""
    log.info(
        "Ran %d of %d planned assertion(s), %d failed",
        result.count,
        result.planned,
        result.failed,
    )
    if result.faults:
        kinds = ", ".join(k.name for k in FaultKind if k.name and k in result.faults)
        log.warning("Faults seen during the run: %s", kinds)


def fault_mask(kinds: str) -> FaultKind:
    """Parse the --fail-fast option."""
    try:
        return parse_fault_kinds(kinds)
    except UsageError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def run(
    subject: SubjectFactory,
    tokens: Sequence[str],
    config: DispatchConfig,
) -> int:
    """Dispatch the selected tests of ``subject`` and return the exit code."""
    log = logging.getLogger("tap_dispatch")

    dispatcher = Dispatcher(factory=subject, config=config)
    try:
        result = dispatcher.execute(tokens)
    except UsageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except ConfigurationError as exc:
        log.error("Cannot run %s: %s", dispatcher.subject_name, exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    log_run_summary(log, result)
    return result.exit_status


def build_parser(
    prog: str | None = None, *, with_subject: bool = True
) -> argparse.ArgumentParser:
    """Build the argument parser.

    Range tokens and the ``-i``/``-x`` mode flags are left unparsed so that
    their relative order survives; :func:`run` resolves them.
    """
    parser = argparse.ArgumentParser(
        prog=prog,
        usage="%(prog)s"
        + (" SUBJECT" if with_subject else "")
        + " [-h] [-t] [-e] [-v] [--fail-fast KINDS]"
        + " [[-i] <range>...] [-x <range>...]",
        description="Run numbered tests of a subject and report them as TAP",
        epilog=RANGE_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    if with_subject:
        parser.add_argument(
            "subject",
            help="Subject entry point name or package.module:ClassName reference",
        )
    parser.add_argument(
        "-t",
        "--trace",
        action="store_true",
        help="include stack traces for failed assertions and faults",
    )
    parser.add_argument(
        "-e",
        "--exit-code",
        action="store_true",
        help="set a non-zero exit code upon failure",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log dispatcher activity to standard error",
    )
    parser.add_argument(
        "--fail-fast",
        type=fault_mask,
        default=FaultKind(0),
        metavar="KINDS",
        help="comma-separated fault kinds to re-raise immediately "
        "(badplan, notmeth, badmeth, badinit, badcall, errinit, or all)",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def config_from_args(args: argparse.Namespace) -> DispatchConfig:
    return DispatchConfig(
        trace=args.trace, exit_code=args.exit_code, fatal=args.fail_fast
    )


def run_subject(
    subject: SubjectFactory, argv: Sequence[str], prog: str | None = None
) -> int:
    """Parse ``argv`` for a fixed subject and run it."""
    parser = build_parser(prog, with_subject=False)
    args, tokens = parser.parse_known_args(list(argv))
    configure_logging(args.verbose)
    return run(subject, tokens, config_from_args(args))


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args, tokens = parser.parse_known_args()
    configure_logging(args.verbose)

    try:
        subject = load_subject(args.subject)
    except SubjectNotFoundError as exc:
        parser.error(str(exc))

    sys.exit(run(subject, tokens, config_from_args(args)))


if __name__ == "__main__":  # pragma: no cover
    main()
