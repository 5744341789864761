#!/usr/bin/env python3
"""
Tool Accuracy CLI

Commands for the end of an accuracy run:

  tool-accuracy summary         Write the HTML report and Markdown brief
  tool-accuracy update-status   Mark a run as done or failed
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path

from . import config
from .models import AccuracyRunStatus
from .storage import AccuracyResultNotFoundError, DiskResultStorage, StorageLockError
from .summary import format_accuracy, generate_test_summary


logger = logging.getLogger(__name__)


def get_commit_sha() -> str | None:
    """Commit SHA from configuration, or the current git HEAD."""
    if config.COMMIT_SHA:
        return config.COMMIT_SHA
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning(f"Could not determine commit SHA from git: {e}")
        return None
    return completed.stdout.strip() or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tool-accuracy",
        description="Summarise and manage tool calling accuracy runs",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default=str(config.RESULTS_DIR),
        help="Directory holding accuracy results",
    )
    parser.add_argument(
        "--commit",
        type=str,
        default=None,
        help="Commit SHA of the run (defaults to the configured SHA or git HEAD)",
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=config.RUN_ID,
        help="Accuracy run identifier",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary_parser = subparsers.add_parser("summary", help="Generate the run summary")
    summary_parser.add_argument(
        "--baseline-commit",
        type=str,
        default=config.BASELINE_COMMIT,
        help="Commit whose latest done run is the baseline",
    )
    summary_parser.add_argument(
        "--html",
        type=str,
        default=str(config.HTML_SUMMARY_FILE),
        help="Output path of the HTML report",
    )
    summary_parser.add_argument(
        "--markdown",
        type=str,
        default=str(config.MARKDOWN_BRIEF_FILE),
        help="Output path of the Markdown brief",
    )

    status_parser = subparsers.add_parser("update-status", help="Update the status of a run")
    status_parser.add_argument(
        "--status",
        type=str,
        choices=[AccuracyRunStatus.DONE.value, AccuracyRunStatus.FAILED.value],
        default=config.RUN_STATUS,
        help="New run status",
    )

    return parser


def run_summary(args: argparse.Namespace, storage: DiskResultStorage, commit_sha: str) -> int:
    summary = generate_test_summary(
        storage,
        commit_sha=commit_sha,
        run_id=args.run_id,
        baseline_commit=args.baseline_commit,
        html_path=Path(args.html),
        markdown_path=Path(args.markdown),
    )
    print(f"Prompts: {summary.total_prompts}  Models: {summary.total_models}")
    print(f"Average accuracy: {format_accuracy(summary.average_accuracy)}")
    if args.baseline_commit:
        print(f"Improved: {summary.responses_improved}  Regressed: {summary.responses_regressed}")
    return 0


def run_update_status(args: argparse.Namespace, storage: DiskResultStorage, commit_sha: str) -> int:
    if not args.run_id:
        logger.error("Cannot update run status without a run id")
        return 1
    if args.status not in (AccuracyRunStatus.DONE.value, AccuracyRunStatus.FAILED.value):
        logger.error(f"Invalid run status: {args.status!r}")
        return 1

    storage.update_run_status(commit_sha, args.run_id, AccuracyRunStatus(args.status))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    args = build_parser().parse_args(argv)

    commit_sha = args.commit or get_commit_sha()
    if not commit_sha:
        logger.error("Cannot proceed without a commit SHA")
        return 1

    storage = DiskResultStorage(args.results_dir)
    try:
        if args.command == "summary":
            return run_summary(args, storage, commit_sha)
        return run_update_status(args, storage, commit_sha)
    except (AccuracyResultNotFoundError, StorageLockError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        storage.close()


if __name__ == "__main__":
    sys.exit(main())
