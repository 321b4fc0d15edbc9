"""CLI entry point for artmorph.cli module.

Usage:
    python -m artmorph.cli serve               # API process with embedded worker
    python -m artmorph.cli worker              # standalone generation worker
    python -m artmorph.cli inspect-job <id>    # print a job and its history
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from uuid import UUID

from artmorph.cli import inspect_job, run_worker


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        prog="python -m artmorph.cli",
        description="ArtMorph generation backend commands",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the HTTP application with the embedded worker")

    subparsers.add_parser("worker", help="Run the generation worker until interrupted")

    inspect_parser = subparsers.add_parser("inspect-job", help="Print a job and its history")
    inspect_parser.add_argument("job_id", type=UUID, help="Generation job id")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry point for CLI."""
    args = parse_args(argv)

    if args.command == "serve":
        return run_worker.serve(verbose=args.verbose)
    if args.command == "worker":
        return asyncio.run(run_worker.async_main(verbose=args.verbose))
    return asyncio.run(inspect_job.async_main(args.job_id, verbose=args.verbose))


if __name__ == "__main__":
    sys.exit(main())
