"""Command line interface for docker-layer-save."""

import argparse
import asyncio
import logging
import sys
from typing import Any, List, Optional

from . import __version__
from .analyze import diff_images, stats_images
from .core.cli_runtime import DockerCliRuntime
from .core.daemon_client import DockerDaemonClient
from .core.types import DaemonConfig, RetentionPolicy, SaveOptions, StatsOptions
from .exceptions import DockerSaveError
from .save import save_images

PROG = "docker-layer-save"


def _add_workdir_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-w",
        "--workdir",
        default=".",
        help="Directory for temporary export files (default: current directory)",
    )
    parser.add_argument(
        "-k",
        "--keep",
        action="store_true",
        help="Keep the temporary export directory afterwards",
    )
    parser.add_argument(
        "-c",
        "--cache-from",
        dest="cache_from",
        help="Use an already extracted export directory instead of exporting from docker",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with save, diff and stats sub-commands."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Save docker images to a tar archive, keeping only the newest layers",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-H",
        "--host",
        help="Docker daemon address (default: $DOCKER_HOST or unix:///var/run/docker.sock)",
    )
    parser.add_argument(
        "--runtime",
        choices=["api", "cli"],
        default="api",
        help="Talk to the Engine API directly or run the docker executable (default: api)",
    )
    parser.add_argument("--timeout", type=int, help="Daemon request timeout in seconds")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings")

    subparsers = parser.add_subparsers(dest="command", required=True)

    save = subparsers.add_parser(
        "save",
        help="Save images to a tar archive (streamed to STDOUT by default)",
    )
    save.add_argument("images", nargs="+", metavar="IMAGE")
    save.add_argument("-o", "--output", help="Write to a file, instead of STDOUT")
    retention = save.add_mutually_exclusive_group()
    retention.add_argument(
        "-l",
        "--last",
        help="Export the last n layers; one number for all images, "
        "or comma separated numbers for each image",
    )
    retention.add_argument(
        "-L",
        "--latest",
        action="store_true",
        help="Only export the latest layer of each image",
    )
    _add_workdir_options(save)

    diff = subparsers.add_parser("diff", help="Show layer differences between two images")
    diff.add_argument("images", nargs=2, metavar="IMAGE")

    stats = subparsers.add_parser(
        "stats", help="Show image layers with build command and size"
    )
    stats.add_argument("images", nargs="*", metavar="IMAGE")
    _add_workdir_options(stats)

    return parser


def configure_logging(args: argparse.Namespace) -> None:
    """Send log records to stderr; stdout may carry the archive."""
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def make_runtime(args: argparse.Namespace) -> Any:
    """Create the runtime client selected on the command line."""
    if args.runtime == "cli":
        return DockerCliRuntime()
    if args.host:
        config = DaemonConfig(host=args.host, timeout=args.timeout)
    else:
        config = DaemonConfig.from_env(timeout=args.timeout)
    return DockerDaemonClient(config)


def save_options_from_args(args: argparse.Namespace) -> SaveOptions:
    retention = None
    if args.latest:
        retention = RetentionPolicy.latest()
    elif args.last:
        retention = RetentionPolicy.parse(args.last)
    return SaveOptions(
        images=tuple(args.images),
        output=args.output,
        workdir=args.workdir,
        keep_temp_dir=args.keep,
        retention=retention,
        cache_dir=args.cache_from,
    )


def stats_options_from_args(args: argparse.Namespace) -> StatsOptions:
    return StatsOptions(
        images=tuple(args.images),
        workdir=args.workdir,
        keep_temp_dir=args.keep,
        cache_dir=args.cache_from,
    )


async def run_command(args: argparse.Namespace) -> None:
    """Dispatch a parsed command line."""
    # Build options first so bad flags fail before the daemon is contacted
    if args.command == "save":
        save_opts = save_options_from_args(args)
    elif args.command == "stats":
        stats_opts = stats_options_from_args(args)

    async with make_runtime(args) as runtime:
        if args.command == "save":
            await save_images(runtime, save_opts, out=sys.stdout.buffer)
        elif args.command == "diff":
            await diff_images(runtime, args.images, out=sys.stdout)
        elif args.command == "stats":
            await stats_images(runtime, stats_opts, out=sys.stdout)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the ``docker-layer-save`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args)

    try:
        asyncio.run(run_command(args))
    except (DockerSaveError, OSError) as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0
