"""Command line interface for patchall."""

import argparse
import logging
import pathlib
import sys

from patchall.config import ConfigError, SweepConfig, ToolConfig, resolve_sweep_config, resolve_tool_config
from patchall.loader import LoaderResolutionError
from patchall.sweep import run


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the patchall logger.

    Reports ("patching ...") are INFO and shown by default; ``-v`` adds the
    external commands being run, ``-q`` keeps warnings (the final error count)
    and ``-qq`` keeps only per-file errors.

    :param verbose: Number of ``-v`` flags.
    :param quiet: Number of ``-q`` flags; wins over ``verbose``.
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("patchall")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def main(argv: list[str] | None = None) -> int:
    """Run the patchall CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code. Per-file failures do not change it; only a loader that
        cannot be resolved (or bad configuration) yields ``1``.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="patchall",
        description="Patches all executable files in a directory for NixOS compatibility.",
    )
    parser.add_argument(
        "dirs",
        metavar="DIR",
        type=pathlib.Path,
        nargs="+",
        help="Specify a directory.",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Do a dry run. Don't actually patch anything, just print what actions would be performed.",
    )
    parser.add_argument(
        "--ldd",
        type=str,
        default=None,
        help="ldd command used to inspect binaries (default: $PATCHALL_LDD or 'ldd').",
    )
    parser.add_argument(
        "--patchelf",
        type=str,
        default=None,
        help="patchelf command used to set interpreters (default: $PATCHALL_PATCHELF or 'patchelf').",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass twice to only show errors.",
    )

    ns = parser.parse_args(argv)
    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)

    try:
        tools: ToolConfig = resolve_tool_config(ldd_override=ns.ldd, patchelf_override=ns.patchelf)
        config: SweepConfig = resolve_sweep_config(roots=ns.dirs, dry_run=ns.dry_run, tools=tools)
        run(config, logger=logger)
    except (ConfigError, LoaderResolutionError) as e:
        logger.error(f"patchall: {e}")
        return 1
    return 0
