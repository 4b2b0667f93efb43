"""ELF interpreter patching.

Deciding is done here; the actual rewrite of the ``PT_INTERP`` segment is left
to ``patchelf``.
"""

import logging
import os
import pathlib
import subprocess

from patchall.actions import ElfPatchError, NoAction, PatchAction, RewriteElfInterpreter
from patchall.config import ToolConfig
from patchall.loader import LoaderResolutionError, query_loader


def plan_elf(
    path: pathlib.Path,
    *,
    loader: pathlib.Path,
    ldd: str,
    logger: logging.Logger,
) -> PatchAction:
    """Decide whether an ELF binary needs a new interpreter.

    A binary whose current interpreter exists on disk is left alone, even if it
    differs from ``loader``.

    :param path: ELF binary.
    :param loader: Loader the binary should use.
    :param ldd: ``ldd`` command.
    :param logger: Logger for debug output.
    :returns: :class:`~NoAction` or :class:`~RewriteElfInterpreter`.
    :raises ElfPatchError: If the current interpreter cannot be determined
        (this includes statically linked binaries).
    """

    try:
        current: pathlib.Path = query_loader(path, ldd=ldd, logger=logger)
    except LoaderResolutionError as e:
        raise ElfPatchError(f"{path}: {e}") from e

    # Unreadable paths (too long, unsearchable parent) count as missing.
    if os.path.exists(current) is True:
        return NoAction()
    return RewriteElfInterpreter(old=current, new=loader)


def apply_elf(
    path: pathlib.Path,
    action: RewriteElfInterpreter,
    *,
    patchelf: str,
    logger: logging.Logger,
) -> None:
    """Set the interpreter of ``path`` in place with ``patchelf``.

    :param path: ELF binary.
    :param action: Planned rewrite.
    :param patchelf: ``patchelf`` command.
    :param logger: Logger for debug output.
    :raises ElfPatchError: If ``patchelf`` cannot be run or fails.
    """

    cmd: list[str] = [patchelf, "--set-interpreter", os.fspath(action.new), os.fspath(path)]
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"patchall: running {' '.join(cmd)}")

    try:
        proc = subprocess.run(cmd, check=False)
    except OSError as e:
        raise ElfPatchError(f"{path}: failed to run {patchelf}: {e}") from e
    if proc.returncode != 0:
        raise ElfPatchError(f"{path}: {patchelf} failed (exit={proc.returncode})")


def patch_elf(
    path: pathlib.Path,
    *,
    loader: pathlib.Path,
    dry_run: bool,
    tools: ToolConfig,
    logger: logging.Logger,
) -> PatchAction:
    """Repoint an ELF binary at ``loader`` if its current loader is missing.

    :param path: ELF binary.
    :param loader: Loader resolved for this run.
    :param dry_run: Only report the intended change.
    :param tools: External tool commands.
    :param logger: Logger.
    :returns: The decided action (applied unless ``dry_run``).
    :raises ElfPatchError: If resolution or patching fails.
    """

    action: PatchAction = plan_elf(path, loader=loader, ldd=tools.ldd, logger=logger)
    if not isinstance(action, RewriteElfInterpreter):
        return action

    logger.info(f"patchall: {action.describe(path)}")
    if dry_run is True:
        return action

    apply_elf(path, action, patchelf=tools.patchelf, logger=logger)
    return action
