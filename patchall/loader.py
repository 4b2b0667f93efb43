"""Dynamic loader discovery.

The loader usable on the host is found by asking ``ldd`` about the binary that
is running patchall itself (the Python interpreter). The text parsing is kept
separate from the process invocation so it can be fed canned ``ldd`` output.
"""

import logging
import os
import pathlib
import subprocess
import sys

LOADER_NAME: str = "ld-linux-x86-64.so.2"

_SELF_EXE: pathlib.Path = pathlib.Path("/proc/self/exe")


class LoaderResolutionError(RuntimeError):
    """Raised when the dynamic loader of a binary cannot be determined."""


def parse_loader(output: str) -> pathlib.Path:
    """Extract the dynamic loader path from ``ldd`` output.

    Only lines of the form ``<name> => <resolved> (<address>)`` are considered;
    the first ``<name>`` whose filename is :data:`LOADER_NAME` wins.

    :param output: Standard output of ``ldd``.
    :returns: Loader path as recorded in the binary.
    :raises LoaderResolutionError: If no line names the dynamic loader.
    """

    for line in output.splitlines():
        lib_end: int = line.find("=>")
        if lib_end < 0:
            continue
        lib: pathlib.Path = pathlib.Path(line[:lib_end].strip())
        if lib.name != LOADER_NAME:
            continue
        return lib

    raise LoaderResolutionError(
        "unable to determine path to dynamic loader. Note: patchall must run on a "
        "dynamically linked interpreter since it checks its own dynamic loader to "
        "determine the path to the dynamic loader."
    )


def query_loader(path: pathlib.Path, *, ldd: str, logger: logging.Logger) -> pathlib.Path:
    """Ask ``ldd`` which dynamic loader ``path`` is linked against.

    :param path: Binary to inspect.
    :param ldd: ``ldd`` command to invoke.
    :param logger: Logger for debug output.
    :returns: Loader path recorded in ``path``.
    :raises LoaderResolutionError: If ``ldd`` fails or reports no loader.
    """

    cmd: list[str] = [ldd, os.fspath(path)]
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"patchall: running {' '.join(cmd)}")

    try:
        proc = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as e:
        raise LoaderResolutionError(f"failed to run {ldd}: {e}") from e

    if proc.returncode != 0:
        err: str = proc.stderr.decode("utf-8", errors="replace").strip()
        raise LoaderResolutionError(err or f"{ldd} exited with status {proc.returncode} for {path}")

    return parse_loader(proc.stdout.decode("utf-8", errors="replace"))


def self_executable() -> pathlib.Path:
    """Return the canonical path of the running executable."""

    if _SELF_EXE.exists() is True:
        return _SELF_EXE.resolve(strict=True)
    return pathlib.Path(sys.executable).resolve()


def resolve_self_loader(*, ldd: str, logger: logging.Logger) -> pathlib.Path:
    """Resolve the loader that every patched ELF binary should use.

    Computed once per run; callers pass the result down explicitly.

    :param ldd: ``ldd`` command to invoke.
    :param logger: Logger for debug output.
    :returns: Loader path of the running executable.
    :raises LoaderResolutionError: If the loader cannot be determined.
    """

    exe: pathlib.Path = self_executable()
    loader: pathlib.Path = query_loader(exe, ldd=ldd, logger=logger)
    logger.debug(f"patchall: resolved loader {loader} from {exe}")
    return loader
