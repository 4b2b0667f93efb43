"""Shebang rewriting.

Scripts whose ``#!`` line names an interpreter under one of the FHS system
roots are rewritten to go through ``/usr/bin/env`` instead:

- ``#!/usr/bin/python3 -u`` becomes ``#!/usr/bin/env python3 -u``.
- ``#!/bin/sh`` and ``#!/usr/bin/env ...`` are left as they are.
- Everything after the first newline is copied byte-for-byte.

The new file is written next to the original and renamed over it, so readers
only ever see the old or the new contents.
"""

from dataclasses import dataclass
import itertools
import logging
import os
import pathlib
import stat
import tempfile
from typing import BinaryIO, Iterable, Iterator

from patchall.actions import NoAction, PatchAction, RewriteShebang, ShebangRewriteError

ENV_PATH: str = "/usr/bin/env"

PORTABLE_INTERPRETERS: frozenset[str] = frozenset({"/bin/sh", ENV_PATH})

SYSTEM_PREFIXES: tuple[str, ...] = ("/bin", "/lib", "/lib64", "/sbin", "/usr")

LINE_CHUNK_SIZE: int = 256
COPY_CHUNK_SIZE: int = 64 * 1024


class LineReader:
    """Buffered reader that hands out one line at a time.

    Bytes read past the end of the line are kept and returned first by
    :meth:`iter_remainder`, so nothing is lost between the two calls.
    """

    def __init__(self, f: BinaryIO, *, chunk_size: int = LINE_CHUNK_SIZE) -> None:
        self._f: BinaryIO = f
        self._chunk_size: int = chunk_size
        self._buf: bytearray = bytearray()

    def read_line(self) -> bytes:
        """Read up to and including the next ``\\n``.

        :returns: The line with its terminator, or whatever was left before EOF
            (without a terminator; empty at EOF).
        """

        scanned: int = 0
        while True:
            idx: int = self._buf.find(b"\n", scanned)
            if idx >= 0:
                line: bytes = bytes(self._buf[: idx + 1])
                del self._buf[: idx + 1]
                return line

            scanned = len(self._buf)
            chunk: bytes = self._f.read(self._chunk_size)
            if len(chunk) == 0:
                rest: bytes = bytes(self._buf)
                self._buf.clear()
                return rest
            self._buf += chunk

    def iter_remainder(self, *, chunk_size: int = COPY_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield every byte not yet returned by :meth:`read_line`."""

        if len(self._buf) > 0:
            pending: bytes = bytes(self._buf)
            self._buf.clear()
            yield pending

        while True:
            chunk: bytes = self._f.read(chunk_size)
            if len(chunk) == 0:
                return
            yield chunk


@dataclass(frozen=True, slots=True)
class ShebangLine:
    """A parsed ``#!`` line.

    :ivar interpreter_path: First token after ``#!``.
    :ivar extra_args: Remaining tokens, in order.
    """

    interpreter_path: str
    extra_args: tuple[str, ...]


def parse_shebang(header: bytes) -> ShebangLine | None:
    """Parse the first line of a script.

    :param header: First line without its ``\\n`` terminator.
    :returns: Parsed line, or ``None`` if it is not a usable shebang (missing
        ``#!``, not UTF-8, or no interpreter token).
    """

    if header.startswith(b"#!") is False:
        return None
    try:
        text: str = header.decode("utf-8")
    except UnicodeDecodeError:
        return None

    tokens: list[str] = text[2:].split()
    if len(tokens) == 0:
        return None
    return ShebangLine(interpreter_path=tokens[0], extra_args=tuple(tokens[1:]))


def plan_shebang(line: ShebangLine) -> PatchAction:
    """Decide how a shebang line should be rewritten.

    :param line: Parsed shebang line.
    :returns: :class:`~NoAction` or :class:`~RewriteShebang`.
    """

    interpreter: str = line.interpreter_path
    if interpreter in PORTABLE_INTERPRETERS:
        return NoAction()
    # Plain string prefixes: "/usrlocal/x" counts as being under "/usr".
    if any(interpreter.startswith(prefix) for prefix in SYSTEM_PREFIXES) is False:
        return NoAction()

    name: str | None = _interpreter_name(interpreter)
    if name is None:
        return NoAction()

    invocation: str = " ".join([ENV_PATH, name, *line.extra_args])
    return RewriteShebang(old_interpreter=interpreter, new_invocation=invocation)


def patch_shebang(path: pathlib.Path, *, dry_run: bool, logger: logging.Logger) -> PatchAction:
    """Rewrite the shebang of ``path`` to use ``/usr/bin/env`` when needed.

    Files without a newline anywhere are never touched.

    :param path: Script path.
    :param dry_run: Only report the intended change.
    :param logger: Logger.
    :returns: The decided action (applied unless ``dry_run``).
    :raises ShebangRewriteError: If reading, writing or renaming fails.
    """

    try:
        with open(path, "rb") as f:
            reader: LineReader = LineReader(f)
            first: bytes = reader.read_line()
            if first.endswith(b"\n") is False:
                return NoAction()

            shebang: ShebangLine | None = parse_shebang(first[:-1])
            if shebang is None:
                return NoAction()

            action: PatchAction = plan_shebang(shebang)
            if not isinstance(action, RewriteShebang):
                return action

            logger.info(f"patchall: {action.describe(path)}")
            if dry_run is True:
                return action

            header: bytes = f"#!{action.new_invocation}\n".encode("utf-8")
            _replace_file(path, itertools.chain([header], reader.iter_remainder()))
    except OSError as e:
        raise ShebangRewriteError(f"{path}: {e}") from e

    return action


def _interpreter_name(interpreter: str) -> str | None:
    """Return the final path component of an interpreter path, if usable."""

    name: str = pathlib.PurePosixPath(interpreter).name
    if name in ("", ".", ".."):
        return None
    return name


def _replace_file(path: pathlib.Path, chunks: Iterable[bytes]) -> None:
    """Atomically replace ``path`` with ``chunks``.

    The temp file lives in the same directory so the final rename stays on one
    filesystem. Permission bits of the original are carried over.

    :param path: File to replace.
    :param chunks: New contents.
    :raises OSError: If any step fails; the temp file is removed.
    """

    mode: int = stat.S_IMODE(os.stat(path).st_mode)
    tmp = tempfile.NamedTemporaryFile(
        dir=path.parent,
        prefix=f".{path.name}.patchall-",
        delete=False,
    )
    tmp_path: pathlib.Path = pathlib.Path(tmp.name)
    try:
        with tmp:
            for chunk in chunks:
                tmp.write(chunk)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
