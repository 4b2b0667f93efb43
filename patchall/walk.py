"""Lazy depth-first directory traversal."""

from dataclasses import dataclass
import os
import pathlib
import stat
from typing import Iterator

from patchall.classify import Candidate


@dataclass(frozen=True, slots=True)
class WalkError:
    """An entry that could not be listed or stat'd.

    :ivar path: Offending path.
    :ivar error: Underlying error.
    """

    path: pathlib.Path
    error: OSError


def walk(root: pathlib.Path) -> Iterator[Candidate | WalkError]:
    """Yield ``root`` and everything below it, depth-first.

    Entries within a directory are visited in name order. Symlinks are reported
    as non-regular candidates and never followed (``root`` itself is followed).
    Failures are yielded as :class:`~WalkError` and traversal continues.

    :param root: Directory or file to start from.
    """

    try:
        st: os.stat_result = os.stat(root)
    except OSError as e:
        yield WalkError(path=root, error=e)
        return

    yield Candidate.from_stat(root, st)
    if not stat.S_ISDIR(st.st_mode):
        return

    # One sorted listing per open directory; the deepest one is consumed first.
    pending: list[Iterator[os.DirEntry[str]]] = []
    yield from _open_dir(root, pending)
    while len(pending) > 0:
        entry: os.DirEntry[str] | None = next(pending[-1], None)
        if entry is None:
            pending.pop()
            continue

        path: pathlib.Path = pathlib.Path(entry.path)
        try:
            entry_st: os.stat_result = entry.stat(follow_symlinks=False)
        except OSError as e:
            yield WalkError(path=path, error=e)
            continue

        yield Candidate.from_stat(path, entry_st)
        if stat.S_ISDIR(entry_st.st_mode):
            yield from _open_dir(path, pending)


def _open_dir(directory: pathlib.Path, pending: list[Iterator[os.DirEntry[str]]]) -> Iterator[WalkError]:
    """List ``directory`` onto ``pending``, or yield why it cannot be listed."""

    try:
        with os.scandir(directory) as it:
            entries: list[os.DirEntry[str]] = sorted(it, key=lambda e: e.name)
    except OSError as e:
        yield WalkError(path=directory, error=e)
        return
    pending.append(iter(entries))
