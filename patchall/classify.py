"""Candidate classification by magic bytes."""

from dataclasses import dataclass
import enum
import os
import pathlib
import stat

from patchall.actions import ClassificationError

MAGIC_LEN: int = 4
ELF_MAGIC: bytes = b"\x7fELF"
SHEBANG_MAGIC: bytes = b"#!"

_EXEC_BITS: int = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class FileKind(enum.Enum):
    """What a candidate looks like from its first bytes."""

    UNINTERESTING = "uninteresting"
    ELF_BINARY = "elf"
    SHEBANG_SCRIPT = "shebang"


@dataclass(frozen=True, slots=True)
class Candidate:
    """A filesystem entry produced by traversal.

    :ivar path: Entry path.
    :ivar is_regular: ``True`` for regular files (symlinks are not followed).
    :ivar is_executable: ``True`` if any execute bit is set.
    :ivar size: Size in bytes.
    """

    path: pathlib.Path
    is_regular: bool
    is_executable: bool
    size: int

    @classmethod
    def from_stat(cls, path: pathlib.Path, st: os.stat_result) -> "Candidate":
        return cls(
            path=path,
            is_regular=stat.S_ISREG(st.st_mode),
            is_executable=(st.st_mode & _EXEC_BITS) != 0,
            size=st.st_size,
        )


def classify(candidate: Candidate) -> FileKind:
    """Classify a candidate.

    The file is only opened when it is a regular, executable file of at least
    :data:`MAGIC_LEN` bytes, and then only the first :data:`MAGIC_LEN` bytes are
    read.

    :param candidate: Candidate to classify.
    :returns: Detected kind.
    :raises ClassificationError: If the magic bytes cannot be read.
    """

    if candidate.is_regular is False:
        return FileKind.UNINTERESTING
    if candidate.is_executable is False:
        return FileKind.UNINTERESTING
    if candidate.size < MAGIC_LEN:
        return FileKind.UNINTERESTING

    try:
        with open(candidate.path, "rb") as f:
            magic: bytes = f.read(MAGIC_LEN)
    except OSError as e:
        raise ClassificationError(f"{candidate.path}: cannot read magic bytes: {e}") from e

    if len(magic) < MAGIC_LEN:
        # Truncated between stat and open.
        return FileKind.UNINTERESTING
    if magic == ELF_MAGIC:
        return FileKind.ELF_BINARY
    if magic[:2] == SHEBANG_MAGIC:
        return FileKind.SHEBANG_SCRIPT
    return FileKind.UNINTERESTING
