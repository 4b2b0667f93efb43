"""Patch decisions and per-file failures."""

from dataclasses import dataclass
import enum
import pathlib


class ErrorKind(enum.Enum):
    """Which stage of per-file processing failed."""

    TRAVERSAL = "traversal"
    CLASSIFICATION_IO = "classification"
    ELF_PATCH = "elf"
    SHEBANG_REWRITE = "shebang"


class PatchError(RuntimeError):
    """Raised when a single file cannot be classified or patched."""

    kind: ErrorKind = ErrorKind.ELF_PATCH


class ClassificationError(PatchError):
    """Raised when the magic bytes of a candidate cannot be read."""

    kind = ErrorKind.CLASSIFICATION_IO


class ElfPatchError(PatchError):
    """Raised when the interpreter of an ELF binary cannot be resolved or set."""

    kind = ErrorKind.ELF_PATCH


class ShebangRewriteError(PatchError):
    """Raised when a script could not be read, written or renamed into place."""

    kind = ErrorKind.SHEBANG_REWRITE


@dataclass(frozen=True, slots=True)
class NoAction:
    """The file is left untouched."""

    def describe(self, path: pathlib.Path) -> str:
        return f"{path}: no change"


@dataclass(frozen=True, slots=True)
class RewriteElfInterpreter:
    """Point an ELF binary at a different dynamic loader.

    :ivar old: Loader currently recorded in the binary.
    :ivar new: Loader to record instead.
    """

    old: pathlib.Path
    new: pathlib.Path

    def describe(self, path: pathlib.Path) -> str:
        return f"patching {path} to use {self.new} instead of {self.old}"


@dataclass(frozen=True, slots=True)
class RewriteShebang:
    """Replace the ``#!`` line of a script.

    :ivar old_interpreter: Interpreter path named by the original line.
    :ivar new_invocation: New line contents without the ``#!`` prefix.
    """

    old_interpreter: str
    new_invocation: str

    def describe(self, path: pathlib.Path) -> str:
        return f"patching shebang of {path} to {self.new_invocation}"


PatchAction = NoAction | RewriteElfInterpreter | RewriteShebang
