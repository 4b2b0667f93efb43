"""Shared fixtures for patchall tests.

External tools are replaced by small ``/bin/sh`` scripts:

- ``fake_ldd`` prints the contents of ``<file>.ldd`` when it exists and fails
  otherwise.
- ``fake_patchelf`` appends its arguments to a log file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

import pytest

from patchall.config import ToolConfig

LDD_SCRIPT = """#!/bin/sh
if [ -f "$1.ldd" ]; then
    cat "$1.ldd"
    exit 0
fi
echo "$1: not a dynamic executable" >&2
exit 1
"""


def ldd_line(loader: Path) -> str:
    """Render an ``ldd`` output line naming ``loader`` as the interpreter."""
    return f"\t{loader} => {loader} (0x00007f3c2a1b2000)\n"


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.patchall")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def tools_dir(tmp_path: Path) -> Path:
    d = tmp_path / "tools"
    d.mkdir()
    return d


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Directory that tests populate and sweep."""
    d = tmp_path / "tree"
    d.mkdir()
    return d


@pytest.fixture
def write_file() -> Callable[..., Path]:
    def _write(path: Path, content: bytes, mode: int = 0o755) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.chmod(path, mode)
        return path

    return _write


@pytest.fixture
def fake_ldd(tools_dir: Path, write_file: Callable[..., Path]) -> Path:
    return write_file(tools_dir / "ldd", LDD_SCRIPT.encode())


@pytest.fixture
def patchelf_log(tools_dir: Path) -> Path:
    return tools_dir / "patchelf.log"


@pytest.fixture
def fake_patchelf(tools_dir: Path, patchelf_log: Path, write_file: Callable[..., Path]) -> Path:
    script = f'#!/bin/sh\necho "$@" >> "{patchelf_log}"\nexit 0\n'
    return write_file(tools_dir / "patchelf", script.encode())


@pytest.fixture
def failing_patchelf(tools_dir: Path, write_file: Callable[..., Path]) -> Path:
    return write_file(tools_dir / "patchelf-broken", b"#!/bin/sh\nexit 3\n")


@pytest.fixture
def tools(fake_ldd: Path, fake_patchelf: Path) -> ToolConfig:
    return ToolConfig(ldd=str(fake_ldd), patchelf=str(fake_patchelf))


@pytest.fixture
def host_loader(tmp_path: Path) -> Path:
    """Loader the run should repoint binaries at."""
    return tmp_path / "store" / "glibc" / "lib" / "ld-linux-x86-64.so.2"


@pytest.fixture
def make_elf(write_file: Callable[..., Path]) -> Callable[[Path, Path | None], Path]:
    """Create a fake dynamically linked ELF whose ``ldd`` output names ``interp``.

    ``interp=None`` models a statically linked binary (``ldd`` fails).
    """

    def _make(path: Path, interp: Path | None) -> Path:
        write_file(path, b"\x7fELF\x02\x01\x01\x00" + b"\x00" * 56)
        if interp is not None:
            ldd_out = "\tlinux-vdso.so.1 (0x00007ffd4b3f2000)\n"
            ldd_out += "\tlibc.so.6 => /lib/x86_64-linux-gnu/libc.so.6 (0x00007f3c2a000000)\n"
            ldd_out += ldd_line(interp)
            Path(f"{path}.ldd").write_text(ldd_out)
        return path

    return _make
