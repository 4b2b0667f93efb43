"""Tests for ELF interpreter patching."""

from __future__ import annotations

import pytest

from patchall.actions import ElfPatchError, NoAction, RewriteElfInterpreter
from patchall.config import ToolConfig
from patchall.elf import patch_elf, plan_elf


def test_existing_interpreter_is_left_alone(tree, tmp_path, make_elf, write_file, tools, host_loader, patchelf_log, logger):
    present = write_file(tmp_path / "lib64" / "ld-linux-x86-64.so.2", b"loader")
    binary = make_elf(tree / "app", present)

    action = patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)

    assert action == NoAction()
    assert not patchelf_log.exists()


def test_missing_interpreter_is_repointed(tree, tmp_path, make_elf, tools, host_loader, patchelf_log, logger, caplog):
    gone = tmp_path / "nowhere" / "ld-linux-x86-64.so.2"
    binary = make_elf(tree / "app", gone)

    with caplog.at_level("INFO", logger=logger.name):
        action = patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)

    assert action == RewriteElfInterpreter(old=gone, new=host_loader)
    assert patchelf_log.read_text().split() == ["--set-interpreter", str(host_loader), str(binary)]
    assert f"patching {binary} to use {host_loader} instead of {gone}" in caplog.text


def test_dry_run_does_not_invoke_patchelf(tree, tmp_path, make_elf, tools, host_loader, patchelf_log, logger):
    gone = tmp_path / "nowhere" / "ld-linux-x86-64.so.2"
    binary = make_elf(tree / "app", gone)
    before = binary.read_bytes()

    action = patch_elf(binary, loader=host_loader, dry_run=True, tools=tools, logger=logger)

    assert action == plan_elf(binary, loader=host_loader, ldd=tools.ldd, logger=logger)
    assert not patchelf_log.exists()
    assert binary.read_bytes() == before


def test_patchelf_failure(tree, tmp_path, make_elf, fake_ldd, failing_patchelf, host_loader, logger):
    binary = make_elf(tree / "app", tmp_path / "nowhere" / "ld-linux-x86-64.so.2")
    tools = ToolConfig(ldd=str(fake_ldd), patchelf=str(failing_patchelf))

    with pytest.raises(ElfPatchError, match="exit=3"):
        patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)


def test_statically_linked_binary_is_an_error(tree, make_elf, tools, host_loader, patchelf_log, logger):
    binary = make_elf(tree / "static", None)

    with pytest.raises(ElfPatchError, match="not a dynamic executable"):
        patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)
    assert not patchelf_log.exists()


def test_missing_patchelf(tree, tmp_path, make_elf, fake_ldd, host_loader, logger):
    binary = make_elf(tree / "app", tmp_path / "nowhere" / "ld-linux-x86-64.so.2")
    tools = ToolConfig(ldd=str(fake_ldd), patchelf=str(tmp_path / "no-patchelf"))

    with pytest.raises(ElfPatchError, match="failed to run"):
        patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)


def test_unreadable_interpreter_path_counts_as_missing(tree, tmp_path, make_elf, tools, host_loader, patchelf_log, logger):
    too_long = tmp_path / ("x" * 300) / "ld-linux-x86-64.so.2"
    binary = make_elf(tree / "app", too_long)

    action = patch_elf(binary, loader=host_loader, dry_run=False, tools=tools, logger=logger)

    assert action == RewriteElfInterpreter(old=too_long, new=host_loader)
    assert patchelf_log.read_text().split() == ["--set-interpreter", str(host_loader), str(binary)]
