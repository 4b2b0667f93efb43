"""Run configuration.

External tool commands are resolved from explicit overrides first, then the
``PATCHALL_LDD`` / ``PATCHALL_PATCHELF`` environment variables, then the plain
command names (looked up on ``PATH`` at invocation time).
"""

from dataclasses import dataclass
import os
import pathlib
from typing import Mapping


class ConfigError(ValueError):
    """Raised when the run configuration is invalid."""


@dataclass(frozen=True, slots=True)
class ToolConfig:
    """External tools used by the patchers.

    :ivar ldd: Dependency-resolution command.
    :ivar patchelf: Interpreter-patch command.
    """

    ldd: str = "ldd"
    patchelf: str = "patchelf"


@dataclass(frozen=True, slots=True)
class SweepConfig:
    """Sweep configuration.

    :ivar roots: Directories (or files) to process, in order.
    :ivar dry_run: Report intended changes without writing anything.
    :ivar tools: External tool commands.
    """

    roots: tuple[pathlib.Path, ...]
    dry_run: bool
    tools: ToolConfig


def resolve_tool_config(
    *,
    ldd_override: str | None,
    patchelf_override: str | None,
    environ: Mapping[str, str] | None = None,
) -> ToolConfig:
    """Resolve external tool commands.

    :param ldd_override: Optional explicit ``ldd`` command.
    :param patchelf_override: Optional explicit ``patchelf`` command.
    :param environ: Environment to consult (defaults to ``os.environ``).
    :returns: Resolved tool config.
    """

    env: Mapping[str, str] = os.environ if environ is None else environ
    defaults: ToolConfig = ToolConfig()
    return ToolConfig(
        ldd=ldd_override or env.get("PATCHALL_LDD") or defaults.ldd,
        patchelf=patchelf_override or env.get("PATCHALL_PATCHELF") or defaults.patchelf,
    )


def resolve_sweep_config(
    *,
    roots: list[pathlib.Path],
    dry_run: bool,
    tools: ToolConfig,
) -> SweepConfig:
    """Build a :class:`~SweepConfig`.

    :param roots: Directories to process.
    :param dry_run: Dry-run flag.
    :param tools: Resolved tool config.
    :returns: Sweep config.
    :raises ConfigError: If no roots were given.
    """

    if len(roots) == 0:
        raise ConfigError("At least one directory is required.")
    return SweepConfig(roots=tuple(roots), dry_run=dry_run, tools=tools)
