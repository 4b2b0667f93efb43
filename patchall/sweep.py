"""Sweep driver.

Every candidate produces a :class:`~FileOutcome`; outcomes are folded into a
:class:`~SweepSummary`. Per-file failures are logged as they happen and never
stop the sweep.
"""

from dataclasses import dataclass, field, replace
import logging
import pathlib

from patchall.actions import ErrorKind, NoAction, PatchAction, PatchError
from patchall.classify import Candidate, FileKind, classify
from patchall.config import SweepConfig
from patchall.elf import patch_elf
from patchall.loader import resolve_self_loader
from patchall.shebang import patch_shebang
from patchall.walk import WalkError, walk


@dataclass(frozen=True, slots=True)
class FileOutcome:
    """Result of processing one filesystem entry.

    :ivar path: Entry path.
    :ivar action: Decided action (``NoAction`` on failure).
    :ivar error_kind: Failure stage, or ``None`` on success.
    :ivar message: Failure message (empty on success).
    """

    path: pathlib.Path
    action: PatchAction
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.error_kind is not None


@dataclass(frozen=True, slots=True)
class SweepSummary:
    """Aggregate of all outcomes in a run.

    :ivar examined: Number of entries seen.
    :ivar changed: Number of files patched (or that would be, in dry-run).
    :ivar failures: Failed outcomes, in order.
    """

    examined: int = 0
    changed: int = 0
    failures: tuple[FileOutcome, ...] = field(default_factory=tuple)

    @property
    def error_count(self) -> int:
        return len(self.failures)

    def add(self, outcome: FileOutcome) -> "SweepSummary":
        """Return a new summary that includes ``outcome``."""

        if outcome.failed is True:
            return replace(self, examined=self.examined + 1, failures=(*self.failures, outcome))
        changed: int = self.changed
        if not isinstance(outcome.action, NoAction):
            changed += 1
        return replace(self, examined=self.examined + 1, changed=changed)


def process_candidate(
    candidate: Candidate,
    *,
    loader: pathlib.Path,
    config: SweepConfig,
    logger: logging.Logger,
) -> FileOutcome:
    """Classify and patch a single candidate.

    :param candidate: Entry to process.
    :param loader: Loader resolved for this run.
    :param config: Sweep config.
    :param logger: Logger.
    :returns: Outcome; :class:`~PatchError` is reported here rather than raised.
    """

    try:
        kind: FileKind = classify(candidate)
        action: PatchAction
        if kind is FileKind.ELF_BINARY:
            action = patch_elf(
                candidate.path,
                loader=loader,
                dry_run=config.dry_run,
                tools=config.tools,
                logger=logger,
            )
        elif kind is FileKind.SHEBANG_SCRIPT:
            action = patch_shebang(candidate.path, dry_run=config.dry_run, logger=logger)
        else:
            action = NoAction()
    except PatchError as e:
        logger.error(f"patchall: {e}")
        return FileOutcome(path=candidate.path, action=NoAction(), error_kind=e.kind, message=str(e))

    return FileOutcome(path=candidate.path, action=action)


def sweep(config: SweepConfig, *, loader: pathlib.Path, logger: logging.Logger) -> SweepSummary:
    """Process every entry under every root, in order.

    :param config: Sweep config.
    :param loader: Loader resolved for this run.
    :param logger: Logger.
    :returns: Summary of the run.
    """

    summary: SweepSummary = SweepSummary()
    for root in config.roots:
        for entry in walk(root):
            outcome: FileOutcome
            if isinstance(entry, WalkError):
                message: str = f"{entry.path}: {entry.error}"
                logger.error(f"patchall: {message}")
                outcome = FileOutcome(
                    path=entry.path,
                    action=NoAction(),
                    error_kind=ErrorKind.TRAVERSAL,
                    message=message,
                )
            else:
                outcome = process_candidate(entry, loader=loader, config=config, logger=logger)
            summary = summary.add(outcome)
    return summary


def run(config: SweepConfig, *, logger: logging.Logger) -> SweepSummary:
    """Resolve the host loader once, then sweep.

    :param config: Sweep config.
    :param logger: Logger.
    :returns: Summary of the run.
    :raises LoaderResolutionError: If the host loader cannot be determined;
        no file has been touched at that point.
    """

    loader: pathlib.Path = resolve_self_loader(ldd=config.tools.ldd, logger=logger)
    if config.dry_run is True:
        logger.info("patchall: dry run; no files will be modified")

    summary: SweepSummary = sweep(config, loader=loader, logger=logger)
    logger.debug(
        f"patchall: examined={summary.examined} changed={summary.changed} errors={summary.error_count}"
    )
    if summary.error_count > 0:
        logger.warning(f"patchall: Finished. {summary.error_count} errors occurred")
    return summary
