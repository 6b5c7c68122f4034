"""Discover -> select -> resolve -> report -> copy, driven by a CopyConfig."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from revio_copy.aggregate import find_run, get_all_runs, select_run
from revio_copy.config import CopyConfig
from revio_copy.errors import ConfigError, RunPending
from revio_copy.models import CopySummary, IdentificationReport, RunView
from revio_copy.report import build_report
from revio_copy.resolve import identify_all_hifi_files
from revio_copy.transfer import FileCopier, check_rclone

logger = logging.getLogger(__name__)

# Given the ordered runs, return a zero-based index or None to cancel.
Selector = Callable[[list[RunView]], int | None]
# Called with the report before copying; returning False skips the copy.
Confirm = Callable[[IdentificationReport], bool]


@dataclass
class ProcessResult:
    runs: list[RunView] = field(default_factory=list)
    selected: RunView | None = None
    report: IdentificationReport | None = None
    copy_summary: CopySummary | None = None
    cancelled: bool = False


def require_root(config: CopyConfig) -> Path:
    if config.root is None:
        raise ConfigError("No root directory configured")
    return config.root


def discover(config: CopyConfig) -> list[RunView]:
    return get_all_runs(require_root(config), config.multiplex_policy)


def choose_run(
    runs: list[RunView], config: CopyConfig, selector: Selector | None = None
) -> RunView | None:
    """Pick the configured run, or ask selector until it names a complete run.

    Returns None when the selector cancels.
    """
    if config.run_name:
        return find_run(runs, config.run_name)
    if selector is None:
        raise ConfigError("No run name given and no interactive selection available")

    while True:
        index = selector(runs)
        if index is None:
            return None
        try:
            return select_run(runs, index)
        except RunPending as exc:
            logger.warning("%s", exc)


def identify(run: RunView, config: CopyConfig) -> IdentificationReport:
    """Resolve the run's files into config.output_dir and stat the sources."""
    if config.output_dir is None:
        raise ConfigError("No output directory configured")
    logger.debug("selected run has %d cells", len(run.cells))
    mappings = identify_all_hifi_files(
        run.cells, config.output_dir, config.multiplex_policy, run.name
    )
    return build_report(mappings)


def transfer(report: IdentificationReport, config: CopyConfig) -> CopySummary | None:
    """Copy the report's mappings; returns None when the report is not ready."""
    if not report.ready:
        logger.error(
            "Cannot proceed with copying: %d source files missing, %d shared destinations",
            report.missing_count, len(report.collisions),
        )
        return None
    copier = FileCopier(dry_run=config.dry_run, verbose=config.debug, rclone_bin=config.rclone_bin)
    return copier.copy_all(report.mappings)


def process_run(
    config: CopyConfig,
    selector: Selector | None = None,
    on_discovered: Callable[[list[RunView]], None] | None = None,
    on_selected: Callable[[RunView], None] | None = None,
    confirm: Confirm | None = None,
) -> ProcessResult:
    """Run the whole workflow, non-interactively or with callbacks.

    on_discovered and on_selected are notified as the workflow progresses.
    confirm sees the identification report and can veto the copy.
    """
    if config.output_dir is not None and not config.dry_run:
        check_rclone(config.rclone_bin)

    result = ProcessResult(runs=discover(config))
    if on_discovered:
        on_discovered(result.runs)

    result.selected = choose_run(result.runs, config, selector)
    if result.selected is None:
        result.cancelled = True
        return result
    if on_selected:
        on_selected(result.selected)

    if config.output_dir is None:
        return result

    result.report = identify(result.selected, config)
    if confirm and not confirm(result.report):
        return result
    result.copy_summary = transfer(result.report, config)
    return result
