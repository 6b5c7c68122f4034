"""Group parsed cells into runs, merge pending runs, and order the result."""
from __future__ import annotations

import functools
import logging
from pathlib import Path

from revio_copy.discover import find_metadata_files, find_pending_runs
from revio_copy.errors import DiscoveryFailed, NoRunsFound, RevioCopyError, RunNotFound, RunPending
from revio_copy.metadata import MultiplexPolicy, parse_metadata_file
from revio_copy.models import RunStatus, RunView

logger = logging.getLogger(__name__)


def group_cells(
    metadata_files: list[Path],
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> dict[str, RunView]:
    """Parse descriptors and group them by run name.

    Unreadable or malformed descriptors are logged and skipped.
    """
    runs: dict[str, RunView] = {}
    for path in metadata_files:
        try:
            cell = parse_metadata_file(path, policy)
        except (RevioCopyError, OSError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            continue

        run = runs.get(cell.run_name)
        if run is None:
            run = RunView(name=cell.run_name, status=RunStatus.COMPLETE)
            runs[cell.run_name] = run
        run.add_cell(cell)
    return runs


def date_key(started: str) -> str:
    """Reduce an ISO timestamp or a compact run-name date to digits for ordering.

    ``2025-09-22T11:00:00Z`` becomes ``20250922110000`` and ``20250922`` stays
    as is, so both forms compare by calendar date first.
    """
    return "".join(ch for ch in started if ch.isdigit())


def _compare_runs(a: RunView, b: RunView) -> int:
    ka, kb = date_key(a.started_date), date_key(b.started_date)
    if ka and kb and ka != kb:
        return -1 if ka > kb else 1
    if a.name == b.name:
        return 0
    return -1 if a.name > b.name else 1


def sort_runs(runs: list[RunView]) -> list[RunView]:
    """Newest started date first; name descending when a date is missing or tied."""
    return sorted(runs, key=functools.cmp_to_key(_compare_runs))


def get_all_runs(
    root: Path,
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> list[RunView]:
    """Discover, parse and aggregate every run under root.

    A failed scan for completed cells is tolerated when pending runs were
    found; the scan error is re-raised otherwise.
    """
    root = Path(root)

    scan_error: DiscoveryFailed | None = None
    try:
        metadata_files = list(find_metadata_files(root))
    except DiscoveryFailed as exc:
        logger.warning("Scan for completed runs failed: %s", exc)
        scan_error = exc
        metadata_files = []

    logger.debug("found %d metadata files under %s", len(metadata_files), root)
    runs = group_cells(metadata_files, policy)

    try:
        pending = find_pending_runs(root)
    except DiscoveryFailed as exc:
        if scan_error is not None:
            raise scan_error from exc
        logger.warning("Scan for pending runs failed: %s", exc)
        pending = {}

    for name, run in pending.items():
        if name not in runs:
            runs[name] = run

    if not runs:
        if scan_error is not None:
            raise scan_error
        raise NoRunsFound(root)

    return sort_runs(list(runs.values()))


def find_run(runs: list[RunView], name: str) -> RunView:
    """Return the run called name; pending runs are refused."""
    for run in runs:
        if run.name == name:
            if run.is_pending:
                raise RunPending(name)
            return run
    raise RunNotFound(name)


def select_run(runs: list[RunView], index: int) -> RunView:
    """Return the run at a zero-based index; pending runs are refused."""
    if index < 0 or index >= len(runs):
        raise RunNotFound(f"#{index + 1}")
    run = runs[index]
    if run.is_pending:
        raise RunPending(run.name)
    return run
