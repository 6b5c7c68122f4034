"""Discover completed and pending Revio cells under a root directory."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from revio_copy.errors import DiscoveryFailed
from revio_copy.models import RunStatus, RunView

logger = logging.getLogger(__name__)

METADATA_DIR = "metadata"
METADATA_GLOB = "*.metadata.xml"
SENTINEL_PREFIX = "Transfer_Test_"
SENTINEL_SUFFIX = ".txt"


def _raise_walk_error(exc: OSError) -> None:
    raise DiscoveryFailed(exc.filename or "", exc.strerror or str(exc)) from exc


def iter_metadata_dirs(root: Path) -> Iterator[Path]:
    """Yield every directory named ``metadata`` below root, in sorted order.

    Each call walks the tree afresh. Walk errors raise DiscoveryFailed.
    """
    root = Path(root)
    if not root.is_dir():
        raise DiscoveryFailed(root, "not a directory")

    for dirpath, dirnames, _ in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        if os.path.basename(dirpath) == METADATA_DIR:
            yield Path(dirpath)


def is_preview(path: Path) -> bool:
    return "preview" in path.name.lower()


def descriptors_in(metadata_dir: Path) -> list[Path]:
    """Non-preview ``*.metadata.xml`` files directly inside metadata_dir."""
    return sorted(
        p for p in metadata_dir.glob(METADATA_GLOB)
        if p.is_file() and not is_preview(p)
    )


def sentinels_in(metadata_dir: Path) -> list[Path]:
    """``Transfer_Test_*.txt`` marker files directly inside metadata_dir."""
    try:
        children = sorted(metadata_dir.iterdir())
    except OSError as exc:
        raise DiscoveryFailed(metadata_dir, exc.strerror or str(exc)) from exc
    return [
        p for p in children
        if p.is_file()
        and p.name.startswith(SENTINEL_PREFIX)
        and p.name.endswith(SENTINEL_SUFFIX)
    ]


def find_metadata_files(root: Path) -> Iterator[Path]:
    """Yield descriptor paths for completed cells, skipping preview files."""
    for metadata_dir in iter_metadata_dirs(root):
        yield from descriptors_in(metadata_dir)


def infer_started_date(run_name: str) -> str:
    """Return the YYYYMMDD token of names like ``r84297_20250922_085610``.

    Returns an empty string when the second token is not a plausible date.
    """
    parts = run_name.split("_")
    if len(parts) < 2:
        return ""
    token = parts[1]
    if len(token) != 8 or not token.isdigit():
        return ""
    year, month, day = int(token[0:4]), int(token[4:6]), int(token[6:8])
    if year > 2000 and 1 <= month <= 12 and 1 <= day <= 31:
        return token
    return ""


def find_pending_runs(root: Path) -> dict[str, RunView]:
    """Find runs whose transfer has started but whose descriptor has not landed.

    A cell is pending when its metadata directory holds a sentinel marker and
    no (non-preview) descriptor. The run name is the first path segment below
    root.
    """
    root = Path(root)
    pending: dict[str, RunView] = {}

    for metadata_dir in iter_metadata_dirs(root):
        sentinels = sentinels_in(metadata_dir)
        if not sentinels or descriptors_in(metadata_dir):
            continue

        parts = sentinels[0].relative_to(root).parts
        if len(parts) < 3:
            logger.debug("ignoring sentinel outside a run directory: %s", sentinels[0])
            continue

        run_name = parts[0]
        if run_name in pending:
            continue

        logger.debug("pending cell for run %s at %s", run_name, metadata_dir)
        pending[run_name] = RunView(
            name=run_name,
            started_date=infer_started_date(run_name),
            status=RunStatus.PENDING,
        )

    return pending
