"""Resolve which hifi_reads BAM/PBI files belong to which biosample."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from revio_copy.errors import (
    IndexFileMissing,
    NoFilesIdentified,
    NoReadFiles,
    RevioCopyError,
    SourceDirMissing,
)
from revio_copy.metadata import MultiplexPolicy, is_multiplex
from revio_copy.models import CellMetadata, FileMapping, SampleIdentity

logger = logging.getLogger(__name__)

HIFI_DIR = "hifi_reads"
HIFI_BAM_GLOB = "*.hifi_reads.bam"
METADATA_SUFFIX = ".metadata.xml"
PBI_SUFFIX = ".pbi"
BARCODE_PAIR_SEP = "--"


def hifi_dir_for(metadata_path: Path) -> Path:
    """``<cell>/metadata/x.metadata.xml`` -> ``<cell>/hifi_reads``."""
    return Path(metadata_path).parent.parent / HIFI_DIR


def movie_name(metadata_path: Path) -> str:
    name = Path(metadata_path).name
    if name.endswith(METADATA_SUFFIX):
        return name[: -len(METADATA_SUFFIX)]
    return Path(name).stem


def forward_barcode(barcode: str) -> str:
    """Forward half of a ``fwd--rev`` barcode pair."""
    return barcode.split(BARCODE_PAIR_SEP, 1)[0]


def destination_for(output_dir: Path, sample_name: str) -> tuple[Path, Path]:
    dest_dir = Path(output_dir) / f"Sample_{sample_name}"
    dest_bam = dest_dir / f"{sample_name}.mod.unmapped.bam"
    return dest_bam, dest_dir / f"{dest_bam.name}{PBI_SUFFIX}"


def make_mapping(bam: Path, sample_name: str, output_dir: Path) -> FileMapping:
    dest_bam, dest_pbi = destination_for(output_dir, sample_name)
    return FileMapping(
        source_bam=bam,
        source_pbi=bam.with_name(bam.name + PBI_SUFFIX),
        dest_bam=dest_bam,
        dest_pbi=dest_pbi,
        sample_name=sample_name,
    )


def pick_single_bam(bam_files: Sequence[Path], movie: str) -> Path:
    """Choose one BAM for a single-sample cell.

    Prefers the first file named after the cell's movie, then the first file
    in sorted order.
    """
    ordered = sorted(bam_files)
    for bam in ordered:
        if movie and bam.name.startswith(movie):
            return bam
    return ordered[0]


def _identify_single(
    metadata_path: Path,
    hifi_dir: Path,
    samples: Sequence[SampleIdentity],
    output_dir: Path,
) -> list[FileMapping]:
    bam_files = sorted(hifi_dir.glob(HIFI_BAM_GLOB))
    logger.debug("found %d BAM files matching %s", len(bam_files), HIFI_BAM_GLOB)
    if not bam_files:
        raise NoReadFiles(hifi_dir)

    bam = pick_single_bam(bam_files, movie_name(metadata_path))
    if len(bam_files) > 1:
        logger.warning(
            "%d HiFi BAM files in %s, using %s", len(bam_files), hifi_dir, bam.name
        )

    mapping = make_mapping(bam, samples[0].name, output_dir)
    if not mapping.source_pbi.is_file():
        raise IndexFileMissing(bam)

    if len({s.name for s in samples}) > 1:
        logger.warning(
            "%s declares several biosamples without barcodes, mapping to %s",
            metadata_path, samples[0].name,
        )
    return [mapping]


def _identify_multiplexed(
    hifi_dir: Path,
    samples: Sequence[SampleIdentity],
    output_dir: Path,
) -> list[FileMapping]:
    mappings: list[FileMapping] = []
    for sample in samples:
        token = forward_barcode(sample.barcode)
        if not token:
            logger.warning("Biosample %s has no barcode, skipping", sample.name)
            continue

        pattern = f"*{token}*.bam"
        logger.debug("looking for BAM files with pattern %s", hifi_dir / pattern)
        for bam in sorted(hifi_dir.glob(pattern)):
            mapping = make_mapping(bam, sample.name, output_dir)
            if not mapping.source_pbi.is_file():
                logger.debug("PBI file not found for BAM: %s", bam)
                continue
            mappings.append(mapping)
    return mappings


def identify_hifi_files(
    metadata_path: Path,
    samples: Sequence[SampleIdentity],
    output_dir: Path,
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> list[FileMapping]:
    """Map one cell's biosamples to their BAM/PBI files, without copying.

    Raises
    ------
    SourceDirMissing
        If the cell has no hifi_reads directory.
    NoReadFiles
        If a single-sample cell has no HiFi BAM.
    IndexFileMissing
        If a single-sample cell's BAM has no .pbi.
    """
    metadata_path = Path(metadata_path)
    output_dir = Path(output_dir)
    logger.debug("processing %s for biosamples %s", metadata_path, list(samples))

    hifi_dir = hifi_dir_for(metadata_path)
    logger.debug("HiFi reads directory: %s", hifi_dir)
    if not hifi_dir.is_dir():
        raise SourceDirMissing(hifi_dir)

    if not samples:
        return []

    if is_multiplex(samples, policy):
        return _identify_multiplexed(hifi_dir, samples, output_dir)
    return _identify_single(metadata_path, hifi_dir, samples, output_dir)


def identify_all_hifi_files(
    cells: Iterable[CellMetadata],
    output_dir: Path,
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
    run_name: str | None = None,
) -> list[FileMapping]:
    """Collect mappings across every cell of a run.

    Per-cell failures are logged and skipped. Raises NoFilesIdentified when
    no cell produced a mapping.
    """
    mappings: list[FileMapping] = []
    for cell in cells:
        try:
            found = identify_hifi_files(cell.file_path, cell.samples, output_dir, policy)
        except RevioCopyError as exc:
            logger.warning("Could not identify files for %s: %s", cell.file_path, exc)
            continue
        if not found:
            logger.warning("No files matched any biosample of %s", cell.file_path)
        mappings.extend(found)

    if not mappings:
        raise NoFilesIdentified(run_name)
    for dest, group in find_collisions(mappings).items():
        logger.warning("%d source files map to %s", len(group), dest)
    return mappings


def find_collisions(mappings: Iterable[FileMapping]) -> dict[Path, list[FileMapping]]:
    """Return destination BAMs that more than one source would be copied to.

    A biosample sequenced on two cells, or matched by several BAMs in one
    multiplexed cell, maps every source onto the same ``Sample_<name>`` file.
    """
    by_dest: dict[Path, list[FileMapping]] = {}
    for m in mappings:
        by_dest.setdefault(m.dest_bam, []).append(m)
    return {dest: group for dest, group in by_dest.items() if len(group) > 1}
