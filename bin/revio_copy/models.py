"""Data models for revio-copy."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class RunStatus(Enum):
    """Completion status of a run."""

    COMPLETE = "complete"
    PENDING = "pending"


@dataclass(frozen=True)
class SampleIdentity:
    """One biosample declared in a cell, optionally tagged with a barcode."""

    name: str
    barcode: str = ""


@dataclass(frozen=True)
class CellMetadata:
    """Metadata parsed from a single ``*.metadata.xml`` descriptor."""

    run_name: str
    file_path: Path
    created_date: str
    started_date: str
    well_sample_name: str
    samples: tuple[SampleIdentity, ...]
    is_multiplex: bool


@dataclass
class RunView:
    """All cells of one run, or a pending run with no cells yet."""

    name: str
    created_date: str = ""
    started_date: str = ""
    cells: list[CellMetadata] = field(default_factory=list)
    sample_names: set[str] = field(default_factory=set)
    status: RunStatus = RunStatus.COMPLETE

    @property
    def sample_count(self) -> int:
        return len(self.sample_names)

    @property
    def is_pending(self) -> bool:
        return self.status is RunStatus.PENDING

    def add_cell(self, cell: CellMetadata) -> None:
        """Attach a cell and record its sample names."""
        self.cells.append(cell)
        if not self.created_date:
            self.created_date = cell.created_date
        if not self.started_date:
            self.started_date = cell.started_date
        self.sample_names.update(s.name for s in cell.samples)

    def sorted_sample_names(self) -> list[str]:
        return sorted(self.sample_names)


@dataclass(frozen=True)
class FileMapping:
    """Source BAM/PBI pair and where it should be copied."""

    source_bam: Path
    source_pbi: Path
    dest_bam: Path
    dest_pbi: Path
    sample_name: str


@dataclass
class FileCheck:
    """Existence and size of one source file."""

    path: Path
    exists: bool
    size: int = 0
    error: str = ""


@dataclass
class IdentificationReport:
    """Per-mapping source checks plus totals, computed before copying."""

    mappings: list[FileMapping]
    bam_checks: list[FileCheck]
    pbi_checks: list[FileCheck]
    total_bam_size: int = 0
    total_pbi_size: int = 0
    valid_count: int = 0
    missing_count: int = 0
    # destination BAM -> every mapping that would write it, only when more than one
    collisions: dict[Path, list[FileMapping]] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        """True when there is something to copy, nothing is missing and no destination is shared."""
        return bool(self.mappings) and self.missing_count == 0 and not self.collisions


@dataclass
class CopyResult:
    """Outcome of copying one mapping (BAM + PBI)."""

    mapping: FileMapping
    ok: bool
    error: str = ""


@dataclass
class CopySummary:
    """Outcome of a whole copy batch."""

    results: list[CopyResult] = field(default_factory=list)
    dry_run: bool = False

    @property
    def files_total(self) -> int:
        return len(self.results) * 2

    @property
    def files_copied(self) -> int:
        return sum(2 for r in self.results if r.ok)

    @property
    def failed(self) -> list[CopyResult]:
        return [r for r in self.results if not r.ok]
