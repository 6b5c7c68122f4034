"""Pre-copy file identification report and plain-text run listings."""
from __future__ import annotations

from pathlib import Path

from revio_copy.models import FileCheck, FileMapping, IdentificationReport, RunView
from revio_copy.resolve import find_collisions

MB = 1024 * 1024
GB = 1024 * MB


def check_file(path: Path) -> FileCheck:
    try:
        st = path.stat()
    except OSError as exc:
        return FileCheck(path=path, exists=False, error=exc.strerror or str(exc))
    return FileCheck(path=path, exists=True, size=st.st_size)


def build_report(mappings: list[FileMapping]) -> IdentificationReport:
    """Stat every source BAM and PBI and total up sizes and missing files."""
    report = IdentificationReport(mappings=list(mappings), bam_checks=[], pbi_checks=[])
    for m in mappings:
        bam = check_file(m.source_bam)
        pbi = check_file(m.source_pbi)
        report.bam_checks.append(bam)
        report.pbi_checks.append(pbi)
        for check in (bam, pbi):
            if check.exists:
                report.valid_count += 1
            else:
                report.missing_count += 1
        report.total_bam_size += bam.size
        report.total_pbi_size += pbi.size
    report.collisions = find_collisions(report.mappings)
    return report


def _date_label(run: RunView) -> str:
    return f"Started: {run.started_date}" if run.started_date else "Date unknown"


def format_run_line(index: int, run: RunView) -> str:
    line = f"{index}. {run.name} - {_date_label(run)} ({run.sample_count} biosamples)"
    if run.is_pending:
        line += " (pending)"
    return line


def format_run_table(runs: list[RunView]) -> str:
    """Numbered run listing, one line per run, in the given order."""
    if not runs:
        return "No runs found."
    return "\n".join(format_run_line(i, r) for i, r in enumerate(runs, start=1))


def format_run_details(run: RunView) -> str:
    lines = [f"Run Name: {run.name}"]
    if run.started_date:
        lines.append(f"Run Started: {run.started_date}")
    lines.append(f"Number of Cells: {len(run.cells)}")
    lines.append(f"Number of Unique Biosamples: {run.sample_count}")
    lines.append("")
    lines.append("Unique biosamples in this run:")
    for i, name in enumerate(run.sorted_sample_names(), start=1):
        lines.append(f"{i}. {name}")
    return "\n".join(lines)


def _status(check: FileCheck) -> str:
    if check.exists:
        return f"      - Size: {check.size / MB:.2f} MB, Status: EXISTS"
    return f"      - Status: MISSING, Error: {check.error}"


def format_report(report: IdentificationReport) -> str:
    """Render the identification report the way operators are used to reading it."""
    lines = ["=============== FILE IDENTIFICATION REPORT ==============="]
    for i, (m, bam, pbi) in enumerate(
        zip(report.mappings, report.bam_checks, report.pbi_checks), start=1
    ):
        lines.append("")
        lines.append(f"[{i}] Biosample: {m.sample_name}")
        lines.append(f"    Source BAM: {m.source_bam}")
        lines.append(_status(bam))
        lines.append(f"    Source PBI: {m.source_pbi}")
        lines.append(_status(pbi))
        lines.append(f"    Destination BAM: {m.dest_bam}")
        lines.append(f"    Destination PBI: {m.dest_pbi}")
        if not m.dest_bam.parent.exists():
            lines.append(f"    Destination directory does not exist: {m.dest_bam.parent}")

    for dest, group in report.collisions.items():
        lines.append("")
        lines.append(f"Destination collision: {dest}")
        for m in group:
            lines.append(f"    <- {m.source_bam}")

    n = len(report.mappings)
    total = report.total_bam_size + report.total_pbi_size
    lines += [
        "",
        "=============== SUMMARY ===============",
        f"Total files identified: {n * 2} ({n} BAM + {n} PBI files)",
        f"Valid files found: {report.valid_count}",
        f"Missing files: {report.missing_count}",
        f"Destination collisions: {len(report.collisions)}",
        f"Total data size: {total / GB:.2f} GB "
        f"(BAM: {report.total_bam_size / GB:.2f} GB, PBI: {report.total_pbi_size / GB:.2f} GB)",
        "========================================",
    ]
    return "\n".join(lines)
