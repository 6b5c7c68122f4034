"""Transfer resolved BAM/PBI files with rclone (checksum-verified)."""
from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from revio_copy.errors import CopyFailed, CopyToolUnavailable
from revio_copy.models import CopyResult, CopySummary, FileMapping

logger = logging.getLogger(__name__)

MB = 1024 * 1024


def find_rclone(rclone_bin: str = "rclone") -> str:
    """Resolve the rclone binary via PATH, falling back to the name given."""
    return shutil.which(rclone_bin) or rclone_bin


def check_rclone(rclone_bin: str = "rclone") -> str:
    """Run ``rclone version`` and return its first output line."""
    try:
        proc = subprocess.run(
            [find_rclone(rclone_bin), "version"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise CopyToolUnavailable(rclone_bin, str(exc)) from exc
    version = proc.stdout.splitlines()[0] if proc.stdout else ""
    logger.debug("rclone available: %s", version)
    return version


def build_rclone_command(
    src: Path, dest: Path, rclone_bin: str = "rclone", dry_run: bool = False
) -> list[str]:
    cmd = [rclone_bin]
    if dry_run:
        cmd.append("--dry-run")
    cmd += ["copyto", "--checksum", "--progress", str(src), str(dest)]
    return cmd


class FileCopier:
    """Copies FileMappings one file at a time through rclone.

    Parameters
    ----------
    dry_run : bool
        Report what would be copied without running rclone.
    verbose : bool
        Also print the rclone command line in dry-run mode.
    rclone_bin : str
        rclone executable name or path.
    """

    def __init__(self, dry_run: bool = False, verbose: bool = False,
                 rclone_bin: str = "rclone") -> None:
        self.dry_run = dry_run
        self.verbose = verbose
        self.rclone_bin = rclone_bin

    def copy_file(self, src: Path, dest: Path) -> None:
        try:
            src_size = src.stat().st_size
        except OSError as exc:
            raise CopyFailed(src, f"source file error: {exc}") from exc

        cmd = build_rclone_command(src, dest, find_rclone(self.rclone_bin), self.dry_run)
        size_mb = src_size / MB

        if self.dry_run:
            print(f"  [DRY RUN] Would copy: {src.name} ({size_mb:.2f} MB) -> {dest.name}")
            if self.verbose:
                print(f"  [DRY RUN] Command: {' '.join(cmd)}")
            return

        print(f"  Copying: {src.name} ({size_mb:.2f} MB) -> {dest.name}")
        try:
            subprocess.run(cmd, check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise CopyFailed(src, f"rclone error: {exc}") from exc

        try:
            dest_size = dest.stat().st_size
        except OSError as exc:
            raise CopyFailed(src, f"destination verification failed: {exc}") from exc
        if dest_size != src_size:
            raise CopyFailed(
                src, f"size mismatch: source={src_size} bytes, destination={dest_size} bytes"
            )
        print(f"  Copy successful and verified ({size_mb:.2f} MB)")

    def copy_mapping(self, mapping: FileMapping) -> None:
        """Copy the BAM then its PBI into the sample's directory."""
        if not self.dry_run:
            try:
                mapping.dest_bam.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CopyFailed(
                    mapping.source_bam, f"failed to create destination directory: {exc}"
                ) from exc
        self.copy_file(mapping.source_bam, mapping.dest_bam)
        self.copy_file(mapping.source_pbi, mapping.dest_pbi)

    def copy_all(self, mappings: list[FileMapping]) -> CopySummary:
        """Copy every mapping; a failure is recorded and the batch continues."""
        summary = CopySummary(dry_run=self.dry_run)
        total = len(mappings) * 2
        print(f"Starting copy of {total} files ({len(mappings)} BAM + {len(mappings)} PBI)...")

        for i, mapping in enumerate(mappings, start=1):
            print(f"\n[{i}/{len(mappings)}] Processing biosample: {mapping.sample_name}")
            try:
                self.copy_mapping(mapping)
            except CopyFailed as exc:
                logger.error("Error copying files for biosample %s: %s", mapping.sample_name, exc)
                summary.results.append(CopyResult(mapping=mapping, ok=False, error=str(exc)))
                continue
            summary.results.append(CopyResult(mapping=mapping, ok=True))
            pct = summary.files_copied / total * 100
            print(f"Progress: {summary.files_copied}/{total} files completed ({pct:.1f}%)")

        print(f"\nCopy operation completed. {summary.files_copied}/{total} files copied successfully.")
        return summary
