"""Exception classes for revio-copy."""
from __future__ import annotations

from pathlib import Path


class RevioCopyError(Exception):
    """Base exception for all revio-copy errors."""


class MissingField(RevioCopyError):
    """Raised when a descriptor lacks a required field."""

    def __init__(self, field: str, path: Path | str | None = None) -> None:
        msg = f"{field} not found in metadata"
        if path:
            msg += f": {path}"
        super().__init__(msg)
        self.field = field
        self.path = path


class DescriptorParseError(RevioCopyError):
    """Raised when a descriptor is not well-formed XML."""

    def __init__(self, path: Path | str | None = None, reason: str = "") -> None:
        msg = f"Could not parse metadata file {path}" if path else "Could not parse metadata"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class DiscoveryFailed(RevioCopyError):
    """Raised when the run directory tree cannot be walked."""

    def __init__(self, path: Path | str, reason: str = "") -> None:
        msg = f"Failed to scan {path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class NoRunsFound(RevioCopyError):
    """Raised when neither completed nor pending runs exist under the root."""

    def __init__(self, path: Path | str | None = None) -> None:
        msg = f"No valid runs found in {path}" if path else "No valid runs found"
        super().__init__(msg)
        self.path = path


class RunNotFound(RevioCopyError):
    """Raised when a requested run name is not among the discovered runs."""

    def __init__(self, name: str | None = None) -> None:
        msg = f"Run '{name}' not found" if name else "Run not found"
        super().__init__(msg)
        self.name = name


class RunPending(RevioCopyError):
    """Raised when the selected run has no descriptors yet."""

    def __init__(self, name: str | None = None) -> None:
        msg = f"Run '{name}' is pending and cannot be processed" if name else (
            "Selected run is pending and cannot be processed"
        )
        super().__init__(msg)
        self.name = name


class SourceDirMissing(RevioCopyError):
    """Raised when a cell has no hifi_reads directory."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"hifi_reads directory not found at {path}")
        self.path = path


class NoReadFiles(RevioCopyError):
    """Raised when a single-sample cell has no HiFi BAM file."""

    def __init__(self, path: Path | str, message: str | None = None) -> None:
        super().__init__(message or f"No HiFi BAM files found in {path}")
        self.path = path


class IndexFileMissing(NoReadFiles):
    """Raised when a single-sample cell's BAM has no .pbi index."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(path, f"PBI file not found for BAM: {path}")


class NoFilesIdentified(RevioCopyError):
    """Raised when no cell of a run resolved to any file mapping."""

    def __init__(self, name: str | None = None) -> None:
        msg = f"No valid HiFi files identified for run '{name}'" if name else (
            "No valid HiFi files identified"
        )
        super().__init__(msg)
        self.name = name


class CopyToolUnavailable(RevioCopyError):
    """Raised when the rclone binary cannot be executed."""

    def __init__(self, binary: str, reason: str = "") -> None:
        msg = f"{binary} not found or not executable"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.binary = binary


class CopyFailed(RevioCopyError):
    """Raised when copying or verifying a single file fails."""

    def __init__(self, src: Path | str, reason: str) -> None:
        super().__init__(f"Failed to copy {src}: {reason}")
        self.src = src
        self.reason = reason


class ConfigError(RevioCopyError):
    """Raised when configuration cannot be loaded or validated."""
