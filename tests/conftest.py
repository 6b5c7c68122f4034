"""Shared fixtures for revio-copy tests."""
from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture()
def revio_root(tmp_path: Path) -> Path:
    root = tmp_path / "revio"
    root.mkdir()
    return root


@pytest.fixture()
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"
