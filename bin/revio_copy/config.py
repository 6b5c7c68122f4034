"""Runtime configuration for revio-copy.

Values are layered, later sources winning:

1. defaults on :class:`CopyConfig`
2. the ``[revio]`` table of a TOML file
3. ``REVIO_*`` environment variables
4. explicit overrides (command-line flags)
"""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

import tomli_w
from pydantic import BaseModel, ConfigDict, ValidationError

from revio_copy.errors import ConfigError
from revio_copy.metadata import MultiplexPolicy

ENV_PREFIX = "REVIO_"
TOML_TABLE = "revio"

# environment variable suffix -> CopyConfig field
ENV_FIELDS = {
    "ROOT": "root",
    "OUTPUT": "output_dir",
    "RUN": "run_name",
    "DEBUG": "debug",
    "DRY_RUN": "dry_run",
    "RCLONE": "rclone_bin",
    "POLICY": "multiplex_policy",
}


class CopyConfig(BaseModel):
    """Settings threaded through discovery, resolution and copying."""

    model_config = ConfigDict(extra="forbid")

    root: Path | None = None
    output_dir: Path | None = None
    run_name: str | None = None
    debug: bool = False
    dry_run: bool = False
    rclone_bin: str = "rclone"
    multiplex_policy: MultiplexPolicy = MultiplexPolicy.ANY


def read_toml(path: Path) -> dict[str, Any]:
    """Return the ``[revio]`` table of a TOML file."""
    try:
        data = tomllib.loads(Path(path).read_text())
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    table = data.get(TOML_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{TOML_TABLE}] in {path} must be a table")
    return table


def env_values(env: Mapping[str, str]) -> dict[str, str]:
    """Collect non-empty ``REVIO_*`` variables keyed by field name."""
    values: dict[str, str] = {}
    for suffix, field in ENV_FIELDS.items():
        value = env.get(ENV_PREFIX + suffix, "")
        if value:
            values[field] = value
    return values


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> CopyConfig:
    """Build a CopyConfig from file, environment and overrides.

    Overrides whose value is None are ignored so unset flags do not mask
    lower layers.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data.update(read_toml(path))
    data.update(env_values(os.environ if env is None else env))
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return CopyConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def write_config(path: Path, config: CopyConfig | None = None) -> Path:
    """Write config (defaults if omitted) as a ``[revio]`` TOML table."""
    cfg = config or CopyConfig()
    data = {TOML_TABLE: cfg.model_dump(mode="json", exclude_none=True)}
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(tomli_w.dumps(data).encode())
    except OSError as exc:
        raise ConfigError(f"Cannot write config {path}: {exc}") from exc
    return path
