"""Typed registry configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import ujson as json
import yaml
from pydantic import BaseModel, ValidationError

DuplicatePolicy = Literal["append", "skip", "error"]


class RegistryConfig(BaseModel):
    """Knobs governing ingestion and delivery."""

    # What to do when a second fragment arrives for an already-seen module.
    duplicate_modules: DuplicatePolicy = "append"
    strict: bool = False
    deliver_empty: bool = False


def load_config(path: str | Path) -> RegistryConfig:
    """Load a registry config from YAML or JSON."""
    path = Path(path)
    data: Any
    text = path.read_text()
    if path.suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    try:
        return RegistryConfig(**(data or {}))
    except ValidationError as exc:
        raise ValueError(f"Invalid config {path}") from exc


def save_config(config: RegistryConfig, path: str | Path) -> None:
    """Persist a config as YAML or JSON based on file suffix."""
    path = Path(path)
    if path.suffix in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False))
    else:
        path.write_text(json.dumps(config.model_dump(mode="python"), indent=2))
