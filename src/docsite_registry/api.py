"""Public API for downstream modules."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import ujson as json
import yaml

from .config import RegistryConfig, load_config
from .loader import (
    RawFragment,
    discover_implementor_scripts,
    discover_sidebar_scripts,
    load_fragment_document,
    load_implementor_script,
    load_sidebar_script,
    sidebar_module_path,
)
from .registry import ImplementorRegistry
from .sidebar import SidebarIndex

__all__ = [
    "RegistryConfig",
    "load_config",
    "collect_fragments",
    "build_registry",
    "export_index",
    "load_sidebar",
]


def collect_fragments(paths: Iterable[str | Path]) -> list[RawFragment]:
    """Read raw fragments from scripts, documents, or directories of scripts."""
    fragments: list[RawFragment] = []
    for raw_path in paths:
        path = Path(raw_path)
        if path.is_dir():
            for script in discover_implementor_scripts(path):
                fragments.extend(load_implementor_script(script, root=path))
        elif path.suffix == ".js":
            fragments.extend(load_implementor_script(path))
        elif path.suffix in {".json", ".yaml", ".yml"}:
            fragments.extend(load_fragment_document(path))
        else:
            msg = f"Unsupported fragment source: {path}"
            raise ValueError(msg)
    return fragments


def build_registry(
    paths: Iterable[str | Path],
    config: RegistryConfig | None = None,
) -> ImplementorRegistry:
    """Ingest every fragment found under ``paths`` into a fresh registry."""
    registry = ImplementorRegistry(config)
    for module, payload in collect_fragments(paths):
        registry.ingest_raw(module, payload)
    return registry


def export_index(registry: ImplementorRegistry, path: str | Path) -> None:
    """Write the merged capability index as YAML or JSON based on suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = registry.to_json()
    if path.suffix in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False, escape_forward_slashes=False)
        path.write_text(text)


def load_sidebar(path: str | Path) -> SidebarIndex:
    """Load one ``sidebar-items.js`` file or every one below a directory."""
    path = Path(path)
    index = SidebarIndex()
    if path.is_dir():
        for module, script in discover_sidebar_scripts(path).items():
            index.register_raw(module, load_sidebar_script(script))
    else:
        index.register_raw(sidebar_module_path(path), load_sidebar_script(path))
    return index
