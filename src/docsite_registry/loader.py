"""Readers for generated fragment scripts and fragment documents."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import ujson as json
import yaml

RawFragment = tuple[str, Any]

_IMPLEMENTORS_RE = re.compile(
    r'^\s*implementors\[(?P<key>"(?:[^"\\]|\\.)*")\]\s*=\s*(?P<body>\[.*\]);?\s*$',
    re.MULTILINE,
)
_SIDEBAR_RE = re.compile(r"initSidebarItems\((?P<body>\{.*\})\);?", re.DOTALL)


def capability_from_path(path: str | Path, root: str | Path | None = None) -> str:
    """Derive ``crate::module::Trait`` from an implementor script path.

    ``implementors/tokio_io/async_write/trait.AsyncWrite.js`` maps to
    ``tokio_io::async_write::AsyncWrite``. Without an ``implementors``
    directory in the path, ``root`` marks where the crate directory starts.
    """
    path = Path(path)
    parts = list(path.relative_to(root).parts) if root is not None else list(path.parts)
    if "implementors" in parts:
        idx = len(parts) - 1 - parts[::-1].index("implementors")
        parts = parts[idx + 1 :]
    elif root is None:
        raise ValueError(f"Cannot derive a capability from {path}; pass a root directory.")
    if not parts:
        raise ValueError(f"Cannot derive a capability from {path}.")
    stem = parts[-1]
    if stem.endswith(".js"):
        stem = stem[: -len(".js")]
    if "." in stem:
        stem = stem.split(".", 1)[1]
    return "::".join([*parts[:-1], stem])


def parse_implementor_script(text: str, capability: str) -> list[RawFragment]:
    """Return one ``(crate, {capability: records})`` pair per assignment."""
    fragments: list[RawFragment] = []
    for match in _IMPLEMENTORS_RE.finditer(text):
        crate = json.loads(match.group("key"))
        records = json.loads(match.group("body"))
        fragments.append((crate, {capability: records}))
    return fragments


def load_implementor_script(
    path: str | Path,
    capability: str | None = None,
    root: str | Path | None = None,
) -> list[RawFragment]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read implementor script {path}") from exc
    try:
        return parse_implementor_script(text, capability or capability_from_path(path, root))
    except ValueError as exc:
        raise ValueError(f"Invalid implementor script {path}") from exc


def parse_sidebar_script(text: str) -> dict[str, Any]:
    match = _SIDEBAR_RE.search(text)
    if match is None:
        raise ValueError("No initSidebarItems(...) call found.")
    data = json.loads(match.group("body"))
    if not isinstance(data, dict):
        raise ValueError("initSidebarItems payload is not an object.")
    return data


def load_sidebar_script(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    try:
        return parse_sidebar_script(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValueError(f"Invalid sidebar script {path}") from exc


def load_fragment_document(path: str | Path) -> list[RawFragment]:
    """Load ``{module: {capability: [records]}}`` from YAML or JSON."""
    path = Path(path)
    text = path.read_text()
    data: Any
    if path.suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError(f"Invalid fragment document {path}")
    return [(str(module), payload) for module, payload in data.items()]


def discover_implementor_scripts(root: str | Path) -> list[Path]:
    return sorted(Path(root).rglob("trait.*.js"))


def sidebar_module_path(path: str | Path) -> str:
    """Module path of a ``sidebar-items.js`` file.

    Every module directory of a generated crate carries its own sidebar script,
    so the path is the run of enclosing directories that have one.
    """
    path = Path(path)
    parts: list[str] = []
    directory = path.parent
    while (directory / "sidebar-items.js").exists() and directory.name:
        parts.insert(0, directory.name)
        directory = directory.parent
    return "::".join(parts) or path.parent.name


def discover_sidebar_scripts(root: str | Path) -> dict[str, Path]:
    """Map ``crate::module`` paths to their ``sidebar-items.js`` file."""
    scripts = sorted(Path(root).rglob("sidebar-items.js"))
    return {sidebar_module_path(path): path for path in scripts}
