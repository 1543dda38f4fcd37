"""Per-module sidebar item tables."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console

from .errors import MalformedFragmentWarning

console = Console()

KNOWN_KINDS = (
    "mod",
    "macro",
    "struct",
    "enum",
    "union",
    "trait",
    "fn",
    "type",
    "static",
    "constant",
)


class SidebarItem(BaseModel):
    """An exported symbol with its one-line description."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class SidebarItems(BaseModel):
    """Kind tag -> symbols in display order."""

    model_config = ConfigDict(frozen=True)

    kinds: dict[str, tuple[SidebarItem, ...]] = Field(default_factory=dict)

    def items(self, kind: str) -> list[SidebarItem]:
        return list(self.kinds.get(kind, ()))

    def names(self, kind: str) -> list[str]:
        return [item.name for item in self.kinds.get(kind, ())]

    def to_wire(self) -> dict[str, list[list[str]]]:
        return {
            kind: [[item.name, item.description] for item in items]
            for kind, items in self.kinds.items()
        }


def parse_sidebar_items(
    payload: Any, module: str = "<sidebar>"
) -> tuple[SidebarItems, list[MalformedFragmentWarning]]:
    """Build :class:`SidebarItems` from ``{kind: [[name, description], ...]}``.

    Rows that are not name/description pairs, and names repeated within a
    kind, are skipped with a warning.
    """
    problems: list[MalformedFragmentWarning] = []
    if not isinstance(payload, Mapping):
        problems.append(MalformedFragmentWarning(module, None, "expected a mapping of kinds"))
        return SidebarItems(), problems

    kinds: dict[str, tuple[SidebarItem, ...]] = {}
    for kind, rows in payload.items():
        if rows is None:
            kinds[str(kind)] = ()
            continue
        if not isinstance(rows, list | tuple):
            problems.append(MalformedFragmentWarning(module, str(kind), "expected a list of rows"))
            continue
        seen: set[str] = set()
        items: list[SidebarItem] = []
        for row in rows:
            if isinstance(row, str):
                row = [row, ""]
            if (
                not isinstance(row, list | tuple)
                or not row
                or len(row) > 2
                or not all(isinstance(part, str) for part in row)
            ):
                problems.append(MalformedFragmentWarning(module, str(kind), f"bad row {row!r}"))
                continue
            name = row[0]
            if name in seen:
                problems.append(
                    MalformedFragmentWarning(module, str(kind), f"duplicate name {name!r}")
                )
                continue
            seen.add(name)
            items.append(SidebarItem(name=name, description=row[1] if len(row) > 1 else ""))
        kinds[str(kind)] = tuple(items)
    return SidebarItems(kinds=kinds), problems


class SidebarIndex:
    """Module path -> sidebar table. Later registrations replace earlier ones."""

    def __init__(self) -> None:
        self._tables: dict[str, SidebarItems] = {}

    def register(self, module: str, items: SidebarItems) -> None:
        self._tables[module] = items

    def register_raw(self, module: str, payload: Any) -> SidebarItems:
        items, problems = parse_sidebar_items(payload, module)
        for problem in problems:
            console.print(f"[yellow]Warning:[/] sidebar row skipped: {problem}")
        self.register(module, items)
        return items

    def lookup(self, module: str, kind: str) -> list[SidebarItem]:
        table = self._tables.get(module)
        if table is None:
            return []
        return table.items(kind)

    def kinds(self, module: str) -> list[str]:
        table = self._tables.get(module)
        return list(table.kinds) if table is not None else []

    def modules(self) -> list[str]:
        return list(self._tables)
