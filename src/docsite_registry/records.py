"""Typed records for implementor fragments.

Fragments arrive as loosely typed mappings (``capability -> [record, ...]``)
produced by the documentation generator. The models here pin that shape
down, and :func:`parse_fragment` validates it at the ingestion boundary so
the registry itself only ever sees well-formed data.
"""

from __future__ import annotations

import html
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedFragmentError, MalformedFragmentWarning

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")
_ANCHOR_RE = re.compile(
    r'<a class="(?P<kind>[\w-]+)" href="(?P<href>[^"]+)"(?: title="(?P<title>[^"]*)")?>'
)


class ImplementationRecord(BaseModel):
    """One concrete type's claim to implement a capability."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_text: str = Field(alias="text")
    types: tuple[str, ...] = ()
    is_synthetic: bool = Field(default=False, alias="synthetic")

    @property
    def target_type_id(self) -> str:
        """Stable identifier path of the implementing type ('' when unknown)."""
        return self.types[0] if self.types else ""

    @property
    def type_name(self) -> str:
        return self.target_type_id.rsplit("::", 1)[-1]

    @property
    def plain_text(self) -> str:
        """Display text with markup removed, suitable for a terminal."""
        text = _BREAK_RE.sub(" ", self.display_text)
        text = html.unescape(_TAG_RE.sub("", text))
        return _SPACE_RE.sub(" ", text.replace("\xa0", " ")).strip()

    @property
    def link_target(self) -> str:
        """Relative documentation URL of the implementing type.

        Prefers the anchor the generator already rendered for the type and
        falls back to a path derived from ``target_type_id``.
        """
        name = self.type_name
        if not name:
            return ""
        for match in _ANCHOR_RE.finditer(self.display_text):
            if match.group("kind") in {"trait", "primitive"}:
                continue
            title = match.group("title") or ""
            if title.rsplit("::", 1)[-1] == name:
                return match.group("href")
        *parents, _ = self.target_type_id.split("::")
        prefix = "/".join(parents)
        return f"{prefix}/struct.{name}.html" if prefix else f"struct.{name}.html"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Fragment(BaseModel):
    """One module's contribution: capability name -> ordered records."""

    model_config = ConfigDict(frozen=True)

    module: str
    entries: dict[str, tuple[ImplementationRecord, ...]] = Field(default_factory=dict)

    @property
    def capabilities(self) -> list[str]:
        return list(self.entries)

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.entries.values())

    def is_empty(self) -> bool:
        return not self.entries

    def as_mapping(self) -> dict[str, list[ImplementationRecord]]:
        return {name: list(records) for name, records in self.entries.items()}


def parse_fragment(
    module: str,
    payload: Any,
    *,
    strict: bool = False,
) -> tuple[Fragment, list[MalformedFragmentWarning]]:
    """Validate a loosely typed fragment payload.

    Missing record lists count as empty. Capabilities whose value is not a
    list, and records that fail validation, are skipped and reported as
    :class:`MalformedFragmentWarning`. With ``strict`` the first problem
    raises :class:`MalformedFragmentError` instead.
    """
    problems: list[MalformedFragmentWarning] = []

    def _report(capability: str | None, reason: str) -> None:
        warning = MalformedFragmentWarning(module, capability, reason)
        if strict:
            raise MalformedFragmentError(str(warning))
        problems.append(warning)

    if payload is None:
        return Fragment(module=module), problems
    if not isinstance(payload, Mapping):
        _report(None, f"expected a mapping of capabilities, got {type(payload).__name__}")
        return Fragment(module=module), problems

    entries: dict[str, tuple[ImplementationRecord, ...]] = {}
    for capability, raw_records in payload.items():
        if not isinstance(capability, str) or not capability:
            _report(None, f"invalid capability name {capability!r}")
            continue
        if raw_records is None:
            entries.setdefault(capability, ())
            continue
        if not isinstance(raw_records, list | tuple):
            _report(capability, f"expected a list of records, got {type(raw_records).__name__}")
            continue
        accepted: list[ImplementationRecord] = []
        for idx, raw in enumerate(raw_records):
            if isinstance(raw, ImplementationRecord):
                accepted.append(raw)
                continue
            if not isinstance(raw, Mapping):
                _report(capability, f"record {idx} is not a mapping")
                continue
            try:
                accepted.append(ImplementationRecord.model_validate(raw))
            except ValidationError as exc:
                fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
                _report(capability, f"record {idx} invalid ({fields or 'schema'})")
        entries[capability] = entries.get(capability, ()) + tuple(accepted)
    return Fragment(module=module, entries=entries), problems
