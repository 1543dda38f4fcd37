"""Command-line utilities for the docsite_registry package."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import ujson as json
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import get_version
from .api import build_registry, export_index, load_config, load_sidebar
from .config import RegistryConfig
from .records import Fragment
from .sidebar import KNOWN_KINDS

app = typer.Typer(help="Implementor registry and sidebar index utilities")
console = Console()


def _config(path: Path | None) -> RegistryConfig:
    return load_config(path) if path is not None else RegistryConfig()


@app.command()
def version() -> None:
    """Print the installed package version."""
    typer.echo(get_version())


@app.command()
def merge(
    sources: Annotated[list[Path], typer.Argument(..., exists=True, readable=True)],
    out: Annotated[Path, typer.Option()] = Path("implementors.json"),
    config: Annotated[Path | None, typer.Option(exists=True, readable=True)] = None,
) -> None:
    """Merge implementor fragments into a single capability index."""
    registry = build_registry(sources, _config(config))
    export_index(registry, out)
    summary = registry.summary()
    console.print(
        f"[bold green]Index written:[/] {out} "
        f"({summary['capabilities']} capabilities, {summary['records']} records "
        f"from {summary['modules']} modules)"
    )
    if summary["warnings"]:
        console.print(f"[yellow]{summary['warnings']} malformed entries skipped[/]")


@app.command()
def implementors(
    sources: Annotated[list[Path], typer.Argument(..., exists=True, readable=True)],
    capability: Annotated[str, typer.Option("--capability", "-c")],
    synthetic: Annotated[bool, typer.Option(help="Include synthetic implementations.")] = True,
) -> None:
    """List the implementors of one capability."""
    registry = build_registry(sources)
    if capability not in registry.capabilities():
        raise typer.BadParameter(f"unknown capability {capability}")
    explicit, derived = registry.grouped(capability)
    table = Table(title=capability)
    table.add_column("Type")
    table.add_column("Implementation")
    table.add_column("Link")
    for record in explicit:
        table.add_row(record.target_type_id, escape(record.plain_text), record.link_target)
    if synthetic and derived:
        table.add_section()
        for record in derived:
            table.add_row(
                f"[dim]{record.target_type_id}[/]", escape(record.plain_text), record.link_target
            )
    console.print(table)


@app.command()
def sidebar(
    path: Annotated[Path, typer.Argument(exists=True, readable=True)],
    kind: Annotated[str | None, typer.Option(help="Only show one item kind.")] = None,
) -> None:
    """Print sidebar items for one script or every script below a directory."""
    index = load_sidebar(path)
    for module in index.modules():
        present = index.kinds(module)
        ordered = [k for k in KNOWN_KINDS if k in present]
        ordered += [k for k in present if k not in KNOWN_KINDS]
        if kind is not None:
            ordered = [kind]
        table = Table(title=module)
        table.add_column("Kind")
        table.add_column("Name")
        table.add_column("Description")
        for item_kind in ordered:
            for item in index.lookup(module, item_kind):
                table.add_row(item_kind, item.name, escape(item.description) or "-")
        console.print(table)


@app.command()
def schema(
    out: Annotated[Path, typer.Argument(help="Output path (usually .json).")],
    pretty: Annotated[bool, typer.Option(help="Write pretty-printed JSON.")] = True,
) -> None:
    """Export the JSON Schema of a fragment."""
    text = json.dumps(Fragment.model_json_schema(), indent=2 if pretty else 0)
    out.write_text(text)
    typer.echo(f"Wrote fragment schema to {out}")


def main() -> None:
    """Entry point for `python -m docsite_registry.cli`."""
    app()


if __name__ == "__main__":
    main()
