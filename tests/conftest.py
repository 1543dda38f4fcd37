from pathlib import Path

import pytest

from docsite_registry.records import Fragment, ImplementationRecord

FIXTURES = Path(__file__).parent / "fixtures"


def _record(name: str, crate: str = "demo", synthetic: bool = False) -> ImplementationRecord:
    return ImplementationRecord(
        text=f"impl Trait for {name}",
        types=[f"{crate}::{name}"],
        synthetic=synthetic,
    )


@pytest.fixture()
def record_x() -> ImplementationRecord:
    return _record("X", crate="alpha")


@pytest.fixture()
def record_y() -> ImplementationRecord:
    return _record("Y", crate="beta")


@pytest.fixture()
def record_z() -> ImplementationRecord:
    return _record("Z", crate="beta", synthetic=True)


@pytest.fixture()
def fragments(record_x, record_y, record_z) -> list[Fragment]:
    return [
        Fragment(module="alpha", entries={"Trait1": (record_x,)}),
        Fragment(module="beta", entries={"Trait1": (record_y,), "Trait2": (record_z,)}),
        Fragment(module="gamma", entries={"Trait2": (_record("W", crate="gamma"),)}),
    ]


@pytest.fixture()
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture()
def async_write_script() -> Path:
    return FIXTURES / "implementors" / "tokio_io" / "async_write" / "trait.AsyncWrite.js"


def _script(crate: str, type_name: str, trait: str) -> str:
    return (
        "(function() {var implementors = {};\n"
        f'implementors["{crate}"] = [{{"text":"impl {trait} for {type_name}",'
        f'"synthetic":false,"types":["{crate}::{type_name}"]}}];\n'
        "if (window.register_implementors) {window.register_implementors(implementors);}"
        " else {window.pending_implementors = implementors;}})()\n"
    )


@pytest.fixture()
def two_trait_tree(tmp_path: Path) -> Path:
    """Scripts for two traits, both listing the same crate, under ``impls/``."""
    root = tmp_path / "impls"
    for module, trait in (("async_read", "AsyncRead"), ("async_write", "AsyncWrite")):
        directory = root / "tokio_io" / module
        directory.mkdir(parents=True)
        (directory / f"trait.{trait}.js").write_text(_script("tokio_uds", "UnixStream", trait))
    return root
