"""
docsite_registry
================

Incremental registry for generated documentation-site fragments: trait
implementor listings merged across crates, and per-module sidebar items.
"""

from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Return the installed package version or '0.0.0' when unavailable."""
    try:
        return version("docsite-registry")
    except PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
