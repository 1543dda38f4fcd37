"""Error types raised (or recorded) by the registry."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry failures."""


class DuplicateConsumerError(RegistryError):
    """Raised when a second consumer tries to attach to a registry."""


class DuplicateFragmentError(RegistryError):
    """Raised when a module is ingested twice under the ``error`` policy."""

    def __init__(self, module: str) -> None:
        super().__init__(f"Fragment for module {module!r} was already ingested.")
        self.module = module


class MalformedFragmentError(RegistryError):
    """Raised instead of a warning when the registry runs in strict mode."""


class MalformedFragmentWarning(UserWarning):
    """A capability or record was skipped because it did not match the schema."""

    def __init__(self, module: str, capability: str | None, reason: str) -> None:
        where = module if capability is None else f"{module} / {capability}"
        super().__init__(f"{where}: {reason}")
        self.module = module
        self.capability = capability
        self.reason = reason
