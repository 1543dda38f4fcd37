"""Page-level entry points shared by fragment scripts and the renderer.

Generated fragment scripts look for a ``register_implementors`` hook and,
when the renderer has not installed one yet, leave their data in
``pending_implementors`` instead. The renderer later installs the hook and
picks up whatever is pending. :class:`DocumentationHost` keeps that
handshake but routes both sides through an owned
:class:`~docsite_registry.registry.ImplementorRegistry`, so every record
reaches the renderer exactly once.
"""

from __future__ import annotations

from typing import Any

from .config import RegistryConfig
from .records import Fragment
from .registry import Consumer, ImplementorRegistry
from .sidebar import SidebarIndex, SidebarItems


class DocumentationHost:
    def __init__(self, config: RegistryConfig | None = None) -> None:
        self.registry = ImplementorRegistry(config)
        self.sidebar = SidebarIndex()

    @property
    def register_implementors(self) -> Consumer | None:
        """The installed renderer hook, if any."""
        return self.registry.consumer

    @register_implementors.setter
    def register_implementors(self, consumer: Consumer) -> None:
        self.install_renderer(consumer)

    @property
    def pending_implementors(self) -> int:
        return self.registry.pending_count

    def supply_implementors(self, fragment: Fragment | dict[str, Any], module: str = "") -> None:
        """Fragment-script side of the handshake.

        The registry calls the installed hook right away, or keeps the
        fragment pending until one is installed.
        """
        if isinstance(fragment, Fragment):
            self.registry.ingest(fragment)
        else:
            self.registry.ingest_raw(module, fragment)

    def install_renderer(self, consumer: Consumer) -> None:
        """Renderer side: attach ``consumer`` and flush pending fragments."""
        self.registry.attach(consumer)

    def init_sidebar_items(self, module: str, payload: SidebarItems | dict[str, Any]) -> None:
        if isinstance(payload, SidebarItems):
            self.sidebar.register(module, payload)
        else:
            self.sidebar.register_raw(module, payload)
