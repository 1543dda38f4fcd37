"""Incremental implementor registry.

Fragments from individual crates are folded into one mapping from
capability (trait) name to every known implementation record. A single
rendering consumer may attach at any point: fragments that arrived earlier
are handed over in one backlog delivery, later ones one call per fragment.
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console

from .config import RegistryConfig
from .errors import DuplicateConsumerError, DuplicateFragmentError, MalformedFragmentWarning
from .records import Fragment, ImplementationRecord, parse_fragment

console = Console()

Implementors = dict[str, list[ImplementationRecord]]
Consumer = Callable[[Implementors], Any]


@dataclass
class Unattached:
    """No consumer yet; fragments wait in arrival order."""

    pending: deque[Fragment] = field(default_factory=deque)


@dataclass(frozen=True)
class Attached:
    """A consumer is bound and receives fragments directly.

    ``undelivered`` only holds fragments whose delivery raised; they go out
    ahead of the next fragment, or on :meth:`ImplementorRegistry.flush`.
    """

    consumer: Consumer
    undelivered: deque[Fragment] = field(default_factory=deque)


ConsumerState = Unattached | Attached


def merge_fragments(fragments: Iterable[Fragment]) -> Implementors:
    """Concatenate fragments per capability, keeping arrival order."""
    merged: Implementors = {}
    for fragment in fragments:
        for capability, records in fragment.entries.items():
            merged.setdefault(capability, []).extend(records)
    return merged


class ImplementorRegistry:
    """Merges implementor fragments and delivers them to one consumer."""

    def __init__(self, config: RegistryConfig | None = None) -> None:
        self.config = config or RegistryConfig()
        self._index: Implementors = {}
        self._state: ConsumerState = Unattached()
        self._modules: Counter[str] = Counter()
        # (module, capability set) pairs already ingested
        self._seen: set[tuple[str, frozenset[str]]] = set()
        self._warnings: list[MalformedFragmentWarning] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ ingest
    def ingest(self, fragment: Fragment) -> None:
        """Fold ``fragment`` into the index and deliver or buffer it.

        A module contributes one fragment per trait script, so repeats are
        detected on the module together with its capability set.
        """
        with self._lock:
            key = (fragment.module, frozenset(fragment.entries))
            if key in self._seen:
                policy = self.config.duplicate_modules
                if policy == "error":
                    raise DuplicateFragmentError(fragment.module)
                if policy == "skip":
                    console.print(
                        f"[yellow]Warning:[/] skipping repeated fragment for {fragment.module}"
                    )
                    return
            self._seen.add(key)
            self._modules[fragment.module] += 1
            # Buffered fragments must not change if the caller mutates theirs.
            fragment = fragment.model_copy(update={"entries": dict(fragment.entries)})
            for capability, records in fragment.entries.items():
                self._index.setdefault(capability, []).extend(records)
            if fragment.is_empty() and not self.config.deliver_empty:
                return
            state = self._state
            if isinstance(state, Attached):
                state.undelivered.append(fragment)
                self._deliver(state)
            else:
                state.pending.append(fragment)

    def ingest_raw(self, module: str, payload: Any) -> Fragment:
        """Validate a loosely typed payload, then ingest what survives."""
        fragment, problems = parse_fragment(module, payload, strict=self.config.strict)
        for problem in problems:
            self._warn(problem)
        self.ingest(fragment)
        return fragment

    def _warn(self, problem: MalformedFragmentWarning) -> None:
        with self._lock:
            self._warnings.append(problem)
        console.print(f"[yellow]Warning:[/] malformed fragment skipped: {problem}")

    # ---------------------------------------------------------------- delivery
    def _deliver(self, state: Attached) -> None:
        """Hand every undelivered fragment to the consumer in one call.

        The batch is taken off the queue first so fragments ingested by the
        consumer itself go out in their own call. If the consumer raises, the
        batch goes back to the front of the queue and the error propagates.
        """
        if not state.undelivered:
            return
        batch = list(state.undelivered)
        state.undelivered.clear()
        try:
            state.consumer(merge_fragments(batch))
        except Exception:
            state.undelivered.extendleft(reversed(batch))
            raise

    def flush(self) -> None:
        """Retry fragments whose delivery previously raised."""
        with self._lock:
            state = self._state
            if isinstance(state, Attached):
                self._deliver(state)

    # ------------------------------------------------------------------ attach
    def attach(self, consumer: Consumer) -> None:
        """Bind the rendering consumer, flushing any buffered fragments.

        Raises :class:`DuplicateConsumerError` if a consumer is already bound;
        the original consumer keeps receiving deliveries. If the consumer
        raises on the backlog, the registry stays unattached with the backlog
        still pending.
        """
        with self._lock:
            state = self._state
            if isinstance(state, Attached):
                raise DuplicateConsumerError("A consumer is already attached to this registry.")
            attached = Attached(consumer, deque(state.pending))
            self._state = attached
            try:
                self._deliver(attached)
            except Exception:
                self._state = Unattached(attached.undelivered)
                raise

    @property
    def consumer(self) -> Consumer | None:
        with self._lock:
            state = self._state
            return state.consumer if isinstance(state, Attached) else None

    @property
    def is_attached(self) -> bool:
        with self._lock:
            return isinstance(self._state, Attached)

    @property
    def pending_count(self) -> int:
        """Fragments buffered before attachment, or left undelivered after it."""
        with self._lock:
            state = self._state
            if isinstance(state, Attached):
                return len(state.undelivered)
            return len(state.pending)

    # ----------------------------------------------------------------- queries
    def implementors(self, capability: str) -> list[ImplementationRecord]:
        with self._lock:
            return list(self._index.get(capability, []))

    def grouped(
        self, capability: str
    ) -> tuple[list[ImplementationRecord], list[ImplementationRecord]]:
        """Split implementors into (explicit, synthetic), order preserved."""
        explicit: list[ImplementationRecord] = []
        synthetic: list[ImplementationRecord] = []
        for record in self.implementors(capability):
            (synthetic if record.is_synthetic else explicit).append(record)
        return explicit, synthetic

    def capabilities(self) -> list[str]:
        with self._lock:
            return list(self._index)

    def snapshot(self) -> Implementors:
        with self._lock:
            return {name: list(records) for name, records in self._index.items()}

    @property
    def modules(self) -> list[str]:
        with self._lock:
            return list(self._modules)

    @property
    def warnings(self) -> list[MalformedFragmentWarning]:
        with self._lock:
            return list(self._warnings)

    def summary(self) -> dict[str, Any]:
        """Return a JSON-friendly summary for logging."""
        with self._lock:
            return {
                "modules": len(self._modules),
                "capabilities": len(self._index),
                "records": sum(len(records) for records in self._index.values()),
                "pending": self.pending_count,
                "attached": self.is_attached,
                "warnings": len(self._warnings),
            }

    def to_json(self) -> dict[str, list[dict[str, Any]]]:
        snapshot = self.snapshot()
        return {
            name: [record.to_wire() for record in records] for name, records in snapshot.items()
        }


def init_registry(config: RegistryConfig | None = None) -> ImplementorRegistry:
    """Create the registry a page owns for its lifetime."""
    return ImplementorRegistry(config)
