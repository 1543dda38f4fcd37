import threading

import pytest

from docsite_registry.config import RegistryConfig
from docsite_registry.errors import (
    DuplicateConsumerError,
    DuplicateFragmentError,
    MalformedFragmentError,
)
from docsite_registry.records import Fragment, ImplementationRecord
from docsite_registry.registry import ImplementorRegistry, init_registry, merge_fragments


def test_attach_before_ingest_delivers_per_fragment(fragments) -> None:
    registry = init_registry()
    calls: list[dict] = []
    registry.attach(calls.append)
    for fragment in fragments:
        registry.ingest(fragment)
    assert len(calls) == 3
    assert calls == [fragment.as_mapping() for fragment in fragments]
    assert registry.pending_count == 0


def test_attach_after_ingest_flushes_backlog_once(fragments) -> None:
    registry = ImplementorRegistry()
    first, second, third = fragments
    registry.ingest(first)
    registry.ingest(second)
    assert registry.pending_count == 2

    calls: list[dict] = []
    registry.attach(calls.append)
    assert len(calls) == 1
    assert calls[0] == merge_fragments([first, second])
    assert registry.pending_count == 0

    registry.ingest(third)
    assert len(calls) == 2
    assert calls[1] == third.as_mapping()


def test_backlog_example_merges_by_capability(record_x, record_y, record_z) -> None:
    registry = ImplementorRegistry()
    registry.ingest(Fragment(module="a", entries={"Trait1": (record_x,)}))
    registry.ingest(Fragment(module="b", entries={"Trait1": (record_y,), "Trait2": (record_z,)}))
    calls: list[dict] = []
    registry.attach(calls.append)
    assert calls == [{"Trait1": [record_x, record_y], "Trait2": [record_z]}]


def test_second_consumer_rejected_and_first_unaffected(fragments) -> None:
    registry = ImplementorRegistry()
    first_calls: list[dict] = []
    second_calls: list[dict] = []
    registry.attach(first_calls.append)
    with pytest.raises(DuplicateConsumerError):
        registry.attach(second_calls.append)
    registry.ingest(fragments[0])
    assert len(first_calls) == 1
    assert second_calls == []


def test_every_record_delivered_exactly_once(fragments) -> None:
    registry = ImplementorRegistry()
    registry.ingest(fragments[0])
    delivered = []
    registry.attach(lambda batch: delivered.extend(r for recs in batch.values() for r in recs))
    registry.ingest(fragments[1])
    registry.ingest(fragments[2])
    expected = [r for f in fragments for recs in f.entries.values() for r in recs]
    assert sorted(r.target_type_id for r in delivered) == sorted(
        r.target_type_id for r in expected
    )
    assert len(delivered) == sum(f.record_count for f in fragments)


def test_capability_appends_across_modules(fragments) -> None:
    registry = ImplementorRegistry()
    for fragment in fragments:
        registry.ingest(fragment)
    assert [r.type_name for r in registry.implementors("Trait1")] == ["X", "Y"]
    assert [r.type_name for r in registry.implementors("Trait2")] == ["Z", "W"]
    assert registry.capabilities() == ["Trait1", "Trait2"]
    assert registry.implementors("Missing") == []


def test_ingest_order_determines_accumulated_order(fragments) -> None:
    registry = ImplementorRegistry()
    for fragment in reversed(fragments):
        registry.ingest(fragment)
    assert [r.type_name for r in registry.implementors("Trait2")] == ["W", "Z"]


def test_same_fragment_twice_appends_by_default(fragments) -> None:
    registry = ImplementorRegistry()
    registry.ingest(fragments[0])
    registry.ingest(fragments[0])
    assert len(registry.implementors("Trait1")) == 2
    assert registry.modules == ["alpha"]


def test_duplicate_module_skip_policy(fragments) -> None:
    registry = ImplementorRegistry(RegistryConfig(duplicate_modules="skip"))
    registry.ingest(fragments[0])
    registry.ingest(fragments[0])
    assert len(registry.implementors("Trait1")) == 1
    assert registry.pending_count == 1


def test_duplicate_module_error_policy(fragments) -> None:
    registry = ImplementorRegistry(RegistryConfig(duplicate_modules="error"))
    registry.ingest(fragments[0])
    with pytest.raises(DuplicateFragmentError):
        registry.ingest(fragments[0])


def test_empty_fragment_not_delivered() -> None:
    registry = ImplementorRegistry()
    calls: list[dict] = []
    registry.attach(calls.append)
    registry.ingest(Fragment(module="empty"))
    assert calls == []
    assert registry.modules == ["empty"]


def test_empty_fragment_delivered_when_configured() -> None:
    registry = ImplementorRegistry(RegistryConfig(deliver_empty=True))
    calls: list[dict] = []
    registry.attach(calls.append)
    registry.ingest(Fragment(module="empty"))
    assert calls == [{}]


def test_ingest_raw_skips_malformed_entries() -> None:
    registry = ImplementorRegistry()
    registry.ingest_raw(
        "crate_a",
        {
            "Good": [{"text": "impl Good for A", "synthetic": False, "types": ["crate_a::A"]}],
            "Bad": "not-a-list",
            "Partial": [{"synthetic": True}, {"text": "impl Partial for B", "types": []}],
            "Missing": None,
        },
    )
    assert [r.type_name for r in registry.implementors("Good")] == ["A"]
    assert "Bad" not in registry.capabilities()
    assert len(registry.implementors("Partial")) == 1
    assert registry.implementors("Missing") == []
    assert len(registry.warnings) == 2


def test_ingest_raw_strict_raises() -> None:
    registry = ImplementorRegistry(RegistryConfig(strict=True))
    with pytest.raises(MalformedFragmentError):
        registry.ingest_raw("crate_a", {"Bad": 3})


def test_grouped_splits_synthetic(fragments) -> None:
    registry = ImplementorRegistry()
    for fragment in fragments:
        registry.ingest(fragment)
    explicit, synthetic = registry.grouped("Trait2")
    assert [r.type_name for r in explicit] == ["W"]
    assert [r.type_name for r in synthetic] == ["Z"]


def test_consumer_may_ingest_reentrantly(fragments) -> None:
    registry = ImplementorRegistry()
    calls: list[dict] = []

    def consumer(batch: dict) -> None:
        calls.append(batch)
        if len(calls) == 1:
            registry.ingest(fragments[2])

    registry.ingest(fragments[0])
    registry.attach(consumer)
    assert len(calls) == 2
    assert calls[1] == fragments[2].as_mapping()


def test_summary_and_snapshot(fragments) -> None:
    registry = ImplementorRegistry()
    for fragment in fragments:
        registry.ingest(fragment)
    summary = registry.summary()
    assert summary["modules"] == 3
    assert summary["records"] == 4
    assert summary["attached"] is False
    snapshot = registry.snapshot()
    snapshot["Trait1"].clear()
    assert len(registry.implementors("Trait1")) == 2


def test_failing_backlog_consumer_keeps_registry_unattached(fragments) -> None:
    registry = ImplementorRegistry()
    registry.ingest(fragments[0])

    def broken(batch: dict) -> None:
        raise RuntimeError("renderer not ready")

    with pytest.raises(RuntimeError):
        registry.attach(broken)
    assert registry.is_attached is False
    assert registry.pending_count == 1

    calls: list[dict] = []
    registry.attach(calls.append)
    assert calls == [fragments[0].as_mapping()]


def test_failed_direct_delivery_is_retried(fragments) -> None:
    registry = ImplementorRegistry()
    calls: list[dict] = []
    failures = [RuntimeError("transient")]

    def flaky(batch: dict) -> None:
        if failures:
            raise failures.pop()
        calls.append(batch)

    registry.attach(flaky)
    with pytest.raises(RuntimeError):
        registry.ingest(fragments[0])
    assert registry.pending_count == 1

    registry.ingest(fragments[1])
    assert calls == [merge_fragments(fragments[:2])]
    assert registry.pending_count == 0
    registry.flush()
    assert len(calls) == 1


def test_fragment_mutated_after_ingest_is_delivered_as_ingested(record_x) -> None:
    registry = ImplementorRegistry()
    fragment = Fragment(module="alpha", entries={"Trait1": (record_x,)})
    registry.ingest(fragment)
    fragment.entries["Trait1"] = ()
    calls: list[dict] = []
    registry.attach(calls.append)
    assert calls == [{"Trait1": [record_x]}]


def test_concurrent_ingest_delivers_each_record_once_in_producer_order() -> None:
    registry = ImplementorRegistry()
    delivered: list[ImplementationRecord] = []
    producers, per_producer = 4, 50
    start = threading.Barrier(producers + 2)
    errors: list[BaseException] = []

    def produce(worker: int) -> None:
        start.wait()
        for idx in range(per_producer):
            record = ImplementationRecord(text="impl T", types=[f"w{worker}::T{idx}"])
            registry.ingest(Fragment(module=f"w{worker}-{idx}", entries={"T": (record,)}))

    def read() -> None:
        start.wait()
        try:
            for _ in range(200):
                registry.snapshot()
                registry.summary()
        except RuntimeError as exc:  # pragma: no cover - only on a race
            errors.append(exc)

    threads = [threading.Thread(target=produce, args=(n,)) for n in range(producers)]
    threads.append(threading.Thread(target=read))
    for thread in threads:
        thread.start()
    start.wait()
    registry.attach(lambda batch: delivered.extend(batch.get("T", [])))
    for thread in threads:
        thread.join()

    assert errors == []
    ids = [record.target_type_id for record in delivered]
    assert len(ids) == producers * per_producer
    assert len(set(ids)) == len(ids)
    for worker in range(producers):
        mine = [int(i.rsplit("T", 1)[1]) for i in ids if i.startswith(f"w{worker}::")]
        assert mine == list(range(per_producer))
    assert [r.target_type_id for r in registry.implementors("T")] == ids
