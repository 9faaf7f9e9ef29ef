import itertools
import logging

import pytest

from shardreg.adapters.sink_memory import MemorySink
from shardreg.core.naming import InvalidSourceIdError
from shardreg.core.registry import ShardRegistry


class FailingSink:
    def __init__(self, fail_on: str) -> None:
        self.fail_on = fail_on
        self.received: list[str] = []

    def __call__(self, source_id: str, payload) -> None:
        if source_id == self.fail_on:
            raise RuntimeError(f"sink failed on {source_id}")
        self.received.append(source_id)


def test_buffered_payloads_drain_in_publish_order() -> None:
    registry = ShardRegistry()
    registry.publish("crate_a", ["ImplX", "ImplY"])
    registry.publish("crate_b", [])
    sink = MemorySink()

    registry.install(sink)

    assert [(d.source_id, d.payload) for d in sink.deliveries] == [
        ("crate_a", ["ImplX", "ImplY"]),
        ("crate_b", []),
    ]
    assert registry.pending == {}


def test_publish_after_install_delivers_immediately() -> None:
    registry = ShardRegistry()
    sink = MemorySink()
    registry.install(sink)

    registry.publish("crate_a", ["ImplX"])

    assert [(d.source_id, d.payload) for d in sink.deliveries] == [("crate_a", ["ImplX"])]
    assert registry.pending == {}


def test_pending_holds_last_payload_for_repeated_id() -> None:
    registry = ShardRegistry()
    first = ("ImplX",)
    second = ("ImplY",)
    registry.publish("crate_a", first)
    registry.publish("crate_b", ())
    registry.publish("crate_a", second)

    assert registry.pending == {"crate_a": second, "crate_b": ()}
    assert registry.pending_ids == ["crate_a", "crate_b"]
    assert not registry.installed
    assert registry.consumer is None


def test_repeated_id_is_delivered_once_with_last_payload() -> None:
    registry = ShardRegistry()
    registry.publish("crate_a", ("old",))
    registry.publish("crate_a", ("new",))
    sink = MemorySink()

    registry.install(sink)

    assert sink.count_for("crate_a") == 1
    assert sink.index() == {"crate_a": ("new",)}


def test_pending_is_a_snapshot() -> None:
    registry = ShardRegistry()
    registry.publish("crate_a", ())
    snapshot = registry.pending
    snapshot["crate_b"] = ()

    assert registry.pending_ids == ["crate_a"]


def test_reinstall_does_not_redeliver() -> None:
    registry = ShardRegistry()
    registry.publish("crate_a", ("ImplX",))
    first = MemorySink()
    second = MemorySink()

    registry.install(first)
    registry.install(second)

    assert len(first.deliveries) == 1
    assert second.deliveries == []
    assert registry.consumer is second

    registry.publish("crate_b", ("ImplZ",))
    assert len(first.deliveries) == 1
    assert [d.source_id for d in second.deliveries] == ["crate_b"]


def test_install_with_empty_holding_area_delivers_nothing() -> None:
    registry = ShardRegistry()
    sink = MemorySink()

    registry.install(sink)

    assert sink.deliveries == []
    assert registry.installed


@pytest.mark.parametrize("source_id", ["", "   ", None, 42])
def test_publish_rejects_unusable_source_id(source_id) -> None:
    registry = ShardRegistry()
    with pytest.raises(InvalidSourceIdError):
        registry.publish(source_id, ())
    assert registry.pending == {}


def test_publish_propagates_sink_errors() -> None:
    registry = ShardRegistry()
    registry.install(FailingSink(fail_on="crate_a"))

    with pytest.raises(RuntimeError, match="crate_a"):
        registry.publish("crate_a", ())


def test_failing_drain_strands_remaining_payloads(caplog) -> None:
    registry = ShardRegistry()
    for source_id in ("crate_a", "crate_b", "crate_c"):
        registry.publish(source_id, ())
    sink = FailingSink(fail_on="crate_b")

    with caplog.at_level(logging.WARNING, logger="shardreg.core.registry"):
        with pytest.raises(RuntimeError):
            registry.install(sink)

    assert sink.received == ["crate_a"]
    assert registry.installed
    assert registry.pending == {}
    assert "crate_c" in caplog.text

    replacement = MemorySink()
    registry.install(replacement)
    assert replacement.deliveries == []


def test_payload_is_passed_through_untouched() -> None:
    registry = ShardRegistry()
    payload = object()
    registry.publish("crate_a", payload)
    sink = MemorySink()

    registry.install(sink)

    assert sink.deliveries[0].payload is payload


@pytest.mark.parametrize(
    "events",
    list(itertools.permutations(["install", "crate_a", "crate_b", "crate_c"])),
)
def test_every_interleaving_delivers_each_payload_once(events) -> None:
    registry = ShardRegistry()
    sink = MemorySink()
    payloads = {
        "crate_a": ("ImplA",),
        "crate_b": (),
        "crate_c": ("ImplC1", "ImplC2"),
    }

    for event in events:
        if event == "install":
            registry.install(sink)
        else:
            registry.publish(event, payloads[event])

    assert sorted(d.source_id for d in sink.deliveries) == sorted(payloads)
    assert sink.index() == payloads
    assert registry.pending == {}


def test_pre_install_publishes_never_call_consumer_directly() -> None:
    registry = ShardRegistry()
    sink = MemorySink()
    registry.publish("crate_a", ())

    assert sink.deliveries == []
    registry.install(sink)
    registry.publish("crate_b", ())
    assert [d.source_id for d in sink.deliveries] == ["crate_a", "crate_b"]
