from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterable

from shardreg.core.publisher import ShardPublisher
from shardreg.core.registry import ShardRegistry
from shardreg.ports.sink import ImplementorSink


logger = logging.getLogger(__name__)

LOAD_ORDERS = ("sorted", "given", "shuffled")


@dataclass
class PageLoadSummary:
    shards: int
    buffered: int
    direct: int
    install_position: int
    order: str
    seed: int | None = None

    def as_dict(self) -> dict:
        return {
            "shards": self.shards,
            "buffered": self.buffered,
            "direct": self.direct,
            "install_position": self.install_position,
            "order": self.order,
            "seed": self.seed,
        }


def order_publishers(
    publishers: Iterable[ShardPublisher],
    order: str = "sorted",
    seed: int | None = None,
) -> list[ShardPublisher]:
    """Arrange shards in the order the page would execute them.

    Args:
        publishers (Iterable[ShardPublisher]): Shards as discovered.
        order (str): `sorted` by source id, `given` as discovered, or
            `shuffled` with a seeded random generator.
        seed (int | None): Seed for `shuffled`.

    Returns:
        list[ShardPublisher]: Publishers in execution order.
    """
    if order not in LOAD_ORDERS:
        raise ValueError(f"Unsupported load order: {order}")
    ordered = list(publishers)
    if order == "sorted":
        ordered.sort(key=lambda item: item.source_id)
    elif order == "shuffled":
        random.Random(seed).shuffle(ordered)
    return ordered


def simulate_page_load(
    publishers: Iterable[ShardPublisher],
    sink: ImplementorSink,
    install_after: int | None = None,
    order: str = "sorted",
    seed: int | None = None,
    registry: ShardRegistry | None = None,
) -> PageLoadSummary:
    """Run every shard against one registry and install the sink midway.

    Args:
        publishers (Iterable[ShardPublisher]): Shards to execute.
        sink (ImplementorSink): Consumer installed into the registry.
        install_after (int | None): Number of shards executed before the sink
            is installed. None, or a value past the last shard, installs
            after every shard ran.
        order (str): Execution order, see `order_publishers`.
        seed (int | None): Seed for shuffled order.
        registry (ShardRegistry | None): Registry to use; a fresh one by default.

    Returns:
        PageLoadSummary: Counts of buffered and directly delivered shards.
    """
    if install_after is not None and install_after < 0:
        raise ValueError("install_after must be >= 0")
    registry = registry if registry is not None else ShardRegistry()
    ordered = order_publishers(publishers, order=order, seed=seed)
    position = len(ordered) if install_after is None else min(install_after, len(ordered))

    buffered = 0
    for index, publisher in enumerate(ordered):
        if index == position:
            registry.install(sink)
        if not registry.installed:
            buffered += 1
        publisher.publish(registry)
    if not registry.installed:
        registry.install(sink)

    logger.info(
        "page load finished: %d shard(s), %d buffered, sink installed at %d",
        len(ordered),
        buffered,
        position,
    )
    return PageLoadSummary(
        shards=len(ordered),
        buffered=buffered,
        direct=len(ordered) - buffered,
        install_position=position,
        order=order,
        seed=seed,
    )
