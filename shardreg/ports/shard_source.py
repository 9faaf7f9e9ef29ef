from __future__ import annotations

from typing import Iterator, Protocol

from shardreg.core.publisher import ShardPublisher


class ShardSource(Protocol):
    """Discovery boundary for generated shards."""
    def iter_shards(self) -> Iterator[ShardPublisher]:
        """Yield one publisher per discovered shard.

        Returns:
            Iterator[ShardPublisher]: Publishers in discovery order.
        """
        ...
