from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shardreg.core.naming import validate_source_id
from shardreg.core.registry import ShardRegistry


class ShardAlreadyPublishedError(RuntimeError):
    """Raised when a shard is asked to deliver its payload a second time."""


@dataclass
class ShardPublisher:
    """The payload of one generated shard, delivered once to a registry."""
    source_id: str
    payload: Any
    origin: str | None = None
    _published: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        validate_source_id(self.source_id)

    @property
    def published(self) -> bool:
        return self._published

    def publish(self, registry: ShardRegistry) -> None:
        """Hand the payload to the registry.

        Raises:
            ShardAlreadyPublishedError: If this shard already published.
        """
        if self._published:
            raise ShardAlreadyPublishedError(f"Shard {self.source_id} was already published")
        self._published = True
        registry.publish(self.source_id, self.payload)
