from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shardreg.core.models import Delivery


@dataclass
class MemorySink:
    """Sink that keeps every delivery in arrival order."""
    deliveries: list[Delivery] = field(default_factory=list)

    def __call__(self, source_id: str, payload: Any) -> None:
        self.deliveries.append(Delivery(source_id, payload))

    def index(self) -> dict[str, Any]:
        """Latest payload per source id, in first-delivery order."""
        result: dict[str, Any] = {}
        for delivery in self.deliveries:
            result[delivery.source_id] = delivery.payload
        return result

    def count_for(self, source_id: str) -> int:
        return sum(1 for delivery in self.deliveries if delivery.source_id == source_id)


@dataclass
class NoopSink:
    def __call__(self, source_id: str, payload: Any) -> None:
        """No-op sink for dry runs and tests."""
        return None
