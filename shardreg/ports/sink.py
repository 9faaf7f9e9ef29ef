from __future__ import annotations

from typing import Any, Protocol


class ImplementorSink(Protocol):
    """Consumer boundary that receives implementor payloads."""
    def __call__(self, source_id: str, payload: Any) -> None:
        """Accept the payload published for one interface.

        Args:
            source_id (str): Identifier of the interface.
            payload (Any): Implementor payload, usually a tuple of descriptors.
        """
        ...
