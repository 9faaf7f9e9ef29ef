from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImplementorDescriptor:
    """One implementor entry of an interface, rendered by the generator."""
    rendered: str
    crate: str | None = None
    generics: tuple[str, ...] = field(default_factory=tuple)
    where_clause: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "crate": self.crate,
            "rendered": self.rendered,
            "generics": list(self.generics),
            "where_clause": self.where_clause,
        }


# A payload is the ordered implementor list of one interface.
Payload = tuple[ImplementorDescriptor, ...]


@dataclass(frozen=True)
class Delivery:
    """A payload handed to a sink, in the order it was received."""
    source_id: str
    payload: Any
