from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from shardreg.core.naming import validate_source_id


logger = logging.getLogger(__name__)

P = TypeVar("P")
Consumer = Callable[[str, P], None]


@dataclass
class Pending(Generic[P]):
    """No sink yet: payloads wait in the holding area."""
    buffered: dict[str, P] = field(default_factory=dict)


@dataclass
class Installed(Generic[P]):
    """A sink is installed: payloads are delivered directly."""
    consumer: Consumer


class ShardRegistry(Generic[P]):
    """Hands shard payloads to a sink that may be installed at any time.

    One instance is shared by every publisher of a page load. Before
    `install` is called payloads are kept in an insertion-ordered holding
    area keyed by source id; `install` drains that area into the consumer
    once, and every later `publish` calls the consumer directly.

    Execution is single-threaded: each `publish` and `install` call runs to
    completion before the next one starts, so no locking is done.
    """

    def __init__(self) -> None:
        self._state: Pending[P] | Installed[P] = Pending()

    @property
    def installed(self) -> bool:
        return isinstance(self._state, Installed)

    @property
    def consumer(self) -> Consumer | None:
        if isinstance(self._state, Installed):
            return self._state.consumer
        return None

    @property
    def pending(self) -> dict[str, P]:
        """Snapshot of the holding area; empty once a sink is installed."""
        if isinstance(self._state, Pending):
            return dict(self._state.buffered)
        return {}

    @property
    def pending_ids(self) -> list[str]:
        return list(self.pending)

    def publish(self, source_id: str, payload: P) -> None:
        """Deliver a payload to the sink, or buffer it until one is installed.

        Args:
            source_id (str): Identifier of the interface the payload describes.
            payload (P): Opaque payload; never inspected.

        Raises:
            InvalidSourceIdError: If source_id is empty.

        Notes:
            Exceptions raised by the consumer propagate to the caller.
        """
        validate_source_id(source_id)
        state = self._state
        if isinstance(state, Installed):
            state.consumer(source_id, payload)
            return
        if source_id in state.buffered:
            logger.debug("replacing pending payload for %s", source_id)
        else:
            logger.debug("buffering payload for %s", source_id)
        state.buffered[source_id] = payload

    def install(self, consumer: Consumer) -> None:
        """Install the sink and hand it every payload buffered so far.

        A later call only replaces the consumer; payloads already drained are
        not delivered again.

        Notes:
            If the consumer raises while draining, the exception propagates and
            the payloads not yet delivered are dropped. They are not kept for a
            later install.
        """
        state = self._state
        self._state = Installed(consumer)
        if isinstance(state, Installed):
            logger.debug("replacing installed sink")
            return

        backlog = list(state.buffered.items())
        state.buffered.clear()
        logger.debug("sink installed, draining %d pending payload(s)", len(backlog))
        delivered = 0
        try:
            for source_id, payload in backlog:
                consumer(source_id, payload)
                delivered += 1
        finally:
            stranded = [source_id for source_id, _ in backlog[delivered + 1:]]
            if delivered < len(backlog):
                logger.warning(
                    "sink failed on %s; %d payload(s) not delivered: %s",
                    backlog[delivered][0],
                    len(stranded),
                    ", ".join(stranded) or "-",
                )
