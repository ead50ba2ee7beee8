"""
Dead-Letter Tracer

Reconstructs where a message has been from the dead-lettering metadata the
broker attached to it, lists dead-lettered messages, and republishes a
dead-lettered message to where it was originally sent.

Every call opens one broker session and closes it on all exit paths.
Messages are read by non-destructive peek; peeked messages return to their
queue when the session closes. Broker I/O errors propagate to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from topology_engine.config.settings import Settings
from topology_engine.core.exceptions import NotFoundError
from topology_engine.core.interfaces import BrokerMessage, IBrokerClient, IBrokerSession
from topology_engine.core.models import Topology, utc_now
from .death_chain import (
    first_death,
    strip_death_headers,
    to_dead_lettered_message,
)
from .models import DeadLetteredMessage, MessageTrace

DEFAULT_DEAD_LETTER_SUFFIXES = (".dlq", ".dead")
DEFAULT_SCAN_LIMIT = 1000


def dead_letter_candidates(
    topology: Topology,
    suffixes: Sequence[str] = DEFAULT_DEAD_LETTER_SUFFIXES,
) -> List[str]:
    """
    Queues that may hold dead-lettered messages: those declaring a
    dead-letter exchange and those named with a dead-letter suffix.
    """
    lowered = tuple(s.lower() for s in suffixes)
    return [
        q.name for q in topology.queues
        if q.declared_dead_letter_exchange or q.name.lower().endswith(lowered)
    ]


class DeadLetterTracer:

    def __init__(
        self,
        broker: IBrokerClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.broker = broker
        self.suffixes: Tuple[str, ...] = DEFAULT_DEAD_LETTER_SUFFIXES
        self.scan_limit: int = DEFAULT_SCAN_LIMIT
        if settings is not None:
            self.suffixes = tuple(settings.dead_letter_suffixes)
            self.scan_limit = settings.trace_scan_limit
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def trace_message(self, message_id: str, queue_name: Optional[str] = None) -> MessageTrace:
        """
        Trace ``message_id`` through its death chain.

        Dead-letter candidates (or ``queue_name`` alone) are searched first.
        Failing that, live queues are peeked and first-death headers give a
        partial trace. Raises NotFoundError when neither pass finds it.
        """
        topology = await self.broker.get_current_topology()
        candidates = [queue_name] if queue_name else dead_letter_candidates(topology, self.suffixes)

        async with self.broker.session() as session:
            found = await self._find(session, candidates, message_id)
            if found is not None:
                return self._dead_letter_trace(message_id, found)

            live = [q.name for q in topology.queues if q.name not in candidates]
            found = await self._find(session, live, message_id)
            if found is not None:
                return self._partial_trace(message_id, found)

        raise NotFoundError(f"Message '{message_id}' not found in any queue")

    async def requeue_dead_lettered(self, message_id: str) -> DeadLetteredMessage:
        """
        Republish a dead-lettered message to the exchange and routing key of
        its most recent death record, then remove it from the dead-letter
        queue. Death headers are not carried over.
        """
        topology = await self.broker.get_current_topology()
        candidates = dead_letter_candidates(topology, self.suffixes)

        async with self.broker.session() as session:
            found = await self._find(session, candidates, message_id)
            if found is None:
                raise NotFoundError(f"Message '{message_id}' not found in any dead letter queue")

            details = self._details(found)
            if not details.death_chain or not details.original_routing_key:
                raise NotFoundError(
                    f"Original destination of message '{message_id}' cannot be determined"
                )

            await session.publish(
                details.original_exchange,
                details.original_routing_key,
                strip_death_headers(found.headers),
                found.body,
                message_id=found.message_id,
            )
            await session.acknowledge(found)

        self.logger.info(
            f"Requeued message {message_id} from {details.source_queue} to exchange "
            f"'{details.original_exchange}' with routing key '{details.original_routing_key}'"
        )
        return details

    async def get_dead_lettered_messages(
        self, queue_name: Optional[str] = None, limit: int = 100
    ) -> List[DeadLetteredMessage]:
        topology = await self.broker.get_current_topology()
        candidates = [queue_name] if queue_name else dead_letter_candidates(topology, self.suffixes)
        messages: List[DeadLetteredMessage] = []
        if limit <= 0:
            return messages

        async with self.broker.session() as session:
            for queue in candidates:
                async for message in self._peek(session, queue, limit - len(messages)):
                    messages.append(self._details(message))
                if len(messages) >= limit:
                    break
        return messages

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _peek(self, session: IBrokerSession, queue: str, limit: int):
        """Yield up to ``limit`` messages of ``queue`` without removing them."""
        for _ in range(limit):
            message = await session.peek_or_consume(queue, ack=False)
            if message is None:
                return
            yield message

    async def _find(
        self, session: IBrokerSession, queues: Iterable[str], message_id: str
    ) -> Optional[BrokerMessage]:
        for queue in queues:
            async for message in self._peek(session, queue, self.scan_limit):
                if message.message_id == message_id:
                    self.logger.debug(f"Found message {message_id} in queue {queue}")
                    return message
        return None

    def _details(self, message: BrokerMessage) -> DeadLetteredMessage:
        return to_dead_lettered_message(
            message_id=message.message_id or "",
            source_queue=message.queue,
            headers=message.headers,
            body=message.body,
            received_at=self.clock(),
        )

    def _dead_letter_trace(self, message_id: str, message: BrokerMessage) -> MessageTrace:
        details = self._details(message)
        oldest_first = list(reversed(details.death_chain))
        return MessageTrace(
            message_id=message_id,
            published_at=oldest_first[0].time if oldest_first else None,
            exchanges_visited=[d.exchange for d in oldest_first],
            queues_visited=[d.queue for d in oldest_first],
            final_queue=message.queue,
            was_dead_lettered=True,
            dead_letter_details=details,
        )

    @staticmethod
    def _partial_trace(message_id: str, message: BrokerMessage) -> MessageTrace:
        origin = first_death(message.headers)
        return MessageTrace(
            message_id=message_id,
            exchanges_visited=[origin["exchange"]] if origin["exchange"] is not None else [],
            queues_visited=[origin["queue"]] if origin["queue"] is not None else [],
            final_queue=message.queue,
            was_dead_lettered=False,
        )
