"""
In-Memory Broker

IBrokerClient that routes messages through a Topology held in memory. It
mirrors the broker behavior the engine relies on: routing per exchange
type (including exchange-to-exchange bindings), the nameless default
exchange, peek semantics where unacknowledged messages return to their
queue when the session closes, and dead-lettering with ``x-death`` records.

Used as the demo backend and as the broker double in tests.
"""

from __future__ import annotations

import copy
import itertools
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Deque, Dict, List, Optional

from topology_engine.core.exceptions import BrokerError, NotFoundError
from topology_engine.core.interfaces import BrokerMessage
from topology_engine.core.models import Topology, utc_now
from topology_engine.core.topology_graph import TopologyGraph
from topology_engine.debug.death_chain import FIRST_DEATH_EXCHANGE, FIRST_DEATH_QUEUE, X_DEATH

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE = ""


@dataclass
class PublishedMessage:
    """Record of one publish call, kept in publish order."""
    exchange: str
    routing_key: str
    headers: Dict[str, Any]
    body: bytes
    message_id: Optional[str]
    routed_to: List[str] = field(default_factory=list)


class InMemoryBroker:

    def __init__(self, topology: Optional[Topology] = None):
        self.published: List[PublishedMessage] = []
        self._tags = itertools.count(1)
        self.load(topology or Topology(name="in-memory"))

    def load(self, topology: Topology) -> None:
        """Replace the topology. Queues that still exist keep their messages."""
        previous = getattr(self, "_queues", {})
        self.topology = topology
        self._graph = TopologyGraph(topology)
        self._queues: Dict[str, Deque[BrokerMessage]] = {
            q.name: previous.get(q.name, deque()) for q in topology.queues
        }

    # ------------------------------------------------------------------
    # IBrokerClient
    # ------------------------------------------------------------------

    async def get_current_topology(self) -> Topology:
        return self.topology

    async def health_check(self) -> bool:
        return True

    @asynccontextmanager
    async def session(self) -> AsyncIterator["InMemorySession"]:
        session = InMemorySession(self)
        try:
            yield session
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Broker operations
    # ------------------------------------------------------------------

    def publish(
        self,
        exchange: str,
        routing_key: str,
        headers: Optional[Dict[str, Any]] = None,
        body: bytes = b"",
        message_id: Optional[str] = None,
    ) -> List[str]:
        """Route one message and return the queues it was delivered to."""
        headers = dict(headers or {})
        if exchange == DEFAULT_EXCHANGE:
            targets = [routing_key] if routing_key in self._queues else []
        elif self.topology.exchange(exchange) is None:
            raise BrokerError(f"NOT_FOUND - no exchange '{exchange}'")
        else:
            targets = []
            for queue in self._graph.route(exchange, routing_key, headers):
                if queue in self._queues:
                    targets.append(queue)
                else:
                    logger.debug(f"Skipping undeclared queue '{queue}' bound to '{exchange}'")

        for queue in targets:
            self._queues[queue].append(BrokerMessage(
                message_id=message_id,
                body=body,
                headers=copy.deepcopy(headers),
                exchange=exchange,
                routing_key=routing_key,
                queue=queue,
            ))
        self.published.append(PublishedMessage(
            exchange=exchange,
            routing_key=routing_key,
            headers=headers,
            body=body,
            message_id=message_id,
            routed_to=list(targets),
        ))
        if not targets:
            logger.debug(f"Message {message_id} to '{exchange}' ({routing_key}) was unroutable")
        return targets

    def dead_letter(self, queue: str, message_id: str, reason: str = "rejected") -> List[str]:
        """
        Dead-letter ``message_id`` out of ``queue`` through the queue's
        dead-letter exchange, recording the event in ``x-death``.
        """
        declared = self.topology.queue(queue)
        pending = self._require_queue(queue)
        message = next((m for m in pending if m.message_id == message_id), None)
        if declared is None or message is None:
            raise NotFoundError(f"Message '{message_id}' not found in queue '{queue}'")
        dlx = declared.declared_dead_letter_exchange
        if not dlx:
            raise ValueError(f"Queue '{queue}' has no dead letter exchange")
        pending.remove(message)

        headers = dict(message.headers)
        deaths = [dict(d) for d in headers.get(X_DEATH, [])]
        existing = next(
            (d for d in deaths if d.get("queue") == queue and d.get("reason") == reason), None
        )
        if existing is not None:
            deaths.remove(existing)
            existing["count"] = existing.get("count", 1) + 1
            existing["time"] = utc_now()
            record = existing
        else:
            record = {
                "exchange": message.exchange,
                "queue": queue,
                "reason": reason,
                "routing-keys": [message.routing_key],
                "count": 1,
                "time": utc_now(),
            }
        headers[X_DEATH] = [record] + deaths
        headers.setdefault(FIRST_DEATH_EXCHANGE, message.exchange)
        headers.setdefault(FIRST_DEATH_QUEUE, queue)

        routing_key = declared.dead_letter_routing_key or message.routing_key
        return self.publish(dlx, routing_key, headers, message.body, message.message_id)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def depth(self, queue: str) -> int:
        return len(self._require_queue(queue))

    def messages(self, queue: str) -> List[BrokerMessage]:
        return list(self._require_queue(queue))

    def _require_queue(self, queue: str) -> Deque[BrokerMessage]:
        pending = self._queues.get(queue)
        if pending is None:
            raise BrokerError(f"NOT_FOUND - no queue '{queue}'")
        return pending

    def _next_tag(self) -> int:
        return next(self._tags)


class InMemorySession:
    """Session over an InMemoryBroker; tracks its own unacknowledged peeks."""

    def __init__(self, broker: InMemoryBroker):
        self.broker = broker
        self._unacked: Dict[int, BrokerMessage] = {}
        self.closed = False

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        headers: Dict[str, Any],
        body: bytes,
        message_id: Optional[str] = None,
    ) -> None:
        self._check_open()
        self.broker.publish(exchange, routing_key, headers, body, message_id)

    async def peek_or_consume(self, queue: str, ack: bool) -> Optional[BrokerMessage]:
        self._check_open()
        pending = self.broker._require_queue(queue)
        if not pending:
            return None
        stored = pending.popleft()
        delivered = copy.copy(stored)
        delivered.headers = copy.deepcopy(stored.headers)
        if not ack:
            delivered.delivery_tag = self.broker._next_tag()
            self._unacked[delivered.delivery_tag] = stored
        return delivered

    async def acknowledge(self, message: BrokerMessage) -> None:
        self._check_open()
        if self._unacked.pop(message.delivery_tag, None) is None:
            raise BrokerError(f"PRECONDITION_FAILED - unknown delivery tag {message.delivery_tag}")

    def close(self) -> None:
        """Return unacknowledged messages to the head of their queues in order."""
        if self.closed:
            return
        self.closed = True
        for tag in sorted(self._unacked, reverse=True):
            stored = self._unacked[tag]
            pending = self.broker._queues.get(stored.queue)
            if pending is not None:
                pending.appendleft(stored)
        self._unacked.clear()

    def _check_open(self) -> None:
        if self.closed:
            raise BrokerError("Session is closed")
