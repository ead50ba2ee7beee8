"""
Broker and Notification Ports

Protocols the simulator and the dead-letter tracer depend on. RabbitMqBroker
and InMemoryBroker satisfy IBrokerClient structurally; no inheritance is
required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING, Any, AsyncContextManager, Dict, Optional, Protocol, runtime_checkable,
)

from .models import Topology

if TYPE_CHECKING:
    from topology_engine.simulation.models import SimulationStatus


@dataclass
class BrokerMessage:
    """
    A message read from a queue.

    ``delivery_tag`` is only meaningful to the session that produced the
    message and is what ``acknowledge`` uses to remove it.
    """
    message_id: Optional[str]
    body: bytes
    headers: Dict[str, Any] = field(default_factory=dict)
    exchange: str = ""
    routing_key: str = ""
    queue: str = ""
    delivery_tag: Optional[int] = None


@runtime_checkable
class IBrokerSession(Protocol):
    """
    One channel-like conversation with the broker.

    Messages peeked with ``ack=False`` stay unacknowledged and return to
    their queue when the session closes.
    """

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        headers: Dict[str, Any],
        body: bytes,
        message_id: Optional[str] = None,
    ) -> None:
        ...

    async def peek_or_consume(self, queue: str, ack: bool) -> Optional[BrokerMessage]:
        """Next message of ``queue`` or None when it is empty."""
        ...

    async def acknowledge(self, message: BrokerMessage) -> None:
        """Remove a previously peeked message from its queue."""
        ...


@runtime_checkable
class IBrokerClient(Protocol):
    """Port for broker access."""

    async def get_current_topology(self) -> Topology:
        ...

    async def health_check(self) -> bool:
        ...

    def session(self) -> AsyncContextManager[IBrokerSession]:
        """Open a session; closing it releases the channel and its unacked peeks."""
        ...


@runtime_checkable
class INotificationSink(Protocol):
    """Fire-and-forget receiver of simulation status snapshots."""

    def push_simulation_update(self, status: "SimulationStatus") -> None:
        ...
