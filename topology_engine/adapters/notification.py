"""
Notification Sinks

Receivers of simulation status snapshots. Pushing never blocks the
simulator: the broadcast sink hands snapshots to bounded per-subscriber
queues and drops updates for subscribers that are not keeping up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Set

from topology_engine.simulation.models import SimulationStatus

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Writes every update to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def push_simulation_update(self, status: SimulationStatus) -> None:
        logger.log(
            self.level,
            f"Simulation {status.simulation_id} [{status.state.value}] "
            f"published={status.messages_published} failed={status.failed_messages} "
            f"rate={status.publish_rate_per_second:.1f}/s",
        )


class BroadcastNotificationSink:
    """
    Fans updates out to subscribers (e.g. websocket connections).

    Usage::

        queue = sink.subscribe()
        try:
            status = await queue.get()
        finally:
            sink.unsubscribe(queue)
    """

    def __init__(self, max_queue_size: int = 256):
        self.max_queue_size = max_queue_size
        self._subscribers: Set["asyncio.Queue[SimulationStatus]"] = set()
        self.dropped = 0

    def subscribe(self) -> "asyncio.Queue[SimulationStatus]":
        queue: "asyncio.Queue[SimulationStatus]" = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[SimulationStatus]") -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def push_simulation_update(self, status: SimulationStatus) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(status)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.debug(f"Dropped update for slow subscriber ({status.simulation_id})")


class CompositeNotificationSink:
    """Forwards each update to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable = ()):
        self.sinks: List = list(sinks)

    def push_simulation_update(self, status: SimulationStatus) -> None:
        for sink in self.sinks:
            try:
                sink.push_simulation_update(status)
            except Exception:
                logger.exception(f"Notification sink {type(sink).__name__} failed")
