"""
Topology Normalizer

Canonical form for names: lower-cased and trimmed. Routing keys are only
trimmed since their case is significant to the broker.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from .arguments import ArgumentKey, Arguments
from .models import Binding, Exchange, Queue, Topology, utc_now

logger = logging.getLogger(__name__)


def normalize_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        return ""
    return name.strip().lower()


def _trim(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


class TopologyNormalizer:
    """
    Builds a normalized copy of a Topology. Identifiers, ``created_at`` and
    metadata are carried over; ``updated_at`` comes from the injected clock.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def normalize(self, topology: Topology) -> Topology:
        normalized = replace(
            topology,
            name=normalize_name(topology.name),
            description=(topology.description or "").strip(),
            exchanges=tuple(self._exchange(e) for e in topology.exchanges),
            queues=tuple(self._queue(q) for q in topology.queues),
            bindings=tuple(self._binding(b) for b in topology.bindings),
            updated_at=self.clock(),
        )
        logger.debug(f"Normalized topology {topology.id} ({topology.name!r} -> {normalized.name!r})")
        return normalized

    @staticmethod
    def _exchange(exchange: Exchange) -> Exchange:
        return replace(exchange, name=normalize_name(exchange.name))

    @staticmethod
    def _queue(queue: Queue) -> Queue:
        dlx = queue.dead_letter_exchange
        arguments = queue.arguments
        declared = arguments.get_str(ArgumentKey.DEAD_LETTER_EXCHANGE)
        if declared is not None:
            # names an exchange
            raw = arguments.to_dict()
            raw[ArgumentKey.DEAD_LETTER_EXCHANGE.value] = normalize_name(declared)
            arguments = Arguments(raw)
        return replace(
            queue,
            name=normalize_name(queue.name),
            arguments=arguments,
            dead_letter_exchange=normalize_name(dlx) if dlx is not None else None,
            dead_letter_routing_key=_trim(queue.dead_letter_routing_key),
        )

    @staticmethod
    def _binding(binding: Binding) -> Binding:
        return replace(
            binding,
            source_exchange=normalize_name(binding.source_exchange),
            destination=normalize_name(binding.destination),
            routing_key=(binding.routing_key or "").strip(),
        )
