"""
Topology Validator

Structural and per-exchange-type checks over a single Topology. Every rule
runs; problems are accumulated into a ValidationResult and never raised.
Reference checks resolve names against the topology being validated only.

Checks:
    Topology:  name required
    Exchanges: name required and well-formed, unique; headers arguments;
               consistent-hash ``hash-header``
    Queues:    name required and well-formed, unique; positive max-length
               and TTL; dead-letter routing key present when a DLX is set
    Bindings:  source/destination exist; exchange-type rules; routing key
               length
    Orphans:   exchanges without outgoing and queues without incoming
               bindings (warnings)
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Set

from topology_engine.core.arguments import ArgumentKey
from topology_engine.core.models import Binding, Exchange, ExchangeType, Queue, Topology
from topology_engine.core.rules import (
    MAX_ROUTING_KEY_LENGTH,
    binding_violations,
    is_valid_name,
)
from .models import ValidationResult

logger = logging.getLogger(__name__)


class TopologyValidator:
    """Pure, deterministic topology validation."""

    def validate(self, topology: Topology) -> ValidationResult:
        result = ValidationResult()

        if not (topology.name or "").strip():
            result.errors.append("Topology name is required")

        for exchange in topology.exchanges:
            self._validate_exchange(exchange, result)
        for queue in topology.queues:
            self._validate_queue(queue, result)
        self._validate_unique_names(topology, result)

        exchange_names = {e.name for e in topology.exchanges}
        queue_names = {q.name for q in topology.queues}
        for binding in topology.bindings:
            self._validate_binding(binding, topology, exchange_names, queue_names, result)

        self._validate_orphans(topology, result)

        logger.debug(
            f"Validated topology {topology.name!r}: "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_exchange(exchange: Exchange, result: ValidationResult) -> None:
        if not (exchange.name or "").strip():
            result.errors.append("Exchange name is required")
            return
        if not is_valid_name(exchange.name):
            result.errors.append(f"Exchange name '{exchange.name}' contains invalid characters")

        if exchange.type == ExchangeType.HEADERS and not exchange.arguments:
            result.warnings.append(
                f"Headers exchange '{exchange.name}' has no header arguments defined"
            )
        if (exchange.type == ExchangeType.CONSISTENT_HASH
                and not exchange.arguments.has(ArgumentKey.HASH_HEADER)):
            result.errors.append(
                f"Consistent hash exchange '{exchange.name}' requires a 'hash-header' argument"
            )

    @staticmethod
    def _validate_queue(queue: Queue, result: ValidationResult) -> None:
        if not (queue.name or "").strip():
            result.errors.append("Queue name is required")
            return
        if not is_valid_name(queue.name):
            result.errors.append(f"Queue name '{queue.name}' contains invalid characters")

        if queue.max_length is not None and queue.max_length <= 0:
            result.errors.append(f"Queue '{queue.name}' max length must be greater than 0")
        if queue.message_ttl is not None and queue.message_ttl <= 0:
            result.errors.append(f"Queue '{queue.name}' message TTL must be greater than 0")

        if queue.declared_dead_letter_exchange:
            routing_key = queue.dead_letter_routing_key
            if routing_key is None:
                routing_key = queue.arguments.get_str(ArgumentKey.DEAD_LETTER_ROUTING_KEY)
            if routing_key is None:
                result.warnings.append(
                    f"Queue '{queue.name}' has a dead letter exchange but no routing key specified"
                )

    @staticmethod
    def _validate_unique_names(topology: Topology, result: ValidationResult) -> None:
        for kind, names in (
            ("exchange", [e.name for e in topology.exchanges]),
            ("queue", [q.name for q in topology.queues]),
        ):
            counts = Counter(n for n in names if (n or "").strip())
            for name, count in counts.items():
                if count > 1:
                    result.errors.append(f"Duplicate {kind} name '{name}' ({count} definitions)")

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_binding(
        binding: Binding,
        topology: Topology,
        exchange_names: Set[str],
        queue_names: Set[str],
        result: ValidationResult,
    ) -> None:
        if binding.source_exchange not in exchange_names:
            result.errors.append(
                f"Binding references non-existent exchange '{binding.source_exchange}'"
            )

        if binding.is_exchange_to_exchange:
            if binding.destination not in exchange_names:
                result.errors.append(
                    f"Binding references non-existent exchange '{binding.destination}'"
                )
        elif binding.destination not in queue_names:
            result.errors.append(f"Binding references non-existent queue '{binding.destination}'")

        if len(binding.routing_key) > MAX_ROUTING_KEY_LENGTH:
            result.errors.append(
                f"Binding routing key from '{binding.source_exchange}' exceeds "
                f"{MAX_ROUTING_KEY_LENGTH} characters"
            )

        source = topology.exchange(binding.source_exchange)
        if source is not None:
            result.errors.extend(binding_violations(source.type, binding))

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_orphans(topology: Topology, result: ValidationResult) -> None:
        bound_exchanges = {b.source_exchange for b in topology.bindings}
        bound_queues = {b.destination_queue for b in topology.bindings}
        reported: List[str] = []

        for exchange in topology.exchanges:
            if ((exchange.name or "").strip()
                    and exchange.name not in bound_exchanges
                    and exchange.type != ExchangeType.DEAD_LETTER
                    and exchange.name not in reported):
                reported.append(exchange.name)
                result.warnings.append(f"Exchange '{exchange.name}' has no bindings")

        for queue in topology.queues:
            if (queue.name or "").strip() and queue.name not in bound_queues:
                result.warnings.append(f"Queue '{queue.name}' has no bindings")
