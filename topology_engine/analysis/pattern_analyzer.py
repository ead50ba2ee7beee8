"""
Pattern Analyzer

Heuristic anti-pattern detection over a Topology. Findings are advisory:
nothing here blocks an operation, and every check runs over the whole
topology regardless of what earlier checks found.

Finding Types (severity):
    ERROR   (3) : missing dead-letter exchange, exchange routing cycle
    WARNING (2) : unbound exchange/queue, wildcard on direct binding,
                  malformed topic pattern
    INFO    (1) : unbounded queue, no DLX, naming, topic without wildcards,
                  catch-all topic pattern, queue fan-in
"""

from __future__ import annotations

import logging
from typing import List

from topology_engine.core.models import ExchangeType, Topology
from topology_engine.core.rules import (
    MULTI_WORD,
    has_wildcard,
    rule_for,
    topic_pattern_problems,
)
from topology_engine.core.topology_graph import TopologyGraph
from .models import AnalysisFinding, AnalysisResult, FindingType

logger = logging.getLogger(__name__)


def _finding(kind: FindingType, message: str, *recommendations: str) -> AnalysisFinding:
    return AnalysisFinding(
        type=kind,
        message=message,
        severity_level=kind.severity_level,
        recommendations=list(recommendations),
    )


class PatternAnalyzer:
    """Runs every check and ranks the findings (stable within a severity)."""

    def analyze(self, topology: Topology) -> AnalysisResult:
        graph = TopologyGraph(topology)
        findings: List[AnalysisFinding] = []
        findings.extend(self._unbound_exchanges(topology, graph))
        findings.extend(self._unbound_queues(topology, graph))
        findings.extend(self._unbounded_queues(topology))
        findings.extend(self._dead_letter_queues(topology))
        findings.extend(self._queue_naming(topology))
        findings.extend(self._topic_exchanges(topology))
        findings.extend(self._fan_in(topology, graph))
        findings.extend(self._routing_cycles(graph))
        findings.extend(self._binding_patterns(topology))

        findings.sort(key=lambda f: -f.severity_level)
        result = AnalysisResult(findings=findings)
        logger.debug(f"Analyzed topology {topology.name!r}: {result.summary}")
        return result

    # ------------------------------------------------------------------
    # Bindings coverage
    # ------------------------------------------------------------------

    @staticmethod
    def _unbound_exchanges(topology: Topology, graph: TopologyGraph) -> List[AnalysisFinding]:
        return [
            _finding(
                FindingType.WARNING,
                f"Exchange '{e.name}' has no bindings",
                f"Consider adding bindings to exchange '{e.name}' or remove it if unused",
                "Unbound exchanges can lead to message loss if publishers are using them",
            )
            for e in topology.exchanges
            if e.name != ""
            and e.type != ExchangeType.DEAD_LETTER
            and not graph.outgoing_bindings(e.name)
        ]

    @staticmethod
    def _unbound_queues(topology: Topology, graph: TopologyGraph) -> List[AnalysisFinding]:
        return [
            _finding(
                FindingType.WARNING,
                f"Queue '{q.name}' is not bound to any exchange",
                f"Bind queue '{q.name}' to an appropriate exchange",
                "Unbound queues will not receive any messages",
            )
            for q in topology.queues
            if not graph.incoming_bindings(q.name)
        ]

    # ------------------------------------------------------------------
    # Queue configuration
    # ------------------------------------------------------------------

    @staticmethod
    def _unbounded_queues(topology: Topology) -> List[AnalysisFinding]:
        return [
            _finding(
                FindingType.INFO,
                f"Queue '{q.name}' has no message limit (x-max-length)",
                f"Consider setting a maximum length for queue '{q.name}'",
                "Unbounded queues can consume unlimited memory if producers outpace consumers",
                "Use x-max-length argument to set a safe upper bound",
            )
            for q in topology.queues
            if q.max_length is None
        ]

    @staticmethod
    def _dead_letter_queues(topology: Topology) -> List[AnalysisFinding]:
        findings: List[AnalysisFinding] = []
        exchange_names = {e.name for e in topology.exchanges}
        for queue in topology.queues:
            dlx = queue.declared_dead_letter_exchange
            if dlx and dlx not in exchange_names:
                findings.append(_finding(
                    FindingType.ERROR,
                    f"Dead letter exchange '{dlx}' for queue '{queue.name}' does not exist",
                    f"Create the dead letter exchange '{dlx}'",
                    "Ensure the DLX has appropriate bindings to handle dead-lettered messages",
                ))
        for queue in topology.queues:
            if not queue.declared_dead_letter_exchange:
                findings.append(_finding(
                    FindingType.INFO,
                    f"Queue '{queue.name}' has no dead letter exchange configured",
                    "Consider configuring a dead letter exchange for handling failed messages",
                    "Dead letter exchanges help prevent message loss and aid in debugging",
                ))
        return findings

    @staticmethod
    def _queue_naming(topology: Topology) -> List[AnalysisFinding]:
        return [
            _finding(
                FindingType.INFO,
                f"Queue '{q.name}' does not follow dot-separated naming convention",
                "Consider using dot-separated names (e.g., 'service.entity.action')",
                "Consistent naming helps with organization and topic-based routing",
            )
            for q in topology.queues
            if "." not in q.name
        ]

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @staticmethod
    def _topic_exchanges(topology: Topology) -> List[AnalysisFinding]:
        return [
            _finding(
                FindingType.INFO,
                f"Topic exchange '{e.name}' has no wildcard bindings",
                "Consider using direct exchange if wildcards are not needed",
                "Topic exchanges are most useful with wildcard routing patterns",
            )
            for e in topology.exchanges
            if e.type == ExchangeType.TOPIC
            and not any(has_wildcard(b.routing_key) for b in topology.bindings_from(e.name))
        ]

    @staticmethod
    def _fan_in(topology: Topology, graph: TopologyGraph) -> List[AnalysisFinding]:
        findings: List[AnalysisFinding] = []
        seen = set()
        for binding in topology.bindings:
            queue = binding.destination_queue
            if queue is None or queue in seen:
                continue
            seen.add(queue)
            sources = graph.source_exchanges(queue)
            if len(sources) > 1:
                findings.append(_finding(
                    FindingType.INFO,
                    f"Queue '{queue}' is bound to multiple exchanges ({len(sources)})",
                    "Multiple bindings can make message flow harder to track",
                    "Consider if this is intentional or if the routing could be simplified",
                ))
        return findings

    @staticmethod
    def _routing_cycles(graph: TopologyGraph) -> List[AnalysisFinding]:
        findings: List[AnalysisFinding] = []
        for cycle in graph.exchange_cycles():
            path = " -> ".join(cycle + [cycle[0]])
            findings.append(_finding(
                FindingType.ERROR,
                f"Exchange routing cycle detected: {path}",
                "Remove one of the exchange-to-exchange bindings in the loop",
                "Cyclic exchange bindings can route a message back to an exchange it already passed",
            ))
        return findings

    @staticmethod
    def _binding_patterns(topology: Topology) -> List[AnalysisFinding]:
        findings: List[AnalysisFinding] = []
        for binding in topology.bindings:
            source = topology.exchange(binding.source_exchange)
            if source is None or not binding.routing_key:
                continue
            rule = rule_for(source.type)
            key = binding.routing_key

            if rule.routes_by_key and not rule.supports_wildcards and has_wildcard(key):
                findings.append(_finding(
                    FindingType.WARNING,
                    f"Direct exchange '{source.name}' binding uses wildcard routing key '{key}'",
                    "Direct exchanges match routing keys literally; '*' and '#' are not wildcards here",
                    f"Use a topic exchange if pattern matching on '{key}' is intended",
                ))

            if rule.supports_wildcards:
                problems = topic_pattern_problems(key)
                if problems:
                    findings.append(_finding(
                        FindingType.WARNING,
                        f"Topic binding pattern '{key}' on exchange '{source.name}' is malformed: "
                        + ", ".join(problems),
                        "Wildcards '*' and '#' must occupy a whole dot-separated segment",
                    ))
                if key.startswith(MULTI_WORD):
                    findings.append(_finding(
                        FindingType.INFO,
                        f"Topic binding pattern '{key}' on exchange '{source.name}' "
                        f"starts with '#' and matches broadly",
                        "Patterns starting with '#' act as a catch-all; narrow the prefix if possible",
                    ))
        return findings
