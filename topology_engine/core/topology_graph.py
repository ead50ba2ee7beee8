"""
Topology Graph

Directed-graph projection of a Topology. Exchanges and queues are nodes,
bindings are edges from the source exchange to the destination. The graph
answers degree queries for the analyzer, detects exchange-to-exchange
routing cycles, and resolves which queues a published message reaches.
"""

from __future__ import annotations

import zlib
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import networkx as nx

from .arguments import ArgumentKey
from .models import Binding, DestinationType, Exchange, ExchangeType, Topology
from .rules import headers_match, topic_matches


EXCHANGE = "exchange"
QUEUE = "queue"


def node_id(kind: str, name: str) -> str:
    return f"{kind}:{name}"


class TopologyGraph:
    """
    networkx MultiDiGraph over one Topology, one edge per binding.

    Node ids are ``exchange:<name>`` / ``queue:<name>`` so that an exchange and
    a queue may share a name. Dangling binding references still produce an
    edge; their endpoint node carries ``declared=False``.
    """

    def __init__(self, topology: Topology):
        self.topology = topology
        self.graph = nx.MultiDiGraph()
        self._exchanges: Dict[str, Exchange] = {}
        self._build()

    def _build(self) -> None:
        for exchange in self.topology.exchanges:
            self._exchanges.setdefault(exchange.name, exchange)
            self.graph.add_node(
                node_id(EXCHANGE, exchange.name),
                kind=EXCHANGE, name=exchange.name, type=exchange.type, declared=True,
            )
        for queue in self.topology.queues:
            self.graph.add_node(
                node_id(QUEUE, queue.name), kind=QUEUE, name=queue.name, declared=True,
            )
        for binding in self.topology.bindings:
            source = node_id(EXCHANGE, binding.source_exchange)
            kind = EXCHANGE if binding.is_exchange_to_exchange else QUEUE
            target = node_id(kind, binding.destination)
            for node, name, node_kind in (
                (source, binding.source_exchange, EXCHANGE),
                (target, binding.destination, kind),
            ):
                if node not in self.graph:
                    self.graph.add_node(node, kind=node_kind, name=name, declared=False)
            self.graph.add_edge(source, target, key=binding.id, binding=binding)

    # -- Degree queries -----------------------------------------------------

    def outgoing_bindings(self, exchange_name: str) -> List[Binding]:
        node = node_id(EXCHANGE, exchange_name)
        if node not in self.graph:
            return []
        return [data["binding"] for _, _, data in self.graph.out_edges(node, data=True)]

    def incoming_bindings(self, queue_name: str) -> List[Binding]:
        node = node_id(QUEUE, queue_name)
        if node not in self.graph:
            return []
        return [data["binding"] for _, _, data in self.graph.in_edges(node, data=True)]

    def source_exchanges(self, queue_name: str) -> Set[str]:
        """Distinct exchanges with a binding into the queue."""
        return {b.source_exchange for b in self.incoming_bindings(queue_name)}

    # -- Cycles -------------------------------------------------------------

    def exchange_cycles(self) -> List[List[str]]:
        """
        Exchange-to-exchange routing loops, found by depth-first search with
        visited and in-progress sets. Each loop is reported once, rotated to
        start at its lexicographically smallest exchange.
        """
        adjacency: Dict[str, List[str]] = {}
        for binding in self.topology.bindings:
            if binding.is_exchange_to_exchange:
                adjacency.setdefault(binding.source_exchange, []).append(binding.destination)

        visited: Set[str] = set()
        in_progress: Set[str] = set()
        path: List[str] = []
        seen: Set[Tuple[str, ...]] = set()
        cycles: List[List[str]] = []

        def visit(name: str) -> None:
            visited.add(name)
            in_progress.add(name)
            path.append(name)
            for nxt in adjacency.get(name, []):
                if nxt in in_progress:
                    loop = path[path.index(nxt):]
                    pivot = loop.index(min(loop))
                    canonical = tuple(loop[pivot:] + loop[:pivot])
                    if canonical not in seen:
                        seen.add(canonical)
                        cycles.append(list(canonical))
                elif nxt not in visited:
                    visit(nxt)
            path.pop()
            in_progress.discard(name)

        for start in sorted(adjacency):
            if start not in visited:
                visit(start)
        return cycles

    # -- Routing ------------------------------------------------------------

    def route(
        self,
        exchange_name: str,
        routing_key: str,
        headers: Optional[Mapping[str, Any]] = None,
    ) -> List[str]:
        """
        Queues a message published to ``exchange_name`` would reach, in
        binding order without duplicates. Exchange-to-exchange bindings are
        followed; an exchange is entered at most once per publish.
        """
        headers = headers or {}
        queues: List[str] = []
        entered: Set[str] = set()

        def deliver(name: str) -> None:
            if name in entered:
                return
            entered.add(name)
            exchange = self._exchanges.get(name)
            if exchange is None:
                return
            for binding in self._select(exchange, routing_key, headers):
                if binding.destination_type == DestinationType.EXCHANGE:
                    deliver(binding.destination)
                elif binding.destination not in queues:
                    queues.append(binding.destination)

        deliver(exchange_name)
        return queues

    def _select(
        self, exchange: Exchange, routing_key: str, headers: Mapping[str, Any]
    ) -> List[Binding]:
        bindings = list(self.topology.bindings_from(exchange.name))
        kind = exchange.type
        if kind == ExchangeType.DIRECT:
            return [b for b in bindings if b.routing_key == routing_key]
        if kind == ExchangeType.TOPIC:
            return [b for b in bindings if topic_matches(b.routing_key, routing_key)]
        if kind == ExchangeType.HEADERS:
            return [b for b in bindings if headers_match(b.arguments, headers)]
        if kind == ExchangeType.CONSISTENT_HASH:
            if not bindings:
                return []
            header = exchange.arguments.get_str(ArgumentKey.HASH_HEADER)
            value = headers.get(header, "") if header else routing_key
            index = zlib.crc32(str(value).encode("utf-8")) % len(bindings)
            return [bindings[index]]
        # Fanout and DeadLetter deliver to every binding
        return bindings
