"""
Tests for the graph projection: routing, degrees and cycle detection.
"""

from topology_engine.core.models import Binding, Exchange, Queue, Topology
from topology_engine.core.topology_graph import TopologyGraph


def _topology(exchanges, queues, bindings):
    return Topology(name="t", exchanges=exchanges, queues=queues, bindings=bindings)


class TestRouting:

    def test_topic_routes_to_every_matching_queue(self, sample_topology):
        graph = TopologyGraph(sample_topology)
        assert graph.route("orders", "orders.created") == ["orders.created", "orders.all"]
        assert graph.route("orders", "orders.shipped") == ["orders.all"]

    def test_direct_routes_on_exact_key(self, sample_topology):
        graph = TopologyGraph(sample_topology)
        assert graph.route("payments", "payments.process") == ["payments.process"]
        assert graph.route("payments", "payments.refund") == []

    def test_fanout_ignores_routing_key(self, sample_topology):
        graph = TopologyGraph(sample_topology)
        assert graph.route("notifications", "whatever") == ["notifications.email"]

    def test_unknown_exchange_routes_nowhere(self, sample_topology):
        assert TopologyGraph(sample_topology).route("missing", "k") == []

    def test_headers_exchange(self):
        topology = _topology(
            [Exchange(name="docs", type="Headers")],
            [Queue(name="pdf"), Queue(name="any")],
            [
                Binding(source_exchange="docs", destination="pdf", arguments={"format": "pdf"}),
                Binding(source_exchange="docs", destination="any",
                        arguments={"x-match": "any", "format": "pdf", "type": "log"}),
            ],
        )
        graph = TopologyGraph(topology)
        assert graph.route("docs", "", {"format": "pdf"}) == ["pdf", "any"]
        assert graph.route("docs", "", {"type": "log"}) == ["any"]

    def test_exchange_to_exchange_bindings_are_followed(self):
        topology = _topology(
            [Exchange(name="front", type="Fanout"), Exchange(name="back", type="Direct")],
            [Queue(name="q")],
            [
                Binding(source_exchange="front", destination="back", destination_type="exchange"),
                Binding(source_exchange="back", destination="q", routing_key="k"),
            ],
        )
        assert TopologyGraph(topology).route("front", "k") == ["q"]

    def test_routing_through_a_cycle_terminates(self):
        topology = _topology(
            [Exchange(name="a", type="Fanout"), Exchange(name="b", type="Fanout")],
            [Queue(name="q")],
            [
                Binding(source_exchange="a", destination="b", destination_type="exchange"),
                Binding(source_exchange="b", destination="a", destination_type="exchange"),
                Binding(source_exchange="b", destination="q"),
            ],
        )
        assert TopologyGraph(topology).route("a", "") == ["q"]

    def test_consistent_hash_picks_one_binding_deterministically(self):
        topology = _topology(
            [Exchange(name="hash", type="ConsistentHash", arguments={"hash-header": "user"})],
            [Queue(name="q1"), Queue(name="q2"), Queue(name="q3")],
            [Binding(source_exchange="hash", destination=f"q{i}", routing_key="1") for i in (1, 2, 3)],
        )
        graph = TopologyGraph(topology)
        first = graph.route("hash", "", {"user": "alice"})
        assert len(first) == 1
        assert graph.route("hash", "", {"user": "alice"}) == first


class TestDegrees:

    def test_source_exchanges(self):
        topology = _topology(
            [Exchange(name="a", type="Fanout"), Exchange(name="b", type="Fanout")],
            [Queue(name="q")],
            [
                Binding(source_exchange="a", destination="q"),
                Binding(source_exchange="a", destination="q"),
                Binding(source_exchange="b", destination="q"),
            ],
        )
        graph = TopologyGraph(topology)
        assert graph.source_exchanges("q") == {"a", "b"}
        assert len(graph.incoming_bindings("q")) == 3
        assert len(graph.outgoing_bindings("a")) == 2

    def test_dangling_reference_is_an_undeclared_node(self):
        topology = _topology([Exchange(name="a", type="Fanout")], [],
                             [Binding(source_exchange="a", destination="ghost")])
        graph = TopologyGraph(topology)
        assert graph.graph.nodes["queue:ghost"]["declared"] is False
        assert graph.graph.nodes["exchange:a"]["declared"] is True


class TestCycles:

    def test_two_exchange_cycle_reported_once(self):
        topology = _topology(
            [Exchange(name="b", type="Fanout"), Exchange(name="a", type="Fanout")],
            [],
            [
                Binding(source_exchange="b", destination="a", destination_type="exchange"),
                Binding(source_exchange="a", destination="b", destination_type="exchange"),
            ],
        )
        assert TopologyGraph(topology).exchange_cycles() == [["a", "b"]]

    def test_self_loop(self):
        topology = _topology(
            [Exchange(name="a", type="Fanout")], [],
            [Binding(source_exchange="a", destination="a", destination_type="exchange")],
        )
        assert TopologyGraph(topology).exchange_cycles() == [["a"]]

    def test_acyclic_chain(self, sample_topology):
        assert TopologyGraph(sample_topology).exchange_cycles() == []
