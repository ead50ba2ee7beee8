"""
Tests for the routing rule table and the matching functions.
"""

import pytest

from topology_engine.core.models import Binding, ExchangeType
from topology_engine.core.rules import (
    BINDING_RULES,
    binding_violations,
    has_wildcard,
    headers_match,
    is_valid_name,
    topic_matches,
    topic_pattern_problems,
)


class TestRuleTable:

    def test_every_exchange_type_has_a_rule(self):
        assert set(BINDING_RULES) == set(ExchangeType)

    def test_direct_requires_routing_key(self):
        binding = Binding(source_exchange="payments", destination="q")
        assert binding_violations(ExchangeType.DIRECT, binding) == [
            "Direct exchange binding 'payments' requires a routing key"
        ]

    def test_fanout_rejects_routing_key(self):
        binding = Binding(source_exchange="events", destination="q", routing_key="k")
        assert binding_violations(ExchangeType.FANOUT, binding) == [
            "Fanout exchange binding 'events' should not have a routing key"
        ]

    def test_headers_requires_arguments(self):
        binding = Binding(source_exchange="h", destination="q")
        assert binding_violations(ExchangeType.HEADERS, binding) == [
            "Headers exchange binding 'h' requires header arguments"
        ]

    @pytest.mark.parametrize("exchange_type", [ExchangeType.CONSISTENT_HASH, ExchangeType.DEAD_LETTER])
    def test_unconstrained_types(self, exchange_type):
        binding = Binding(source_exchange="x", destination="q", routing_key="anything")
        assert binding_violations(exchange_type, binding) == []


class TestNames:

    @pytest.mark.parametrize("name,valid", [
        ("orders.created", True),
        ("Orders_v2-eu", True),
        ("bad name", False),
        ("orders/created", False),
        ("", False),
    ])
    def test_is_valid_name(self, name, valid):
        assert is_valid_name(name) is valid


class TestTopicMatching:

    @pytest.mark.parametrize("pattern,key,expected", [
        ("orders.created", "orders.created", True),
        ("orders.created", "orders.Created", False),
        ("orders.*", "orders.created", True),
        ("orders.*", "orders.created.eu", False),
        ("orders.*", "orders", False),
        ("*.created", "orders.created", True),
        ("orders.#", "orders", True),
        ("orders.#", "orders.created.eu", True),
        ("#", "anything.at.all", True),
        ("orders.#.eu", "orders.eu", True),
        ("orders.#.eu", "orders.a.b.eu", True),
        ("orders.#.eu", "orders.a.b.us", False),
    ])
    def test_topic_matches(self, pattern, key, expected):
        assert topic_matches(pattern, key) is expected

    def test_has_wildcard(self):
        assert has_wildcard("orders.*")
        assert has_wildcard("#")
        assert not has_wildcard("orders.created")
        assert not has_wildcard("")

    def test_pattern_problems(self):
        assert topic_pattern_problems("orders.*.eu") == []
        assert topic_pattern_problems("orders..eu") == ["contains an empty segment"]
        assert topic_pattern_problems("orders.a*") == ["wildcard mixed into segment 'a*'"]
        assert topic_pattern_problems("#.#") == ["repeats '#.#'"]


class TestHeadersMatching:

    def test_all_is_default(self):
        args = {"format": "pdf", "type": "report"}
        assert headers_match(args, {"format": "pdf", "type": "report", "extra": 1})
        assert not headers_match(args, {"format": "pdf"})

    def test_any(self):
        args = {"x-match": "any", "format": "pdf", "type": "report"}
        assert headers_match(args, {"type": "report"})
        assert not headers_match(args, {"type": "log"})

    def test_x_prefixed_arguments_are_ignored(self):
        assert headers_match({"x-match": "all", "x-note": "ignored", "a": 1}, {"a": 1})

    def test_no_expected_headers(self):
        assert headers_match({}, {})
        assert not headers_match({"x-match": "any"}, {"a": 1})
