"""
Tests for TopologyValidator.
"""

import pytest

from topology_engine.core.models import Binding, Exchange, Queue, Topology
from topology_engine.validation import TopologyValidator, ValidationResult


@pytest.fixture
def validator():
    return TopologyValidator()


def _bound(exchange: Exchange, queue: Queue, routing_key: str = "k", **binding_kwargs) -> Topology:
    """Exchange and queue connected by one binding, so no orphan warnings appear."""
    return Topology(
        name="t",
        exchanges=[exchange],
        queues=[queue],
        bindings=[Binding(source_exchange=exchange.name, destination=queue.name,
                          routing_key=routing_key, **binding_kwargs)],
    )


class TestValidationResult:

    def test_warnings_do_not_invalidate(self):
        assert ValidationResult(warnings=["w"]).is_valid
        assert not ValidationResult(errors=["e"]).is_valid

    def test_to_dict(self):
        assert ValidationResult(errors=["e"]).to_dict() == {
            "is_valid": False, "errors": ["e"], "warnings": [],
        }


class TestTopologyValidator:

    def test_sample_topology_is_clean(self, validator, sample_topology):
        result = validator.validate(sample_topology)
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_topology_name_required(self, validator):
        result = validator.validate(Topology(name="  "))
        assert "Topology name is required" in result.errors

    def test_blank_exchange_name_reported_once(self, validator):
        result = validator.validate(Topology(name="t", exchanges=[Exchange(name=" ", type="Fanout")]))
        assert result.errors == ["Exchange name is required"]
        assert result.warnings == []

    def test_invalid_characters(self, validator):
        topology = _bound(Exchange(name="bad exchange", type="Direct"), Queue(name="q/1"))
        result = validator.validate(topology)
        assert "Exchange name 'bad exchange' contains invalid characters" in result.errors
        assert "Queue name 'q/1' contains invalid characters" in result.errors

    def test_headers_exchange_without_arguments_warns(self, validator):
        topology = _bound(Exchange(name="h", type="Headers"), Queue(name="q"),
                          routing_key="", arguments={"format": "pdf"})
        result = validator.validate(topology)
        assert result.is_valid
        assert result.warnings == ["Headers exchange 'h' has no header arguments defined"]

    def test_consistent_hash_requires_hash_header(self, validator):
        topology = _bound(Exchange(name="hash", type="ConsistentHash"), Queue(name="q"))
        result = validator.validate(topology)
        assert result.errors == ["Consistent hash exchange 'hash' requires a 'hash-header' argument"]

    def test_queue_limits_must_be_positive(self, validator):
        topology = _bound(Exchange(name="e", type="Direct"),
                          Queue(name="q", max_length=0, message_ttl=-5))
        result = validator.validate(topology)
        assert "Queue 'q' max length must be greater than 0" in result.errors
        assert "Queue 'q' message TTL must be greater than 0" in result.errors

    def test_dead_letter_exchange_without_routing_key_warns(self, validator):
        topology = _bound(Exchange(name="e", type="Direct"),
                          Queue(name="q", dead_letter_exchange="dlx"))
        result = validator.validate(topology)
        assert result.warnings == [
            "Queue 'q' has a dead letter exchange but no routing key specified"
        ]

    def test_dead_letter_routing_key_in_arguments_is_accepted(self, validator):
        topology = _bound(
            Exchange(name="e", type="Direct"),
            Queue(name="q", arguments={"x-dead-letter-exchange": "dlx",
                                       "x-dead-letter-routing-key": "dead"}),
        )
        assert validator.validate(topology).warnings == []

    def test_duplicate_names(self, validator):
        topology = Topology(
            name="t",
            exchanges=[Exchange(name="e", type="Fanout"), Exchange(name="e", type="Fanout")],
            queues=[Queue(name="q")],
            bindings=[Binding(source_exchange="e", destination="q")],
        )
        result = validator.validate(topology)
        assert result.errors == ["Duplicate exchange name 'e' (2 definitions)"]

    def test_missing_references(self, validator):
        topology = Topology(
            name="t",
            exchanges=[Exchange(name="e", type="Fanout")],
            queues=[Queue(name="q")],
            bindings=[
                Binding(source_exchange="e", destination="q"),
                Binding(source_exchange="ghost", destination="q"),
                Binding(source_exchange="e", destination="nowhere"),
                Binding(source_exchange="e", destination="other", destination_type="exchange"),
            ],
        )
        result = validator.validate(topology)
        assert result.errors == [
            "Binding references non-existent exchange 'ghost'",
            "Binding references non-existent queue 'nowhere'",
            "Binding references non-existent exchange 'other'",
        ]

    def test_routing_key_length(self, validator):
        topology = _bound(Exchange(name="e", type="Topic"), Queue(name="q"), routing_key="a" * 256)
        result = validator.validate(topology)
        assert result.errors == ["Binding routing key from 'e' exceeds 255 characters"]

    def test_exchange_type_rules(self, validator):
        topology = Topology(
            name="t",
            exchanges=[
                Exchange(name="direct", type="Direct"),
                Exchange(name="fanout", type="Fanout"),
                Exchange(name="headers", type="Headers", arguments={"x-match": "all"}),
            ],
            queues=[Queue(name="q")],
            bindings=[
                Binding(source_exchange="direct", destination="q"),
                Binding(source_exchange="fanout", destination="q", routing_key="k"),
                Binding(source_exchange="headers", destination="q"),
            ],
        )
        result = validator.validate(topology)
        assert result.errors == [
            "Direct exchange binding 'direct' requires a routing key",
            "Fanout exchange binding 'fanout' should not have a routing key",
            "Headers exchange binding 'headers' requires header arguments",
        ]

    def test_orphans_are_warnings(self, validator):
        topology = Topology(
            name="t",
            exchanges=[Exchange(name="lonely", type="Fanout"), Exchange(name="dlx", type="DeadLetter")],
            queues=[Queue(name="idle")],
        )
        result = validator.validate(topology)
        assert result.is_valid
        assert result.warnings == [
            "Exchange 'lonely' has no bindings",
            "Queue 'idle' has no bindings",
        ]

    def test_headers_binding_with_arguments_is_accepted(self, validator):
        topology = _bound(
            Exchange(name="h", type="Headers", arguments={"x-match": "all"}),
            Queue(name="q"),
            routing_key="",
            arguments={"x-match": "all", "tenant": "eu"},
        )
        result = validator.validate(topology)
        assert result.errors == []
        assert result.warnings == []

    def test_binding_clears_orphan_warnings(self, validator):
        exchanges = [Exchange(name="lonely", type="Fanout")]
        queues = [Queue(name="idle")]
        before = validator.validate(Topology(name="t", exchanges=exchanges, queues=queues))
        assert "Exchange 'lonely' has no bindings" in before.warnings

        after = validator.validate(Topology(
            name="t", exchanges=exchanges, queues=queues,
            bindings=[Binding(source_exchange="lonely", destination="idle")],
        ))
        assert after.warnings == []

    def test_repeated_validation_gives_equal_results(self, validator):
        topology = Topology(
            name="",
            exchanges=[Exchange(name="e", type="Direct"), Exchange(name="h", type="Headers")],
            queues=[Queue(name="q", max_length=0), Queue(name="idle")],
            bindings=[Binding(source_exchange="e", destination="q"),
                      Binding(source_exchange="ghost", destination="q", routing_key="k")],
        )
        first = validator.validate(topology)
        assert first.to_dict() == validator.validate(topology).to_dict()
        assert first.to_dict() == TopologyValidator().validate(topology).to_dict()

    def test_all_problems_are_accumulated(self, validator):
        topology = Topology(
            name="",
            exchanges=[Exchange(name="e", type="Direct")],
            queues=[Queue(name="q", max_length=-1)],
            bindings=[Binding(source_exchange="e", destination="missing")],
        )
        result = validator.validate(topology)
        assert len(result.errors) == 4
        assert "Queue 'q' has no bindings" in result.warnings
