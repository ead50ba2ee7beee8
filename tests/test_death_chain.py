"""
Tests for x-death header decoding.
"""

from datetime import datetime, timezone

from topology_engine.debug.death_chain import (
    decode_death_chain,
    first_death,
    strip_death_headers,
    to_dead_lettered_message,
)

RECEIVED = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestDecodeDeathChain:

    def test_most_recent_first_with_loose_types(self):
        headers = {"x-death": [
            {"exchange": b"retry", "queue": b"orders.retry", "reason": b"expired",
             "routing-keys": [b"orders.created"], "count": 2, "time": 1700000000},
            {"exchange": "orders", "queue": "orders.created", "reason": "rejected",
             "routing-keys": ["orders.created"], "count": 1,
             "time": datetime(2023, 11, 14)},
        ]}
        chain = decode_death_chain(headers)
        assert [d.exchange for d in chain] == ["retry", "orders"]
        assert chain[0].routing_key == "orders.created"
        assert chain[0].count == 2
        assert chain[0].time == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert chain[1].time.tzinfo is not None

    def test_malformed_entries_are_skipped(self):
        headers = {"x-death": ["garbage", {"queue": "q"}, {"exchange": "e", "count": "x"}]}
        chain = decode_death_chain(headers)
        assert len(chain) == 1
        assert chain[0].count == 1
        assert chain[0].routing_key == ""

    def test_no_header(self):
        assert decode_death_chain(None) == []
        assert decode_death_chain({"x-death": "nope"}) == []


class TestHeaders:

    def test_strip_death_headers(self):
        headers = {
            "x-death": [], "x-first-death-queue": "q", "x-last-death-reason": "r", "tenant": "eu",
        }
        assert strip_death_headers(headers) == {"tenant": "eu"}

    def test_first_death(self):
        assert first_death({"x-first-death-exchange": b"orders", "x-first-death-queue": "q"}) == {
            "exchange": "orders", "queue": "q",
        }
        assert first_death({}) == {"exchange": None, "queue": None}


class TestDeadLetteredMessage:

    def test_summary_from_latest_death(self):
        headers = {"x-death": [{"exchange": "orders", "queue": "orders.created",
                                "reason": "rejected", "routing-keys": ["orders.created"]}]}
        message = to_dead_lettered_message("m1", "orders.dlq", headers, b"body", RECEIVED)
        assert message.original_exchange == "orders"
        assert message.original_routing_key == "orders.created"
        assert message.reason == "rejected"
        assert message.rejection_count == 1
        assert message.dead_lettered_at == RECEIVED

    def test_without_death_chain(self):
        message = to_dead_lettered_message("m1", "orders.dlq", {}, b"", RECEIVED)
        assert message.original_exchange == ""
        assert message.rejection_count == 0
        assert message.death_chain == []

    def test_to_dict_is_json_safe(self):
        headers = {"x-death": [{"exchange": "orders", "time": RECEIVED}], "raw": b"\x00"}
        data = to_dead_lettered_message("m1", "q", headers, b"\x01\x02", RECEIVED).to_dict()
        assert data["body"] == "AQI="
        assert data["death_chain"][0]["time"] == RECEIVED.isoformat()
