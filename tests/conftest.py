"""
Test Configuration and Fixtures
================================

Shared pytest fixtures for the broker topology engine.

Usage:
    pytest tests/                    # Run all tests
    pytest tests/ -v                 # Verbose output
    pytest tests/ -k "simulator"     # Run only simulator tests
    pytest tests/ --quick            # Skip slow tests
"""

import copy
from typing import Any, Dict, List

import pytest

from topology_engine.adapters.memory_broker import InMemoryBroker
from topology_engine.core.models import Topology


# =============================================================================
# Custom Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


def pytest_addoption(parser):
    """Add custom command line options"""
    parser.addoption(
        "--quick",
        action="store_true",
        default=False,
        help="Skip slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests if --quick is specified"""
    if config.getoption("--quick"):
        skip_slow = pytest.mark.skip(reason="Skipped with --quick")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


# =============================================================================
# Topology Fixtures
# =============================================================================

SAMPLE_TOPOLOGY: Dict[str, Any] = {
    "name": "shop",
    "description": "Order processing",
    "exchanges": [
        {"name": "orders", "type": "Topic", "durable": True},
        {"name": "notifications", "type": "Fanout", "durable": True},
        {"name": "payments", "type": "Direct", "durable": True},
        {"name": "orders.dlx", "type": "DeadLetter", "durable": True},
    ],
    "queues": [
        {
            "name": "orders.created",
            "durable": True,
            "max_length": 1000,
            "dead_letter_exchange": "orders.dlx",
            "dead_letter_routing_key": "orders.created",
        },
        {"name": "orders.all", "durable": True, "max_length": 1000},
        {"name": "notifications.email", "max_length": 100},
        {"name": "payments.process", "durable": True},
        {"name": "orders.dlq", "durable": True, "max_length": 10000},
    ],
    "bindings": [
        {"source_exchange": "orders", "destination": "orders.created", "routing_key": "orders.created"},
        {"source_exchange": "orders", "destination": "orders.all", "routing_key": "orders.#"},
        {"source_exchange": "notifications", "destination": "notifications.email"},
        {"source_exchange": "payments", "destination": "payments.process", "routing_key": "payments.process"},
        {"source_exchange": "orders.dlx", "destination": "orders.dlq"},
    ],
}


@pytest.fixture
def sample_topology_data() -> Dict[str, Any]:
    """Plain-dict topology; a fresh copy per test."""
    return copy.deepcopy(SAMPLE_TOPOLOGY)


@pytest.fixture
def sample_topology(sample_topology_data) -> Topology:
    return Topology.from_dict(sample_topology_data)


@pytest.fixture
def memory_broker(sample_topology) -> InMemoryBroker:
    return InMemoryBroker(sample_topology)


class RecordingSink:
    """Notification sink that keeps every update it receives."""

    def __init__(self):
        self.updates: List[Any] = []

    def push_simulation_update(self, status) -> None:
        self.updates.append(status)

    @property
    def states(self) -> List[str]:
        return [u.state.value for u in self.updates]


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
