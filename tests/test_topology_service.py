"""
Tests for TopologyService and broker selection.
"""

import pytest

from topology_engine.adapters.memory_broker import InMemoryBroker
from topology_engine.adapters.rabbitmq_broker import RabbitMqBroker
from topology_engine.application import TopologyService, create_broker
from topology_engine.config.settings import BACKEND_MEMORY, Settings
from topology_engine.core.exceptions import InvalidConfigurationError


class TestCreateBroker:

    def test_memory_backend(self, sample_topology):
        broker = create_broker(Settings(broker_backend=BACKEND_MEMORY), sample_topology)
        assert isinstance(broker, InMemoryBroker)
        assert broker.topology is sample_topology

    async def test_rabbitmq_backend(self):
        broker = create_broker(Settings())
        assert isinstance(broker, RabbitMqBroker)
        await broker.aclose()

    def test_unknown_backend(self):
        with pytest.raises(InvalidConfigurationError):
            create_broker(Settings(broker_backend="kafka"))


class TestTopologyService:

    def test_pure_operations_need_no_broker(self, sample_topology):
        service = TopologyService()
        assert service.validate(sample_topology).is_valid
        assert service.normalize(sample_topology).name == "shop"
        assert not service.analyze(sample_topology).has_errors

    async def test_broker_topology(self, memory_broker, sample_topology):
        service = TopologyService(memory_broker)
        assert await service.get_broker_topology() is sample_topology

    async def test_broker_topology_without_broker(self):
        with pytest.raises(InvalidConfigurationError):
            await TopologyService().get_broker_topology()
