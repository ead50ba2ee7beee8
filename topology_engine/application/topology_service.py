"""
Topology Service

Single entry point for the topology operations used by the CLI and the
HTTP API: validate, normalize, analyze and broker import. Also builds the
broker adapter selected by the settings.
"""

from __future__ import annotations

import logging
from typing import Optional

from topology_engine.analysis.models import AnalysisResult
from topology_engine.analysis.pattern_analyzer import PatternAnalyzer
from topology_engine.config.settings import BACKEND_MEMORY, Settings
from topology_engine.core.exceptions import InvalidConfigurationError
from topology_engine.core.interfaces import IBrokerClient
from topology_engine.core.models import Topology
from topology_engine.core.normalizer import TopologyNormalizer
from topology_engine.validation.models import ValidationResult
from topology_engine.validation.validator import TopologyValidator

logger = logging.getLogger(__name__)


def create_broker(settings: Settings, topology: Optional[Topology] = None) -> IBrokerClient:
    """Build the broker adapter named by ``settings.broker_backend``."""
    settings.validate()
    if settings.broker_backend == BACKEND_MEMORY:
        from topology_engine.adapters.memory_broker import InMemoryBroker
        logger.info("Using in-memory broker")
        return InMemoryBroker(topology)

    from topology_engine.adapters.rabbitmq_broker import RabbitMqBroker
    logger.info(f"Using RabbitMQ broker at {settings.rabbitmq_management_url}")
    return RabbitMqBroker.from_settings(settings)


class TopologyService:
    """
    Orchestrates TopologyValidator, TopologyNormalizer and PatternAnalyzer.
    The broker is optional; without one only the pure operations work.
    """

    def __init__(
        self,
        broker: Optional[IBrokerClient] = None,
        validator: Optional[TopologyValidator] = None,
        normalizer: Optional[TopologyNormalizer] = None,
        analyzer: Optional[PatternAnalyzer] = None,
    ):
        self.broker = broker
        self.validator = validator or TopologyValidator()
        self.normalizer = normalizer or TopologyNormalizer()
        self.analyzer = analyzer or PatternAnalyzer()

    def validate(self, topology: Topology) -> ValidationResult:
        result = self.validator.validate(topology)
        logger.info(
            f"Validated topology '{topology.name}': "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    def normalize(self, topology: Topology) -> Topology:
        return self.normalizer.normalize(topology)

    def analyze(self, topology: Topology) -> AnalysisResult:
        result = self.analyzer.analyze(topology)
        logger.info(f"Analyzed topology '{topology.name}': {len(result.findings)} findings")
        return result

    async def get_broker_topology(self) -> Topology:
        """Import the topology currently declared on the broker."""
        if self.broker is None:
            raise InvalidConfigurationError("No broker configured")
        topology = await self.broker.get_current_topology()
        logger.info(
            f"Imported topology '{topology.name}' "
            f"({len(topology.exchanges)} exchanges, {len(topology.queues)} queues, "
            f"{len(topology.bindings)} bindings)"
        )
        return topology
