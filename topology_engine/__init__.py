"""
Broker Topology Engine

Model, validation, normalization and pattern analysis of message broker
topologies (exchanges, queues, bindings), plus a dead-letter tracer and a
concurrent flow simulator driven against a broker.
"""
from .analysis import AnalysisFinding, AnalysisResult, FindingType, PatternAnalyzer
from .application import TopologyService, create_broker
from .config import Settings
from .core import (
    Binding,
    BrokerError,
    DestinationType,
    Exchange,
    ExchangeType,
    InvalidConfigurationError,
    NotFoundError,
    Queue,
    Topology,
    TopologyEngineError,
    TopologyGraph,
    TopologyNormalizer,
)
from .debug import DeadLetterTracer
from .simulation import FlowSimulator, SimulationConfig, SimulationState, SimulationStatus
from .validation import TopologyValidator, ValidationResult

__version__ = "1.0.0"

__all__ = [
    "AnalysisFinding",
    "AnalysisResult",
    "FindingType",
    "PatternAnalyzer",
    "TopologyService",
    "create_broker",
    "Settings",
    "Binding",
    "BrokerError",
    "DestinationType",
    "Exchange",
    "ExchangeType",
    "InvalidConfigurationError",
    "NotFoundError",
    "Queue",
    "Topology",
    "TopologyEngineError",
    "TopologyGraph",
    "TopologyNormalizer",
    "DeadLetterTracer",
    "FlowSimulator",
    "SimulationConfig",
    "SimulationState",
    "SimulationStatus",
    "TopologyValidator",
    "ValidationResult",
]
