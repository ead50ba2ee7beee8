"""
Topology Model, Rules and Ports
"""
from .arguments import ArgumentKey, Arguments
from .exceptions import (
    TopologyEngineError,
    NotFoundError,
    InvalidConfigurationError,
    BrokerError,
)
from .interfaces import BrokerMessage, IBrokerClient, IBrokerSession, INotificationSink
from .models import (
    ExchangeType,
    DestinationType,
    Exchange,
    Queue,
    Binding,
    Topology,
    BROKER_EXCHANGE_TYPES,
)
from .normalizer import TopologyNormalizer, normalize_name
from .rules import (
    BINDING_RULES,
    BindingRule,
    MAX_ROUTING_KEY_LENGTH,
    headers_match,
    is_valid_name,
    topic_matches,
    topic_pattern_problems,
)
from .topology_graph import TopologyGraph

__all__ = [
    "ArgumentKey",
    "Arguments",
    "TopologyEngineError",
    "NotFoundError",
    "InvalidConfigurationError",
    "BrokerError",
    "BrokerMessage",
    "IBrokerClient",
    "IBrokerSession",
    "INotificationSink",
    "ExchangeType",
    "DestinationType",
    "Exchange",
    "Queue",
    "Binding",
    "Topology",
    "BROKER_EXCHANGE_TYPES",
    "TopologyNormalizer",
    "normalize_name",
    "BINDING_RULES",
    "BindingRule",
    "MAX_ROUTING_KEY_LENGTH",
    "headers_match",
    "is_valid_name",
    "topic_matches",
    "topic_pattern_problems",
    "TopologyGraph",
]
