"""
Pydantic request/response models for the Topology Engine API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from topology_engine.core.exceptions import InvalidConfigurationError
from topology_engine.core.models import Topology
from topology_engine.simulation.models import SimulationConfig


# ============================================================================
# Topology documents
# ============================================================================

class ExchangeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(default="", description="Exchange name")
    type: str = Field(default="Direct", description="Direct, Fanout, Topic, Headers, ConsistentHash or DeadLetter")
    durable: bool = False
    auto_delete: bool = Field(default=False, alias="autoDelete")
    internal: bool = False
    arguments: Dict[str, Any] = Field(default_factory=dict)


class QueueModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(default="", description="Queue name")
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = Field(default=False, alias="autoDelete")
    arguments: Dict[str, Any] = Field(default_factory=dict)
    max_length: Optional[int] = Field(default=None, alias="maxLength")
    message_ttl: Optional[int] = Field(default=None, alias="messageTtl", description="Milliseconds")
    dead_letter_exchange: Optional[str] = Field(default=None, alias="deadLetterExchange")
    dead_letter_routing_key: Optional[str] = Field(default=None, alias="deadLetterRoutingKey")


class BindingModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    source_exchange: str = Field(default="", alias="sourceExchange")
    destination: str = Field(default="", description="Destination queue or exchange name")
    destination_type: str = Field(default="queue", alias="destinationType")
    routing_key: str = Field(default="", alias="routingKey")
    arguments: Dict[str, Any] = Field(default_factory=dict)


class TopologyModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(default="", description="Topology name")
    description: str = ""
    exchanges: List[ExchangeModel] = Field(default_factory=list)
    queues: List[QueueModel] = Field(default_factory=list)
    bindings: List[BindingModel] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def to_domain(self) -> Topology:
        try:
            return Topology.from_dict(self.model_dump(exclude_none=True))
        except ValueError as e:
            raise InvalidConfigurationError(str(e)) from e


# ============================================================================
# Simulation
# ============================================================================

class SimulationStartRequest(BaseModel):
    topology: Optional[TopologyModel] = Field(
        default=None, description="Topology to simulate against; defaults to the broker's topology"
    )
    topology_id: Optional[str] = None
    message_count: int = Field(default=100, description="Total messages to publish")
    message_size_bytes: int = Field(default=1024, description="Payload size of each message")
    routing_key_pattern: str = Field(..., description="'<exchange>.<rest>'; the first segment names the exchange")
    concurrent_publishers: int = Field(default=1, description="Number of publisher loops")
    simulate_consumer_failures: bool = False
    consumer_failure_rate: float = Field(default=0.0, description="Probability in [0, 1] of a failed message")
    publish_rate_per_second: float = Field(default=0.0, description="Per-publisher rate limit; 0 = unlimited")
    headers: Dict[str, Any] = Field(default_factory=dict)
    seed: Optional[int] = Field(default=None, description="Random seed for reproducibility")

    def to_config(self) -> SimulationConfig:
        return SimulationConfig(
            topology_id=self.topology_id,
            message_count=self.message_count,
            message_size_bytes=self.message_size_bytes,
            routing_key_pattern=self.routing_key_pattern,
            concurrent_publishers=self.concurrent_publishers,
            simulate_consumer_failures=self.simulate_consumer_failures,
            consumer_failure_rate=self.consumer_failure_rate,
            publish_rate_per_second=self.publish_rate_per_second,
            headers=dict(self.headers),
            seed=self.seed,
        )


# ============================================================================
# Health
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    broker_connected: bool
    message: Optional[str] = None
