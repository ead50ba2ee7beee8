from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from topology_engine.core.exceptions import InvalidConfigurationError


# =============================================================================
# Simulation Enums
# =============================================================================

class SimulationState(str, Enum):
    """Lifecycle of one simulation run."""
    INITIALIZING = "Initializing"
    RUNNING = "Running"
    COMPLETED = "Completed"
    STOPPED = "Stopped"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SimulationState.COMPLETED, SimulationState.STOPPED, SimulationState.FAILED)


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class SimulationConfig:
    """
    One synthetic-traffic run.

    The target exchange is the first ``.``-segment of ``routing_key_pattern``;
    the full pattern is used as the routing key of every message.
    """
    topology_id: Optional[str] = None
    message_count: int = 100
    message_size_bytes: int = 1024
    routing_key_pattern: str = ""
    concurrent_publishers: int = 1
    simulate_consumer_failures: bool = False
    consumer_failure_rate: float = 0.0
    publish_rate_per_second: float = 0.0  # 0 = unlimited
    headers: Dict[str, Any] = field(default_factory=dict)
    seed: Optional[int] = None

    @property
    def target_exchange(self) -> str:
        return self.routing_key_pattern.split(".", 1)[0]

    def validate(self) -> None:
        """Raise InvalidConfigurationError for out-of-range values."""
        if not self.routing_key_pattern or not self.target_exchange:
            raise InvalidConfigurationError(
                "Routing key pattern must start with the target exchange name"
            )
        if self.message_count <= 0:
            raise InvalidConfigurationError("Message count must be greater than 0")
        if self.message_size_bytes < 0:
            raise InvalidConfigurationError("Message size must not be negative")
        if self.concurrent_publishers < 1:
            raise InvalidConfigurationError("At least one concurrent publisher is required")
        if not 0.0 <= self.consumer_failure_rate <= 1.0:
            raise InvalidConfigurationError("Consumer failure rate must be between 0.0 and 1.0")
        if self.publish_rate_per_second < 0:
            raise InvalidConfigurationError("Publish rate must not be negative")

    def partition(self) -> List[int]:
        """Per-publisher message counts; the remainder goes to the first loops."""
        base, extra = divmod(self.message_count, self.concurrent_publishers)
        return [base + (1 if i < extra else 0) for i in range(self.concurrent_publishers)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topology_id": self.topology_id,
            "message_count": self.message_count,
            "message_size_bytes": self.message_size_bytes,
            "routing_key_pattern": self.routing_key_pattern,
            "concurrent_publishers": self.concurrent_publishers,
            "simulate_consumer_failures": self.simulate_consumer_failures,
            "consumer_failure_rate": self.consumer_failure_rate,
            "publish_rate_per_second": self.publish_rate_per_second,
            "headers": dict(self.headers),
            "seed": self.seed,
        }


# =============================================================================
# Status
# =============================================================================

@dataclass
class SimulationStatus:
    """
    Live record of one run. Mutated only by the FlowSimulator under the
    run's lock; everything handed outward is a ``snapshot()``.
    """
    simulation_id: str
    state: SimulationState = SimulationState.INITIALIZING
    messages_published: int = 0
    messages_consumed: int = 0
    failed_messages: int = 0
    publish_rate_per_second: float = 0.0
    consume_rate_per_second: float = 0.0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None
    topology_id: Optional[str] = None
    target_exchange: str = ""
    routing_key: str = ""
    routable_queues: List[str] = field(default_factory=list)

    def snapshot(self) -> "SimulationStatus":
        return replace(self, routable_queues=list(self.routable_queues))

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time or datetime.now(self.start_time.tzinfo)
        return max((end - self.start_time).total_seconds(), 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "simulation_id": self.simulation_id,
            "state": self.state.value,
            "messages_published": self.messages_published,
            "messages_consumed": self.messages_consumed,
            "failed_messages": self.failed_messages,
            "publish_rate_per_second": round(self.publish_rate_per_second, 3),
            "consume_rate_per_second": round(self.consume_rate_per_second, 3),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error_message": self.error_message,
            "topology_id": self.topology_id,
            "target_exchange": self.target_exchange,
            "routing_key": self.routing_key,
            "routable_queues": list(self.routable_queues),
        }
