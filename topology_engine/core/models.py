"""
Topology Domain Models

Exchanges, queues and bindings of a message-broker topology, and the
Topology aggregate that owns them. All entities are frozen: a topology is
changed by building a new one (``dataclasses.replace``), never in place.

Bindings reference their source and destination by name. Whether those
names resolve is a validation concern; dangling references are representable.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .arguments import ArgumentKey, Arguments


def _new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ExchangeType(str, Enum):
    DIRECT = "Direct"
    FANOUT = "Fanout"
    TOPIC = "Topic"
    HEADERS = "Headers"
    CONSISTENT_HASH = "ConsistentHash"
    DEAD_LETTER = "DeadLetter"

    @classmethod
    def parse(cls, value: Any) -> "ExchangeType":
        """Accept enum values, member names and broker type strings."""
        if isinstance(value, ExchangeType):
            return value
        text = str(value).strip()
        lowered = text.lower()
        for member in cls:
            if lowered in (member.value.lower(), member.name.lower()):
                return member
        broker_type = BROKER_EXCHANGE_TYPES.get(lowered)
        if broker_type is not None:
            return broker_type
        raise ValueError(f"Unknown exchange type: {value!r}")

    @property
    def broker_type(self) -> str:
        return _BROKER_NAMES[self]


BROKER_EXCHANGE_TYPES: Dict[str, ExchangeType] = {
    "direct": ExchangeType.DIRECT,
    "fanout": ExchangeType.FANOUT,
    "topic": ExchangeType.TOPIC,
    "headers": ExchangeType.HEADERS,
    "x-consistent-hash": ExchangeType.CONSISTENT_HASH,
    "x-dead-letter": ExchangeType.DEAD_LETTER,
}

_BROKER_NAMES = {v: k for k, v in BROKER_EXCHANGE_TYPES.items()}


class DestinationType(str, Enum):
    QUEUE = "queue"
    EXCHANGE = "exchange"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; accepts snake_case and camelCase spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(frozen=True)
class Exchange:
    """A routing node. ``type`` decides how bindings are interpreted."""
    name: str
    type: ExchangeType = ExchangeType.DIRECT
    durable: bool = False
    auto_delete: bool = False
    internal: bool = False
    arguments: Arguments = field(default_factory=Arguments)
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ExchangeType.parse(self.type))
        object.__setattr__(self, "arguments", Arguments.coerce(self.arguments))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "durable": self.durable,
            "auto_delete": self.auto_delete,
            "internal": self.internal,
            "arguments": self.arguments.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Exchange":
        kwargs: Dict[str, Any] = dict(
            name=_pick(data, "name", default=""),
            type=_pick(data, "type", default=ExchangeType.DIRECT),
            durable=bool(_pick(data, "durable", default=False)),
            auto_delete=bool(_pick(data, "auto_delete", "autoDelete", default=False)),
            internal=bool(_pick(data, "internal", default=False)),
            arguments=Arguments(_pick(data, "arguments", default={})),
        )
        if _pick(data, "id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


@dataclass(frozen=True)
class Queue:
    """
    A holding area for messages.

    ``max_length`` and ``message_ttl`` (milliseconds) must be positive when
    set; the dead-letter routing key only matters when a dead-letter exchange
    is configured.
    """
    name: str
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    arguments: Arguments = field(default_factory=Arguments)
    max_length: Optional[int] = None
    message_ttl: Optional[int] = None
    dead_letter_exchange: Optional[str] = None
    dead_letter_routing_key: Optional[str] = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", Arguments.coerce(self.arguments))

    @property
    def declared_dead_letter_exchange(self) -> Optional[str]:
        """Dead-letter exchange from the field, falling back to the queue arguments."""
        if self.dead_letter_exchange:
            return self.dead_letter_exchange
        return self.arguments.get_str(ArgumentKey.DEAD_LETTER_EXCHANGE) or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "durable": self.durable,
            "exclusive": self.exclusive,
            "auto_delete": self.auto_delete,
            "arguments": self.arguments.to_dict(),
            "max_length": self.max_length,
            "message_ttl": self.message_ttl,
            "dead_letter_exchange": self.dead_letter_exchange,
            "dead_letter_routing_key": self.dead_letter_routing_key,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Queue":
        kwargs: Dict[str, Any] = dict(
            name=_pick(data, "name", default=""),
            durable=bool(_pick(data, "durable", default=False)),
            exclusive=bool(_pick(data, "exclusive", default=False)),
            auto_delete=bool(_pick(data, "auto_delete", "autoDelete", default=False)),
            arguments=Arguments(_pick(data, "arguments", default={})),
            max_length=_optional_int(_pick(data, "max_length", "maxLength")),
            message_ttl=_optional_int(_pick(data, "message_ttl", "messageTtl")),
            dead_letter_exchange=_pick(data, "dead_letter_exchange", "deadLetterExchange"),
            dead_letter_routing_key=_pick(data, "dead_letter_routing_key", "deadLetterRoutingKey"),
        )
        if _pick(data, "id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


@dataclass(frozen=True)
class Binding:
    """
    A routing relationship from a source exchange to a queue or, for
    exchange-to-exchange bindings, to another exchange.
    """
    source_exchange: str
    destination: str
    routing_key: str = ""
    arguments: Arguments = field(default_factory=Arguments)
    destination_type: DestinationType = DestinationType.QUEUE
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "destination_type", DestinationType(self.destination_type))
        object.__setattr__(self, "arguments", Arguments.coerce(self.arguments))
        object.__setattr__(self, "routing_key", self.routing_key or "")

    @property
    def destination_queue(self) -> Optional[str]:
        if self.destination_type == DestinationType.QUEUE:
            return self.destination
        return None

    @property
    def is_exchange_to_exchange(self) -> bool:
        return self.destination_type == DestinationType.EXCHANGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_exchange": self.source_exchange,
            "destination": self.destination,
            "destination_type": self.destination_type.value,
            "routing_key": self.routing_key,
            "arguments": self.arguments.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Binding":
        kwargs: Dict[str, Any] = dict(
            source_exchange=_pick(data, "source_exchange", "sourceExchange", "source", default=""),
            destination=_pick(
                data, "destination", "destination_queue", "destinationQueue", default=""
            ),
            routing_key=_pick(data, "routing_key", "routingKey", default=""),
            arguments=Arguments(_pick(data, "arguments", default={})),
            destination_type=_pick(
                data, "destination_type", "destinationType", default=DestinationType.QUEUE
            ),
        )
        if _pick(data, "id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


@dataclass(frozen=True)
class Topology:
    """
    Aggregate root: a named set of exchanges, queues and bindings.

    Collections are stored as tuples; any iterable is accepted on
    construction.
    """
    name: str
    description: str = ""
    exchanges: Tuple[Exchange, ...] = ()
    queues: Tuple[Queue, ...] = ()
    bindings: Tuple[Binding, ...] = ()
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    metadata: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "exchanges", tuple(self.exchanges))
        object.__setattr__(self, "queues", tuple(self.queues))
        object.__setattr__(self, "bindings", tuple(self.bindings))

    # -- Lookups ------------------------------------------------------------

    def exchange(self, name: str) -> Optional[Exchange]:
        return next((e for e in self.exchanges if e.name == name), None)

    def queue(self, name: str) -> Optional[Queue]:
        return next((q for q in self.queues if q.name == name), None)

    def bindings_from(self, exchange_name: str) -> Tuple[Binding, ...]:
        return tuple(b for b in self.bindings if b.source_exchange == exchange_name)

    def bindings_to_queue(self, queue_name: str) -> Tuple[Binding, ...]:
        return tuple(b for b in self.bindings if b.destination_queue == queue_name)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "exchanges": [e.to_dict() for e in self.exchanges],
            "queues": [q.to_dict() for q in self.queues],
            "bindings": [b.to_dict() for b in self.bindings],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.metadata is not None:
            result["metadata"] = self.metadata
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Topology":
        kwargs: Dict[str, Any] = dict(
            name=_pick(data, "name", default=""),
            description=_pick(data, "description", default=""),
            exchanges=_build(Exchange, _pick(data, "exchanges", default=[])),
            queues=_build(Queue, _pick(data, "queues", default=[])),
            bindings=_build(Binding, _pick(data, "bindings", default=[])),
            metadata=_pick(data, "metadata"),
        )
        created = _pick(data, "created_at", "createdAt")
        updated = _pick(data, "updated_at", "updatedAt")
        if created is not None:
            kwargs["created_at"] = _parse_datetime(created)
        if updated is not None:
            kwargs["updated_at"] = _parse_datetime(updated)
        if _pick(data, "id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


def _build(entity_cls, items: Iterable[Any]) -> Tuple[Any, ...]:
    return tuple(
        item if isinstance(item, entity_cls) else entity_cls.from_dict(item)
        for item in items
    )


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
