"""
Dead-Letter Debug Models
"""
from __future__ import annotations
import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class DeathRecord:
    """One dead-lettering event from a message's ``x-death`` header."""
    exchange: str
    queue: str
    reason: str
    routing_keys: List[str] = field(default_factory=list)
    count: int = 1
    time: Optional[datetime] = None

    @property
    def routing_key(self) -> str:
        return self.routing_keys[0] if self.routing_keys else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exchange": self.exchange,
            "queue": self.queue,
            "reason": self.reason,
            "routing_keys": list(self.routing_keys),
            "count": self.count,
            "time": _iso(self.time),
        }


@dataclass
class DeadLetteredMessage:
    message_id: str
    original_exchange: str = ""
    original_routing_key: str = ""
    source_queue: str = ""
    dead_lettered_at: Optional[datetime] = None
    reason: str = ""
    rejection_count: int = 0
    headers: Dict[str, Any] = field(default_factory=dict)
    body: bytes = b""
    death_chain: List[DeathRecord] = field(default_factory=list)  # most recent first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "original_exchange": self.original_exchange,
            "original_routing_key": self.original_routing_key,
            "source_queue": self.source_queue,
            "dead_lettered_at": _iso(self.dead_lettered_at),
            "reason": self.reason,
            "rejection_count": self.rejection_count,
            "headers": _jsonable(self.headers),
            "body": base64.b64encode(self.body).decode("ascii"),
            "death_chain": [d.to_dict() for d in self.death_chain],
        }


@dataclass
class MessageTrace:
    """Routing history of one message, oldest event first."""
    message_id: str
    published_at: Optional[datetime] = None
    exchanges_visited: List[str] = field(default_factory=list)
    queues_visited: List[str] = field(default_factory=list)
    final_queue: Optional[str] = None
    was_dead_lettered: bool = False
    dead_letter_details: Optional[DeadLetteredMessage] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "message_id": self.message_id,
            "published_at": _iso(self.published_at),
            "exchanges_visited": list(self.exchanges_visited),
            "queues_visited": list(self.queues_visited),
            "final_queue": self.final_queue,
            "was_dead_lettered": self.was_dead_lettered,
        }
        if self.dead_letter_details is not None:
            result["dead_letter_details"] = self.dead_letter_details.to_dict()
        return result
