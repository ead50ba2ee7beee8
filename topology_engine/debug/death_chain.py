"""
Death Chain Decoding

Brokers attach an ``x-death`` header to dead-lettered messages: a list of
tables, most recent event first, each naming the exchange and queue the
message died in, the reason and the routing keys it was published with.
Entries arrive as loosely typed tables (strings may be bytes, times may be
datetimes or epoch seconds); they are read narrowly here and malformed
entries are skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .models import DeadLetteredMessage, DeathRecord

logger = logging.getLogger(__name__)

X_DEATH = "x-death"
FIRST_DEATH_EXCHANGE = "x-first-death-exchange"
FIRST_DEATH_QUEUE = "x-first-death-queue"
DEATH_HEADER_PREFIXES = ("x-death", "x-first-death-", "x-last-death-")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _time(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


def _count(value: Any) -> int:
    try:
        return max(int(value), 1)
    except (TypeError, ValueError):
        return 1


def decode_death_chain(headers: Optional[Mapping[str, Any]]) -> List[DeathRecord]:
    """``x-death`` entries as DeathRecords, most recent first."""
    raw = (headers or {}).get(X_DEATH)
    if not isinstance(raw, (list, tuple)):
        return []
    records = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            logger.debug(f"Skipping malformed x-death entry: {entry!r}")
            continue
        exchange = _text(entry.get("exchange"))
        if exchange is None:
            continue
        keys = entry.get("routing-keys") or []
        records.append(DeathRecord(
            exchange=exchange,
            queue=_text(entry.get("queue")) or "",
            reason=_text(entry.get("reason")) or "",
            routing_keys=[_text(k) or "" for k in keys] if isinstance(keys, (list, tuple)) else [],
            count=_count(entry.get("count", 1)),
            time=_time(entry.get("time")),
        ))
    return records


def strip_death_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Headers without broker-added dead-lettering metadata."""
    return {
        k: v for k, v in (headers or {}).items()
        if not str(k).startswith(DEATH_HEADER_PREFIXES)
    }


def first_death(headers: Optional[Mapping[str, Any]]) -> Dict[str, Optional[str]]:
    headers = headers or {}
    return {
        "exchange": _text(headers.get(FIRST_DEATH_EXCHANGE)),
        "queue": _text(headers.get(FIRST_DEATH_QUEUE)),
    }


def to_dead_lettered_message(
    message_id: str,
    source_queue: str,
    headers: Mapping[str, Any],
    body: bytes,
    received_at: datetime,
) -> DeadLetteredMessage:
    """Summarize a dead-lettered message from its most recent death record."""
    chain = decode_death_chain(headers)
    latest = chain[0] if chain else None
    return DeadLetteredMessage(
        message_id=message_id,
        original_exchange=latest.exchange if latest else "",
        original_routing_key=latest.routing_key if latest else "",
        source_queue=source_queue,
        dead_lettered_at=(latest.time if latest and latest.time else received_at),
        reason=latest.reason if latest else "",
        rejection_count=len(chain),
        headers=dict(headers),
        body=body,
        death_chain=chain,
    )
