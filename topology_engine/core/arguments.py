"""
Broker Arguments

Exchange, queue and binding arguments arrive from the broker (or the editor)
as free-form maps. Arguments splits them into the argument kinds the engine
understands and an opaque bucket for everything else. Values are read
through typed accessors at the point of use; a malformed value reads as None
instead of raising.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional


class ArgumentKey(str, Enum):
    """Argument names with engine-level meaning."""
    HASH_HEADER = "hash-header"
    ALTERNATE_EXCHANGE = "alternate-exchange"
    DEAD_LETTER_EXCHANGE = "x-dead-letter-exchange"
    DEAD_LETTER_ROUTING_KEY = "x-dead-letter-routing-key"
    MAX_LENGTH = "x-max-length"
    MAX_LENGTH_BYTES = "x-max-length-bytes"
    MESSAGE_TTL = "x-message-ttl"
    EXPIRES = "x-expires"
    QUEUE_TYPE = "x-queue-type"
    OVERFLOW = "x-overflow"
    MATCH = "x-match"


_KNOWN_KEYS = {key.value: key for key in ArgumentKey}


class Arguments(Mapping[str, Any]):
    """
    Immutable argument map with known/opaque separation.

    Behaves as a read-only Mapping over all arguments, so ``len(args)``,
    ``"key" in args`` and ``dict(args)`` work as for the raw map.
    """

    __slots__ = ("_known", "_opaque")

    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        known: Dict[ArgumentKey, Any] = {}
        opaque: Dict[str, Any] = {}
        for name, value in (raw or {}).items():
            key = _KNOWN_KEYS.get(str(name))
            if key is not None:
                known[key] = value
            else:
                opaque[str(name)] = value
        self._known = known
        self._opaque = opaque

    @classmethod
    def coerce(cls, value: Any) -> "Arguments":
        if isinstance(value, Arguments):
            return value
        return cls(value)

    # -- Mapping protocol ---------------------------------------------------

    def __getitem__(self, name: str) -> Any:
        key = _KNOWN_KEYS.get(name)
        if key is not None and key in self._known:
            return self._known[key]
        return self._opaque[name]

    def __iter__(self) -> Iterator[str]:
        for key in self._known:
            yield key.value
        yield from self._opaque

    def __len__(self) -> int:
        return len(self._known) + len(self._opaque)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, repr(v)) for k, v in self.items())))

    def __repr__(self) -> str:
        return f"Arguments({dict(self)!r})"

    # -- Typed access -------------------------------------------------------

    @property
    def known(self) -> Dict[ArgumentKey, Any]:
        return dict(self._known)

    @property
    def opaque(self) -> Dict[str, Any]:
        return dict(self._opaque)

    def has(self, key: ArgumentKey) -> bool:
        return key in self._known

    def get_str(self, key: ArgumentKey) -> Optional[str]:
        value = self._known.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)

    def get_int(self, key: ArgumentKey) -> Optional[int]:
        value = self._known.get(key)
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> Dict[str, Any]:
        return dict(self)
