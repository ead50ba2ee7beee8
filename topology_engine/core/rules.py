"""
Routing Rules

The single rule table for exchange-type binding semantics, plus the name
pattern, topic-pattern grammar and the matching functions used to route a
routing key or header set through a binding.

The validator and the pattern analyzer both read binding constraints from
BINDING_RULES; routing in TopologyGraph uses the matching functions below.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Mapping

from .arguments import ArgumentKey
from .models import Binding, ExchangeType

NAME_PATTERN = re.compile(r"^[A-Za-z0-9\-_.]+$")

# AMQP short-string limit
MAX_ROUTING_KEY_LENGTH = 255

SINGLE_WORD = "*"
MULTI_WORD = "#"
WILDCARDS = (SINGLE_WORD, MULTI_WORD)


@dataclass(frozen=True)
class BindingRule:
    """How bindings from one exchange type are interpreted and constrained."""
    requires_routing_key: bool = False
    forbids_routing_key: bool = False
    requires_arguments: bool = False
    supports_wildcards: bool = False
    routes_by_key: bool = False


BINDING_RULES: Dict[ExchangeType, BindingRule] = {
    ExchangeType.DIRECT: BindingRule(requires_routing_key=True, routes_by_key=True),
    ExchangeType.FANOUT: BindingRule(forbids_routing_key=True),
    ExchangeType.TOPIC: BindingRule(supports_wildcards=True, routes_by_key=True),
    ExchangeType.HEADERS: BindingRule(requires_arguments=True),
    ExchangeType.CONSISTENT_HASH: BindingRule(),
    ExchangeType.DEAD_LETTER: BindingRule(),
}


def rule_for(exchange_type: ExchangeType) -> BindingRule:
    return BINDING_RULES[exchange_type]


def is_valid_name(name: str) -> bool:
    return bool(NAME_PATTERN.match(name or ""))


def binding_violations(exchange_type: ExchangeType, binding: Binding) -> List[str]:
    """
    Rule-table violations for one binding, phrased for the validator.

    Returns an empty list when the binding satisfies its exchange type.
    """
    rule = rule_for(exchange_type)
    source = binding.source_exchange
    violations = []
    if rule.requires_routing_key and not binding.routing_key:
        violations.append(
            f"{exchange_type.value} exchange binding '{source}' requires a routing key"
        )
    if rule.forbids_routing_key and binding.routing_key:
        violations.append(
            f"{exchange_type.value} exchange binding '{source}' should not have a routing key"
        )
    if rule.requires_arguments and not binding.arguments:
        violations.append(
            f"{exchange_type.value} exchange binding '{source}' requires header arguments"
        )
    return violations


# ---------------------------------------------------------------------------
# Topic patterns
# ---------------------------------------------------------------------------

def has_wildcard(routing_key: str) -> bool:
    return any(w in (routing_key or "") for w in WILDCARDS)


def topic_pattern_problems(pattern: str) -> List[str]:
    """
    Grammar problems of a topic binding pattern.

    A pattern is dot-separated words; ``*`` and ``#`` must each occupy a
    whole word, and adjacent ``#`` words are redundant.
    """
    if pattern == "":
        return []
    problems = []
    words = pattern.split(".")
    if any(word == "" for word in words):
        problems.append("contains an empty segment")
    for word in words:
        if len(word) > 1 and any(w in word for w in WILDCARDS):
            problems.append(f"wildcard mixed into segment '{word}'")
    for left, right in zip(words, words[1:]):
        if left == MULTI_WORD and right == MULTI_WORD:
            problems.append("repeats '#.#'")
            break
    return problems


def topic_matches(pattern: str, routing_key: str) -> bool:
    """AMQP topic match: ``*`` is exactly one word, ``#`` zero or more words."""
    words = pattern.split(".")
    keys = routing_key.split(".")

    @lru_cache(maxsize=None)
    def match(i: int, j: int) -> bool:
        if i == len(words):
            return j == len(keys)
        if words[i] == MULTI_WORD:
            return match(i + 1, j) or (j < len(keys) and match(i, j + 1))
        if j == len(keys):
            return False
        if words[i] == SINGLE_WORD or words[i] == keys[j]:
            return match(i + 1, j + 1)
        return False

    return match(0, 0)


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

def headers_match(binding_arguments: Mapping[str, Any], headers: Mapping[str, Any]) -> bool:
    """
    Headers-exchange match. ``x-match`` selects ``all`` (default) or ``any``;
    other ``x-`` prefixed binding arguments do not take part in matching.
    """
    mode = str(binding_arguments.get(ArgumentKey.MATCH.value, "all")).lower()
    expected = {k: v for k, v in binding_arguments.items() if not str(k).startswith("x-")}
    if not expected:
        return mode != "any"
    hits = [k in headers and headers[k] == v for k, v in expected.items()]
    if mode == "any":
        return any(hits)
    return all(hits)
