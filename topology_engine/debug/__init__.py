"""
Dead-Letter Debugging
"""
from .tracer import DeadLetterTracer, dead_letter_candidates
from .death_chain import decode_death_chain, strip_death_headers
from .models import DeadLetteredMessage, DeathRecord, MessageTrace

__all__ = [
    "DeadLetterTracer",
    "dead_letter_candidates",
    "decode_death_chain",
    "strip_death_headers",
    "DeadLetteredMessage",
    "DeathRecord",
    "MessageTrace",
]
