"""
Dead-letter debugging endpoints.
"""

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query

from topology_api.dependencies import get_tracer
from topology_engine.debug.tracer import DeadLetterTracer

router = APIRouter(prefix="/api/v1/debug", tags=["debug"])
logger = logging.getLogger(__name__)


@router.get("/dead-letters", response_model=Dict[str, Any])
async def list_dead_letters(
    queue: Optional[str] = Query(None, description="Only read this queue"),
    limit: int = Query(100, ge=1, le=10000, description="Maximum number of messages"),
    tracer: DeadLetterTracer = Depends(get_tracer),
):
    """
    List dead-lettered messages without removing them from their queues.
    """
    messages = await tracer.get_dead_lettered_messages(queue_name=queue, limit=limit)
    return {
        "messages": [m.to_dict() for m in messages],
        "count": len(messages),
    }


@router.get("/trace/{message_id}", response_model=Dict[str, Any])
async def trace_message(
    message_id: str,
    queue: Optional[str] = Query(None, description="Search this queue first"),
    tracer: DeadLetterTracer = Depends(get_tracer),
):
    """
    Reconstruct the path of a message from its dead-letter history.
    """
    trace = await tracer.trace_message(message_id, queue_name=queue)
    return trace.to_dict()


@router.post("/requeue/{message_id}", response_model=Dict[str, Any])
async def requeue_message(message_id: str, tracer: DeadLetterTracer = Depends(get_tracer)):
    """
    Republish a dead-lettered message to its original exchange and routing
    key and remove it from the dead-letter queue.
    """
    details = await tracer.requeue_dead_lettered(message_id)
    logger.info(f"Requeued {message_id} via API")
    return {"requeued": True, "message": details.to_dict()}
