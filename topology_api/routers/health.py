"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends

from topology_api.dependencies import get_broker
from topology_api.models import HealthResponse
from topology_engine.core.interfaces import IBrokerClient

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/", response_model=Dict[str, Any])
async def root():
    """Root endpoint - API information"""
    return {
        "name": "Broker Topology Engine API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "validate": "/api/v1/topology/validate",
            "normalize": "/api/v1/topology/normalize",
            "analyze": "/api/v1/topology/analyze",
            "broker_topology": "/api/v1/topology/broker",
            "simulations": "/api/v1/simulations",
            "simulation_updates": "/api/v1/simulations/ws",
            "dead_letters": "/api/v1/debug/dead-letters",
            "trace": "/api/v1/debug/trace/{message_id}",
            "requeue": "/api/v1/debug/requeue/{message_id}",
        },
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(broker: IBrokerClient = Depends(get_broker)):
    """
    Health check endpoint.
    The API reports healthy while running; broker reachability is reported
    separately so a broker outage does not fail liveness probes.
    """
    connected = await broker.health_check()
    if not connected:
        logger.warning("Broker health check failed")
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        broker_connected=connected,
        message=None if connected else "Broker is not reachable",
    )
