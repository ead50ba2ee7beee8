"""
Topology endpoints: validation, normalization, pattern analysis and broker import.
"""

from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, Query

from topology_api.dependencies import get_topology_service
from topology_api.models import TopologyModel
from topology_engine.application.topology_service import TopologyService

router = APIRouter(prefix="/api/v1/topology", tags=["topology"])
logger = logging.getLogger(__name__)


@router.post("/validate", response_model=Dict[str, Any])
async def validate_topology(
    request: TopologyModel,
    service: TopologyService = Depends(get_topology_service),
):
    """
    Validate a topology.

    Errors make the topology invalid; warnings are advisory.
    """
    result = service.validate(request.to_domain())
    return result.to_dict()


@router.post("/normalize", response_model=Dict[str, Any])
async def normalize_topology(
    request: TopologyModel,
    service: TopologyService = Depends(get_topology_service),
):
    """Return the canonical form of a topology (trimmed, lower-cased names)."""
    return service.normalize(request.to_domain()).to_dict()


@router.post("/analyze", response_model=Dict[str, Any])
async def analyze_topology(
    request: TopologyModel,
    service: TopologyService = Depends(get_topology_service),
):
    """
    Analyze a topology for design problems.

    Findings are ordered by severity (Error, Warning, Info) and carry
    recommendations.
    """
    return service.analyze(request.to_domain()).to_dict()


@router.get("/broker", response_model=Dict[str, Any])
async def get_broker_topology(
    normalize: bool = Query(False, description="Normalize the imported topology"),
    service: TopologyService = Depends(get_topology_service),
):
    """Import the topology currently declared on the broker."""
    topology = await service.get_broker_topology()
    if normalize:
        topology = service.normalize(topology)
    return topology.to_dict()
