"""
Application Services
"""
from .topology_service import TopologyService, create_broker

__all__ = ["TopologyService", "create_broker"]
