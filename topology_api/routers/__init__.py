"""
API Routers
"""
from . import debug, health, simulation, topology

__all__ = ["debug", "health", "simulation", "topology"]
