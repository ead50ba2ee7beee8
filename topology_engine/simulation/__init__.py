"""
Simulation Package
"""
from .flow_simulator import FlowSimulator
from .models import SimulationConfig, SimulationState, SimulationStatus
from .store import SimulationRun, SimulationStore

__all__ = [
    "FlowSimulator",
    "SimulationConfig",
    "SimulationState",
    "SimulationStatus",
    "SimulationRun",
    "SimulationStore",
]
