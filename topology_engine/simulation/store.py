"""
Simulation Store

Holds the live runs of one FlowSimulator. The store is created by the
caller and passed in, so independent engines never share run state. Runs
are kept only in memory; nothing survives a restart.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from topology_engine.core.exceptions import NotFoundError
from .models import SimulationConfig, SimulationStatus


@dataclass
class SimulationRun:
    """Status plus the synchronization primitives of one run."""
    status: SimulationStatus
    config: SimulationConfig
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional["asyncio.Task[None]"] = None
    fault: Optional[BaseException] = None
    started_at: float = 0.0  # event-loop clock, for rate computation


class SimulationStore:

    def __init__(self) -> None:
        self._runs: Dict[str, SimulationRun] = {}

    def add(self, run: SimulationRun) -> None:
        self._runs[run.status.simulation_id] = run

    def get(self, simulation_id: str) -> SimulationRun:
        run = self._runs.get(simulation_id)
        if run is None:
            raise NotFoundError(f"Simulation '{simulation_id}' not found")
        return run

    def remove(self, simulation_id: str) -> None:
        self._runs.pop(simulation_id, None)

    def prune(self, keep: int) -> List[str]:
        """
        Drop the oldest finished runs until at most ``keep`` finished runs
        remain. Active runs are never dropped. Returns the removed ids.
        """
        finished = [sid for sid, run in self._runs.items() if run.status.state.is_terminal]
        removed = finished[:max(len(finished) - keep, 0)]
        for simulation_id in removed:
            self.remove(simulation_id)
        return removed

    def __contains__(self, simulation_id: object) -> bool:
        return simulation_id in self._runs

    def __iter__(self) -> Iterator[SimulationRun]:
        return iter(list(self._runs.values()))

    def __len__(self) -> int:
        return len(self._runs)
