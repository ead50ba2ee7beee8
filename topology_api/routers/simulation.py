"""
Flow simulation endpoints and the live status websocket.
"""

import asyncio
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from topology_api.dependencies import get_simulator
from topology_api.models import SimulationStartRequest
from topology_engine.simulation.flow_simulator import FlowSimulator

router = APIRouter(prefix="/api/v1/simulations", tags=["simulation"])
logger = logging.getLogger(__name__)


@router.post("/start", response_model=Dict[str, Any])
async def start_simulation(
    request: SimulationStartRequest,
    simulator: FlowSimulator = Depends(get_simulator),
):
    """
    Start a synthetic publishing run.

    The first segment of ``routing_key_pattern`` names the target exchange.
    The run continues in the background; poll its status or subscribe to
    the websocket for updates.
    """
    logger.info(
        f"Starting simulation: pattern={request.routing_key_pattern}, "
        f"messages={request.message_count}, publishers={request.concurrent_publishers}"
    )
    topology = request.topology.to_domain() if request.topology is not None else None
    simulation_id = await simulator.start(request.to_config(), topology)
    return {
        "simulation_id": simulation_id,
        "status": simulator.get_status(simulation_id).to_dict(),
    }


@router.post("/{simulation_id}/stop", response_model=Dict[str, Any])
async def stop_simulation(simulation_id: str, simulator: FlowSimulator = Depends(get_simulator)):
    """Stop a run. Stopping a finished run returns its final status unchanged."""
    status = await simulator.stop(simulation_id)
    return status.to_dict()


@router.get("/{simulation_id}/status", response_model=Dict[str, Any])
async def get_simulation_status(simulation_id: str, simulator: FlowSimulator = Depends(get_simulator)):
    return simulator.get_status(simulation_id).to_dict()


@router.get("", response_model=Dict[str, Any])
async def list_simulations(simulator: FlowSimulator = Depends(get_simulator)):
    simulations = [status.to_dict() for status in simulator.list_simulations()]
    return {"simulations": simulations, "count": len(simulations)}


@router.websocket("/ws")
async def simulation_updates(websocket: WebSocket, simulation_id: Optional[str] = None):
    """
    Push every status update as JSON. ``?simulation_id=`` restricts the
    stream to one run.
    """
    broadcast = websocket.app.state.broadcast
    queue = broadcast.subscribe()
    await websocket.accept()

    async def forward() -> None:
        while True:
            status = await queue.get()
            if simulation_id is None or status.simulation_id == simulation_id:
                await websocket.send_json(status.to_dict())

    async def watch() -> None:
        # receive raises WebSocketDisconnect once the client goes away
        while True:
            await websocket.receive_text()

    tasks = {asyncio.create_task(forward()), asyncio.create_task(watch())}
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Simulation websocket failed: {error!r}")
    finally:
        for task in tasks:
            task.cancel()
        broadcast.unsubscribe(queue)
