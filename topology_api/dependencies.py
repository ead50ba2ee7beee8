"""
FastAPI dependency injection for API routes.

Engine objects are created once by ``create_app`` and kept on
``app.state``; these dependencies hand them to the endpoints.
"""

import logging

from fastapi import Request

from topology_engine.adapters.notification import BroadcastNotificationSink
from topology_engine.application.topology_service import TopologyService
from topology_engine.core.interfaces import IBrokerClient
from topology_engine.debug.tracer import DeadLetterTracer
from topology_engine.simulation.flow_simulator import FlowSimulator

# ── Configuration ────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


# ── Dependencies ─────────────────────────────────────────────────────────

def get_broker(request: Request) -> IBrokerClient:
    return request.app.state.broker


def get_topology_service(request: Request) -> TopologyService:
    return request.app.state.topology_service


def get_simulator(request: Request) -> FlowSimulator:
    return request.app.state.simulator


def get_tracer(request: Request) -> DeadLetterTracer:
    return request.app.state.tracer


def get_broadcast(request: Request) -> BroadcastNotificationSink:
    return request.app.state.broadcast
