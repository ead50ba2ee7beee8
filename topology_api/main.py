"""
Broker Topology Engine API

FastAPI application exposing topology validation, normalization and
analysis, broker import, flow simulation and dead-letter debugging.

Run with:
    uvicorn topology_api.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from topology_api.routers import debug, health, simulation, topology
from topology_engine.adapters.notification import (
    BroadcastNotificationSink,
    CompositeNotificationSink,
    LoggingNotificationSink,
)
from topology_engine.application.topology_service import TopologyService, create_broker
from topology_engine.config.settings import Settings
from topology_engine.core.exceptions import (
    BrokerError,
    InvalidConfigurationError,
    NotFoundError,
)
from topology_engine.core.interfaces import IBrokerClient, INotificationSink
from topology_engine.debug.tracer import DeadLetterTracer
from topology_engine.simulation.flow_simulator import FlowSimulator

logger = logging.getLogger(__name__)


# ============================================================================
# Error mapping
# ============================================================================

async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_configuration(request: Request, exc: InvalidConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _broker_error(request: Request, exc: BrokerError) -> JSONResponse:
    logger.error(f"Broker error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# ============================================================================
# Application factory
# ============================================================================

def create_app(
    broker: Optional[IBrokerClient] = None,
    sink: Optional[INotificationSink] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application and its engine objects.

    ``broker`` defaults to the adapter selected by ``settings`` (environment
    when omitted). ``sink`` receives simulation updates in addition to the
    log and the websocket broadcast.
    """
    settings = settings or Settings.from_env()
    logging.getLogger("topology_engine").setLevel(settings.log_level)
    if broker is None:
        broker = create_broker(settings)

    broadcast = BroadcastNotificationSink()
    sinks = [LoggingNotificationSink(logging.DEBUG), broadcast]
    if sink is not None:
        sinks.append(sink)

    simulator = FlowSimulator(broker, CompositeNotificationSink(sinks), settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await simulator.shutdown()
        aclose = getattr(broker, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("Topology Engine API shut down")

    app = FastAPI(
        title="Broker Topology Engine API",
        description="API for validating, analyzing, simulating and debugging message broker topologies",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.broker = broker
    app.state.broadcast = broadcast
    app.state.topology_service = TopologyService(broker)
    app.state.simulator = simulator
    app.state.tracer = DeadLetterTracer(broker, settings=settings)

    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(InvalidConfigurationError, _invalid_configuration)
    app.add_exception_handler(BrokerError, _broker_error)

    app.include_router(health.router)
    app.include_router(topology.router)
    app.include_router(simulation.router)
    app.include_router(debug.router)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("topology_api.main:create_app", factory=True, host="0.0.0.0", port=8000)
