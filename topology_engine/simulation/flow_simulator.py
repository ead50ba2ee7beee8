"""
Flow Simulator

Drives synthetic publishing against a broker for one topology and keeps a
live status per run.

State machine per run:
    Initializing -> Running -> Completed | Stopped | Failed

Terminal states are absorbing. ``stop`` marks a run Stopped immediately;
worker loops observe the run's cancellation event on their next iteration
(a publish already in flight is allowed to finish).

Each run opens a single broker session shared by its publisher loops. The
session adapter serializes channel access itself.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from topology_engine.config.settings import Settings
from topology_engine.core.exceptions import InvalidConfigurationError
from topology_engine.core.interfaces import IBrokerClient, IBrokerSession, INotificationSink
from topology_engine.core.models import Topology, utc_now
from topology_engine.core.topology_graph import TopologyGraph
from .models import SimulationConfig, SimulationState, SimulationStatus
from .store import SimulationRun, SimulationStore

DEFAULT_STATUS_INTERVAL = 100
DEFAULT_RETENTION = 100


class FlowSimulator:
    """
    Concurrent, rate-limited synthetic publisher.

    Usage::

        simulator = FlowSimulator(broker, sink)
        simulation_id = await simulator.start(config, topology)
        status = simulator.get_status(simulation_id)
        await simulator.stop(simulation_id)
    """

    def __init__(
        self,
        broker: IBrokerClient,
        sink: INotificationSink,
        store: Optional[SimulationStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.broker = broker
        self.sink = sink
        self.store = store if store is not None else SimulationStore()
        self.status_interval = DEFAULT_STATUS_INTERVAL
        self.retention = DEFAULT_RETENTION
        if settings is not None:
            self.status_interval = max(settings.simulation_status_interval, 1)
            self.retention = max(settings.simulation_retention, 0)
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, config: SimulationConfig, topology: Optional[Topology] = None) -> str:
        """
        Validate ``config`` against the topology and launch the run.

        Without an explicit topology the broker's current topology is used.
        Raises InvalidConfigurationError before any status is allocated.
        """
        config.validate()
        if topology is None:
            topology = await self.broker.get_current_topology()

        exchange_name = config.target_exchange
        if topology.exchange(exchange_name) is None:
            raise InvalidConfigurationError(
                f"Exchange '{exchange_name}' referenced by routing key "
                f"'{config.routing_key_pattern}' does not exist in the topology"
            )

        routable = TopologyGraph(topology).route(
            exchange_name, config.routing_key_pattern, config.headers
        )
        simulation_id = str(uuid.uuid4())
        if not routable:
            self.logger.warning(
                f"Simulation {simulation_id}: routing key '{config.routing_key_pattern}' "
                f"reaches no queue from exchange '{exchange_name}'"
            )

        status = SimulationStatus(
            simulation_id=simulation_id,
            topology_id=config.topology_id or topology.id,
            target_exchange=exchange_name,
            routing_key=config.routing_key_pattern,
            routable_queues=routable,
        )
        evicted = self.store.prune(self.retention)
        if evicted:
            self.logger.debug(f"Evicted {len(evicted)} finished simulations from the store")
        run = SimulationRun(status=status, config=config)
        self.store.add(run)
        run.task = asyncio.create_task(self._run(run), name=f"simulation-{simulation_id}")

        self.logger.info(
            f"Started simulation {simulation_id}: {config.message_count} messages, "
            f"{config.concurrent_publishers} publishers -> {exchange_name}"
        )
        return simulation_id

    async def stop(self, simulation_id: str) -> SimulationStatus:
        """Signal cancellation and mark the run Stopped. No-op once terminal."""
        run = self.store.get(simulation_id)
        async with run.lock:
            if run.status.state.is_terminal:
                return run.status.snapshot()
            run.cancel_event.set()
            run.status.state = SimulationState.STOPPED
            run.status.end_time = self.clock()
            self._push(run.status)
            snapshot = run.status.snapshot()
        self.logger.info(f"Stopped simulation {simulation_id}")
        return snapshot

    def get_status(self, simulation_id: str) -> SimulationStatus:
        return self.store.get(simulation_id).status.snapshot()

    def list_simulations(self) -> List[SimulationStatus]:
        return [run.status.snapshot() for run in self.store]

    async def wait(self, simulation_id: str, timeout: Optional[float] = None) -> SimulationStatus:
        """Wait for the run's worker task to finish and return its final status."""
        run = self.store.get(simulation_id)
        if run.task is not None:
            await asyncio.wait_for(asyncio.shield(run.task), timeout)
        return run.status.snapshot()

    async def shutdown(self) -> None:
        """Stop every active run and wait for its task."""
        tasks = []
        for run in self.store:
            if not run.status.state.is_terminal:
                await self.stop(run.status.simulation_id)
            if run.task is not None and not run.task.done():
                tasks.append(run.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.logger.info(f"Simulator shut down ({len(tasks)} active runs stopped)")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(self, run: SimulationRun) -> None:
        status, config = run.status, run.config
        loop = asyncio.get_running_loop()

        async with run.lock:
            if status.state.is_terminal:
                return
            status.state = SimulationState.RUNNING
            status.start_time = self.clock()
            run.started_at = loop.time()
            self._push(status)

        rng = random.Random(config.seed)
        body = rng.randbytes(config.message_size_bytes)
        try:
            async with self.broker.session() as session:
                await asyncio.gather(*(
                    self._publish_loop(run, session, count, body, rng)
                    for count in config.partition()
                ))
        except Exception as exc:
            self._record_fault(run, exc)
        finally:
            await self._finish(run)

    async def _publish_loop(
        self,
        run: SimulationRun,
        session: IBrokerSession,
        count: int,
        body: bytes,
        rng: random.Random,
    ) -> None:
        status, config = run.status, run.config
        loop = asyncio.get_running_loop()
        delay = 1.0 / config.publish_rate_per_second if config.publish_rate_per_second > 0 else 0.0
        inject_failures = config.simulate_consumer_failures and config.consumer_failure_rate > 0

        try:
            for j in range(count):
                if run.cancel_event.is_set():
                    return

                if inject_failures and rng.random() < config.consumer_failure_rate:
                    async with run.lock:
                        status.failed_messages += 1
                else:
                    await session.publish(
                        config.target_exchange,
                        config.routing_key_pattern,
                        dict(config.headers),
                        body,
                        message_id=str(uuid.uuid4()),
                    )
                    async with run.lock:
                        status.messages_published += 1
                        elapsed = loop.time() - run.started_at
                        if elapsed > 0:
                            status.publish_rate_per_second = status.messages_published / elapsed
                        if j % self.status_interval == 0 and not status.state.is_terminal:
                            self._push(status)

                if delay:
                    try:
                        await asyncio.wait_for(run.cancel_event.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        pass
        except Exception as exc:
            self._record_fault(run, exc)

    def _record_fault(self, run: SimulationRun, exc: BaseException) -> None:
        if run.fault is None:
            run.fault = exc
            self.logger.error(
                f"Simulation {run.status.simulation_id} failed: {exc}", exc_info=exc
            )
        run.cancel_event.set()

    async def _finish(self, run: SimulationRun) -> None:
        status = run.status
        async with run.lock:
            if not status.state.is_terminal:
                if run.fault is not None:
                    status.state = SimulationState.FAILED
                    status.error_message = str(run.fault) or type(run.fault).__name__
                elif run.cancel_event.is_set():
                    status.state = SimulationState.STOPPED
                else:
                    status.state = SimulationState.COMPLETED
                status.end_time = self.clock()
            self._push(status)
        self.logger.info(
            f"Simulation {status.simulation_id} finished: {status.state.value}, "
            f"{status.messages_published} published, {status.failed_messages} failed"
        )

    def _push(self, status: SimulationStatus) -> None:
        try:
            self.sink.push_simulation_update(status.snapshot())
        except Exception:
            self.logger.exception(f"Notification sink rejected update for {status.simulation_id}")
