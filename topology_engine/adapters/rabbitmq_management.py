"""
RabbitMQ Management API Client

Reads the live topology of one virtual host over the management HTTP API
(``exchanges/{vhost}``, ``queues/{vhost}``, ``bindings/{vhost}``) and maps it
onto the topology model. The broker's nameless default exchange and its
implicit per-queue bindings are not part of a declared topology and are
left out.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from topology_engine.config.settings import Settings
from topology_engine.core.arguments import ArgumentKey, Arguments
from topology_engine.core.exceptions import BrokerError
from topology_engine.core.models import (
    BROKER_EXCHANGE_TYPES,
    Binding,
    DestinationType,
    Exchange,
    Queue,
    Topology,
    utc_now,
)

logger = logging.getLogger(__name__)


class RabbitMqManagementClient:
    """
    Async client for the RabbitMQ management API.

    Usage::

        client = RabbitMqManagementClient.from_settings(settings)
        topology = await client.get_current_topology()
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        user: str,
        password: str,
        vhost: str = "/",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._auth = (user, password)
        self._timeout = timeout
        self._transport = transport
        self._vhost = quote(vhost, safe="")
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "RabbitMqManagementClient":
        return cls(
            base_url=settings.rabbitmq_management_url,
            user=settings.rabbitmq_user,
            password=settings.rabbitmq_password,
            vhost=settings.rabbitmq_vhost,
            timeout=settings.rabbitmq_timeout_seconds,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url + "/",
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str) -> List[Dict[str, Any]]:
        client = await self._get_client()
        try:
            response = await client.get(path)
            response.raise_for_status()
            return response.json() or []
        except httpx.HTTPStatusError as e:
            raise BrokerError(
                f"Management API returned {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise BrokerError(f"Management API request failed for {path}: {e}") from e

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    async def get_exchanges(self) -> List[Exchange]:
        exchanges = []
        for raw in await self._get_json(f"exchanges/{self._vhost}"):
            name = raw.get("name", "")
            if not name:
                continue
            exchange_type = BROKER_EXCHANGE_TYPES.get(str(raw.get("type", "")).lower())
            if exchange_type is None:
                logger.warning(f"Skipping exchange '{name}' with unknown type '{raw.get('type')}'")
                continue
            exchanges.append(Exchange(
                name=name,
                type=exchange_type,
                durable=bool(raw.get("durable", False)),
                auto_delete=bool(raw.get("auto_delete", False)),
                internal=bool(raw.get("internal", False)),
                arguments=Arguments(raw.get("arguments") or {}),
            ))
        return exchanges

    async def get_queues(self) -> List[Queue]:
        queues = []
        for raw in await self._get_json(f"queues/{self._vhost}"):
            arguments = Arguments(raw.get("arguments") or {})
            queues.append(Queue(
                name=raw.get("name", ""),
                durable=bool(raw.get("durable", False)),
                exclusive=bool(raw.get("exclusive", False)),
                auto_delete=bool(raw.get("auto_delete", False)),
                arguments=arguments,
                max_length=arguments.get_int(ArgumentKey.MAX_LENGTH),
                message_ttl=arguments.get_int(ArgumentKey.MESSAGE_TTL),
                dead_letter_exchange=arguments.get_str(ArgumentKey.DEAD_LETTER_EXCHANGE),
                dead_letter_routing_key=arguments.get_str(ArgumentKey.DEAD_LETTER_ROUTING_KEY),
            ))
        return queues

    async def get_bindings(self) -> List[Binding]:
        bindings = []
        for raw in await self._get_json(f"bindings/{self._vhost}"):
            source = raw.get("source", "")
            if not source:
                continue
            try:
                destination_type = DestinationType(raw.get("destination_type", "queue"))
            except ValueError:
                logger.warning(f"Skipping binding from '{source}' with destination type "
                               f"'{raw.get('destination_type')}'")
                continue
            bindings.append(Binding(
                source_exchange=source,
                destination=raw.get("destination", ""),
                destination_type=destination_type,
                routing_key=raw.get("routing_key", ""),
                arguments=Arguments(raw.get("arguments") or {}),
            ))
        return bindings

    async def get_current_topology(self) -> Topology:
        exchanges = await self.get_exchanges()
        queues = await self.get_queues()
        bindings = await self.get_bindings()
        now = utc_now()
        logger.info(
            f"Imported topology from {self.base_url}: {len(exchanges)} exchanges, "
            f"{len(queues)} queues, {len(bindings)} bindings"
        )
        return Topology(
            name=f"Imported from {self.base_url} at {now:%Y-%m-%d %H:%M:%S}",
            description=f"Topology imported from RabbitMQ broker at {self.base_url}",
            exchanges=exchanges,
            queues=queues,
            bindings=bindings,
            created_at=now,
            updated_at=now,
        )

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            response = await client.get("health/checks/alarms")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Broker health check failed: {e}")
            return False
