"""
RabbitMQ Broker

IBrokerClient over a live RabbitMQ: topology and health from the
management API, sessions over AMQP.
"""

from __future__ import annotations

from typing import AsyncContextManager

from topology_engine.config.settings import Settings
from topology_engine.core.models import Topology
from .amqp_session import AmqpSession, amqp_session
from .rabbitmq_management import RabbitMqManagementClient


class RabbitMqBroker:

    def __init__(self, management: RabbitMqManagementClient, amqp_url: str):
        self.management = management
        self.amqp_url = amqp_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "RabbitMqBroker":
        settings.validate()
        return cls(
            management=RabbitMqManagementClient.from_settings(settings),
            amqp_url=settings.rabbitmq_amqp_url,
        )

    async def get_current_topology(self) -> Topology:
        return await self.management.get_current_topology()

    async def health_check(self) -> bool:
        return await self.management.health_check()

    def session(self) -> AsyncContextManager[AmqpSession]:
        return amqp_session(self.amqp_url)

    async def aclose(self) -> None:
        await self.management.aclose()
