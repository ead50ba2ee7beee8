"""
AMQP Session

pika BlockingConnection wrapped for asyncio. A blocking channel is not safe
for concurrent use, so every call of one session runs on that session's own
single-thread executor; concurrent publishers sharing a session are
serialized there.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, AsyncIterator, Callable, Dict, Optional, TypeVar

import pika
from pika.exceptions import AMQPError

from topology_engine.core.exceptions import BrokerError
from topology_engine.core.interfaces import BrokerMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AmqpSession:
    """One pika connection and channel, driven from a dedicated thread."""

    def __init__(self, amqp_url: str):
        self.amqp_url = amqp_url
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="amqp-session")
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel = None

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, partial(fn, *args, **kwargs))
        except AMQPError as e:
            raise BrokerError(f"AMQP operation failed: {e!r}") from e

    # -- Lifecycle ----------------------------------------------------------

    def _open(self) -> None:
        self._connection = pika.BlockingConnection(pika.URLParameters(self.amqp_url))
        self._channel = self._connection.channel()

    def _close(self) -> None:
        # closing the channel returns unacknowledged deliveries to their queues
        try:
            if self._channel is not None and self._channel.is_open:
                self._channel.close()
        finally:
            if self._connection is not None and self._connection.is_open:
                self._connection.close()
            self._channel = None
            self._connection = None

    async def open(self) -> "AmqpSession":
        await self._call(self._open)
        logger.debug("AMQP session opened")
        return self

    async def close(self) -> None:
        try:
            await self._call(self._close)
        finally:
            self._executor.shutdown(wait=False)
            logger.debug("AMQP session closed")

    # -- IBrokerSession -----------------------------------------------------

    def _publish(
        self,
        exchange: str,
        routing_key: str,
        headers: Dict[str, Any],
        body: bytes,
        message_id: Optional[str],
    ) -> None:
        properties = pika.BasicProperties(message_id=message_id, headers=headers or None)
        self._channel.basic_publish(
            exchange=exchange, routing_key=routing_key, body=body, properties=properties
        )

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        headers: Dict[str, Any],
        body: bytes,
        message_id: Optional[str] = None,
    ) -> None:
        await self._call(self._publish, exchange, routing_key, headers, body, message_id)

    def _get(self, queue: str, ack: bool) -> Optional[BrokerMessage]:
        method, properties, body = self._channel.basic_get(queue=queue, auto_ack=ack)
        if method is None:
            return None
        return BrokerMessage(
            message_id=properties.message_id,
            body=body or b"",
            headers=dict(properties.headers or {}),
            exchange=method.exchange,
            routing_key=method.routing_key,
            queue=queue,
            delivery_tag=method.delivery_tag,
        )

    async def peek_or_consume(self, queue: str, ack: bool) -> Optional[BrokerMessage]:
        return await self._call(self._get, queue, ack)

    async def acknowledge(self, message: BrokerMessage) -> None:
        if message.delivery_tag is None:
            raise BrokerError(f"Message '{message.message_id}' has no delivery tag to acknowledge")
        await self._call(self._channel.basic_ack, delivery_tag=message.delivery_tag)


@asynccontextmanager
async def amqp_session(amqp_url: str) -> AsyncIterator[AmqpSession]:
    session = AmqpSession(amqp_url)
    try:
        yield await session.open()
    finally:
        await session.close()
