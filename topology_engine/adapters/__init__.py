"""
Broker and Notification Adapters
"""
from .amqp_session import AmqpSession, amqp_session
from .memory_broker import InMemoryBroker, InMemorySession, PublishedMessage
from .notification import (
    BroadcastNotificationSink,
    CompositeNotificationSink,
    LoggingNotificationSink,
)
from .rabbitmq_broker import RabbitMqBroker
from .rabbitmq_management import RabbitMqManagementClient

__all__ = [
    "AmqpSession",
    "amqp_session",
    "InMemoryBroker",
    "InMemorySession",
    "PublishedMessage",
    "BroadcastNotificationSink",
    "CompositeNotificationSink",
    "LoggingNotificationSink",
    "RabbitMqBroker",
    "RabbitMqManagementClient",
]
