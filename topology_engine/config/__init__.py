from .settings import Settings, BACKEND_MEMORY, BACKEND_RABBITMQ

__all__ = ["Settings", "BACKEND_MEMORY", "BACKEND_RABBITMQ"]
