"""Message transports; ``cypherflow.service.build_transport`` picks one from config."""

from .base import BaseTransport, Delivery
from .inmemory import InMemoryTransport

__all__ = ["BaseTransport", "Delivery", "InMemoryTransport"]
