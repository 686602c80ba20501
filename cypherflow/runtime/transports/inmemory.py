"""In-memory transport for tests and single-process deployments."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from ...contracts import WorkflowMessage
from .base import BaseTransport, Delivery


class InMemoryTransport(BaseTransport):
    """Per-topic FIFO queues held in process memory.

    Messages are stored serialized, as they would be on a broker, so a consumer
    never shares an object with the publisher. Only usable when client and
    worker run in one process, as under ``cypherflow serve``.
    """

    def __init__(self, poll_interval: float = 0.05) -> None:
        self._queues: Dict[str, Deque[str]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._poll_interval = poll_interval

    async def publish(self, topic: str, message: WorkflowMessage) -> None:
        async with self._lock:
            self._queues[topic].append(message.to_json())

    async def receive(self, topic: str, timeout: float) -> Optional[Delivery]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            async with self._lock:
                raw = self._queues[topic].popleft() if self._queues[topic] else None
            if raw is not None:
                return Delivery(receipt=raw, message=WorkflowMessage.from_json(raw))
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def ack(self, delivery: Delivery) -> None:
        """Nothing to do: ``receive`` already removed the message."""

    def pending(self, topic: str) -> int:
        """Number of queued messages on ``topic``."""
        return len(self._queues[topic])

    def purge(self, topic: str) -> int:
        """Drop every queued message on ``topic`` and return how many there were."""
        dropped = len(self._queues[topic])
        self._queues[topic].clear()
        return dropped
