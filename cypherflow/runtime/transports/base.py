"""Queue abstraction carrying workflow step messages between client and worker."""

from __future__ import annotations

import abc
import asyncio
from typing import Any, AsyncIterator, NamedTuple, Optional

from ...contracts import WorkflowMessage


class Delivery(NamedTuple):
    """A received message and the receipt its backend needs to acknowledge it."""

    receipt: Any
    message: WorkflowMessage

    @property
    def step(self) -> Optional[str]:
        """Name of the step the message asks the worker to run."""
        current = self.message.routing_slip.next_step()
        return current.name if current else None


class BaseTransport(abc.ABC):
    """Moves ``WorkflowMessage`` envelopes over named topics.

    Backends implement ``publish``, ``receive`` and ``ack``. The consume loop in
    ``subscribe`` is shared, so every backend stops at the same ``lifespan``
    deadline and never waits longer than ``max_wait`` per receive.
    """

    max_wait: float = 1.0

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""

    @abc.abstractmethod
    async def publish(self, topic: str, message: WorkflowMessage) -> None:
        """Append ``message`` to ``topic``."""

    @abc.abstractmethod
    async def receive(self, topic: str, timeout: float) -> Optional[Delivery]:
        """Wait up to ``timeout`` seconds for the next message on ``topic``.

        A ``timeout`` of zero checks the queue once without waiting.
        """

    @abc.abstractmethod
    async def ack(self, delivery: Delivery) -> None:
        """Acknowledge that ``delivery`` was processed."""

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Delivery]:
        """Yield deliveries from ``topic`` until ``lifespan`` seconds pass.

        Runs indefinitely when ``lifespan`` is ``None``.
        """
        loop = asyncio.get_running_loop()
        deadline = None if lifespan is None else loop.time() + lifespan
        while deadline is None or loop.time() < deadline:
            wait = self.max_wait
            if deadline is not None:
                wait = max(min(wait, deadline - loop.time()), 0)
            delivery = await self.receive(topic, timeout=wait)
            if delivery is not None:
                yield delivery
