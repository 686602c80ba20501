"""Redis transport for cross-process messaging."""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from ...contracts import WorkflowMessage
from .base import BaseTransport, Delivery

logger = logging.getLogger(__name__)


class RedisTransport(BaseTransport):
    """Redis lists as work queues: ``LPUSH`` to publish, ``BRPOP`` to receive.

    A popped message is gone from Redis, so ``ack`` has nothing left to do.
    Unparseable entries are logged and dropped.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "cypherflow",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis: Optional[Any] = None

    def _queue_name(self, topic: str) -> str:
        return f"{self.prefix}:{topic}"

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, message: WorkflowMessage) -> None:
        if not self._redis:
            await self.connect()
        await self._redis.lpush(self._queue_name(topic), message.to_json())

    async def receive(self, topic: str, timeout: float) -> Optional[Delivery]:
        if not self._redis:
            await self.connect()

        queue_name = self._queue_name(topic)
        # BRPOP treats a zero timeout as "block forever"
        if timeout <= 0:
            raw = await self._redis.rpop(queue_name)
        else:
            popped = await self._redis.brpop([queue_name], timeout=timeout)
            raw = popped[1] if popped else None
        if raw is None:
            return None

        try:
            message = WorkflowMessage.from_json(raw)
        except ValidationError as e:
            logger.error(f"Dropping unparseable message on {queue_name}: {e}")
            return None
        return Delivery(receipt=raw, message=message)

    async def ack(self, delivery: Delivery) -> None:
        """No-op: the message left Redis when it was popped."""
