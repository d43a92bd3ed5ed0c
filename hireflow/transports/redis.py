"""Redis transport for cross-process execution queues."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError

from ..contracts import ExecutionRequest
from .base import BaseTransport

logger = logging.getLogger(__name__)

QUEUE_PREFIX = "hireflow"

# (queue name, message json)
RawMessage = Tuple[str, str]


class RedisTransport(BaseTransport[RawMessage]):
    """Redis list used as a work queue (LPUSH / BRPOP)."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self._redis: Optional[Any] = None

    @staticmethod
    def queue_name(topic: str) -> str:
        return f"{QUEUE_PREFIX}:{topic}"

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

    async def publish(self, topic: str, request: ExecutionRequest) -> None:
        """Push request onto the topic's list."""
        if not self._redis:
            await self.connect()
        await self._redis.lpush(self.queue_name(topic), request.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessage, ExecutionRequest]]:
        """Pop requests from the topic's list until ``lifespan`` elapses."""
        if not self._redis:
            await self.connect()

        queue_name = self.queue_name(topic)
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            result = await self._redis.brpop(queue_name, timeout=1)
            if not result:
                continue

            _, message_json = result
            try:
                request = ExecutionRequest.from_json(message_json)
            except ValidationError as e:
                logger.error(f"Dropping malformed execution request on {queue_name}: {e}")
                continue
            yield (queue_name, message_json), request

    async def ack(self, raw_message: RawMessage) -> None:
        """Nothing to do: BRPOP already removed the message."""
        pass

    async def nack(self, raw_message: RawMessage, requeue: bool = True) -> None:
        """Push the message back on the consuming end of its list."""
        if not requeue:
            return
        if not self._redis:
            await self.connect()
        queue_name, message_json = raw_message
        await self._redis.rpush(queue_name, message_json)
