"""In-memory transport for tests and single-process deployments."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, Optional, Tuple

from ..contracts import ExecutionRequest
from .base import BaseTransport

# (topic, request)
RawRequest = Tuple[str, ExecutionRequest]


class InMemoryTransport(BaseTransport[RawRequest]):
    """Simple in-process queue.

    Several subscribers may consume the same topic; each request is handed
    to exactly one of them.
    """

    def __init__(self, poll_interval: float = 0.05) -> None:
        self._queues: Dict[str, Deque[RawRequest]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._poll_interval = poll_interval
        self.acked: list[str] = []
        self.nacked: list[str] = []

    async def publish(self, topic: str, request: ExecutionRequest) -> None:
        """Publish request to in-memory queue."""
        raw = (topic, request)
        async with self._lock:
            self._queues[topic].append(raw)

    def pending(self, topic: str) -> int:
        return len(self._queues[topic])

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawRequest, ExecutionRequest]]:
        """Subscribe to requests from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep consuming. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            async with self._lock:
                raw_message = self._queues[topic].popleft() if self._queues[topic] else None

            if raw_message is not None:
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(self._poll_interval)

    async def ack(self, raw_message: RawRequest) -> None:
        self.acked.append(raw_message[1].request_id)

    async def nack(self, raw_message: RawRequest, requeue: bool = True) -> None:
        topic, request = raw_message
        self.nacked.append(request.request_id)
        if requeue:
            async with self._lock:
                self._queues[topic].append(raw_message)
