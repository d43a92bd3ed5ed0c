"""Transport contract for the execution request queue."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import ExecutionRequest

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Queue carrying :class:`ExecutionRequest` messages between dispatcher and workers.

    ``RawMessageT`` is whatever the backend needs to settle a delivery
    later; workers treat it as opaque and hand it back to :meth:`ack` or
    :meth:`nack`.
    """

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, request: ExecutionRequest) -> None:
        """Enqueue ``request`` on ``topic``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, ExecutionRequest]]:
        """Yield ``(raw_message, request)`` deliveries from ``topic``.

        Stops after ``lifespan`` seconds, or never when it is None. Each
        request is delivered to a single subscriber.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Settle a delivery; the request will not be seen again."""
        raise NotImplementedError

    @abc.abstractmethod
    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Reject a delivery, putting the request back on its topic if ``requeue``."""
        raise NotImplementedError
