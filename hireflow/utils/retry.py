"""Backoff helpers used when supervising long-running loops."""

from __future__ import annotations

import asyncio
import random


def compute_backoff(
    attempt: int, base: float = 1.5, jitter: float = 0.5, cap: float = 60.0
) -> float:
    """Compute exponential backoff with jitter, capped at ``cap`` seconds."""
    delay = min(base**attempt, cap)
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for the computed backoff delay before restarting."""
    await asyncio.sleep(compute_backoff(attempt))
