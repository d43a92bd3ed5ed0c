"""Resume executions suspended by ``wait`` steps."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from .executor import WorkflowExecutor
from .persistence import ExecutionStore
from .persistence.models import ExecutionReport
from .utils.clock import utcnow
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)


class WaitScheduler:
    """Poll the store for due executions and hand them back to the executor.

    Run a single scheduler per store; two schedulers could resume the same
    execution twice.
    """

    def __init__(
        self,
        store: ExecutionStore,
        executor: WorkflowExecutor,
        poll_interval: float = 30.0,
    ) -> None:
        self._store = store
        self._executor = executor
        self._poll_interval = poll_interval

    async def run_due(self, now: Optional[datetime] = None) -> List[ExecutionReport]:
        """Resume every execution whose ``resume_at`` is at or before ``now``."""
        due = await self._store.list_due_executions(now or utcnow())
        reports: List[ExecutionReport] = []
        for execution in due:
            try:
                reports.append(await self._executor.resume(execution.id, execution.tenant_id))
            except Exception:
                logger.exception(f"Failed to resume execution {execution.id}")
        return reports

    async def run(self, lifespan: Optional[float] = None) -> None:
        """Poll until ``lifespan`` seconds have passed (forever if None)."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        attempt = 0
        while deadline is None or loop.time() < deadline:
            try:
                resumed = await self.run_due()
                attempt = 0
                if resumed:
                    logger.info(f"Resumed {len(resumed)} waiting executions")
            except Exception:
                attempt += 1
                logger.exception("Wait scheduler poll failed")
                await schedule_retry(attempt)
                continue

            delay = self._poll_interval
            if deadline is not None:
                delay = max(0.0, min(delay, deadline - loop.time()))
            await asyncio.sleep(delay)
