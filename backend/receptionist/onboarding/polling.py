"""Cancellable provisioning poll loops, one per tenant.

Started when a tenant enters `provisioning`, cancelled when the tenant
leaves the workflow, when a new loop replaces it, or on shutdown.
Finished tasks remove themselves.
"""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger("receptionist.polling")


class PollRegistry:

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, tenant_id: str) -> asyncio.Task | None:
        return self._tasks.get(tenant_id)

    def is_running(self, tenant_id: str) -> bool:
        task = self._tasks.get(tenant_id)
        return task is not None and not task.done()

    def start(self, tenant_id: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run `coro` as the tenant's poll loop, cancelling any previous one."""
        previous = self._tasks.pop(tenant_id, None)
        if previous is not None and not previous.done():
            logger.info("Replacing poll loop for tenant %s", tenant_id)
            previous.cancel()

        task = asyncio.create_task(coro, name=f"provisioning-poll:{tenant_id}")
        self._tasks[tenant_id] = task
        task.add_done_callback(lambda t: self._discard(tenant_id, t))
        logger.info("Poll loop started for tenant %s", tenant_id)
        return task

    def _discard(self, tenant_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(tenant_id) is task:
            del self._tasks[tenant_id]

    async def cancel(self, tenant_id: str) -> bool:
        """Cancel the tenant's loop. Returns False if none was running."""
        task = self._tasks.pop(tenant_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Poll loop cancelled for tenant %s", tenant_id)
        return True

    async def cancel_all(self) -> None:
        for tenant_id in list(self._tasks):
            await self.cancel(tenant_id)
