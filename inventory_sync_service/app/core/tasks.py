"""
Side-channel task runner.

Spawns detached units of work that must never affect the code path that
started them. Each task gets its own error boundary; failures are logged and
counted, never re-raised.
"""

import asyncio
from typing import Any, Awaitable, Optional, Set

from ..utils.logging import setup_inventory_logging as setup_logging

logger = setup_logging("inventory_sync_service.side_tasks")


class SideTaskRunner:
    """Tracks detached tasks so they can be drained on shutdown"""

    def __init__(self, name: str = "side-tasks"):
        self.name = name
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self.failed = 0
        self.completed = 0

    def spawn(
        self, coro: Awaitable[Any], task_name: Optional[str] = None
    ) -> "asyncio.Task[Any]":
        """Start ``coro`` without awaiting it"""
        task = asyncio.ensure_future(self._guard(coro, task_name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable[Any], task_name: Optional[str]) -> Any:
        try:
            result = await coro
            self.completed += 1
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.error(
                "Side task failed",
                extra={
                    "runner": self.name,
                    "task_name": task_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every task spawned so far has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
