from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

LOGGER = logging.getLogger(__name__)


class DeletionScheduler:
    """Delayed, cancellable deletions keyed by ticket id.

    A job is cancellable only while it is waiting out its grace delay. Once
    the delay elapses the job moves to the running set and runs to
    completion, so a late ``cancel`` never interrupts a half-finished
    deletion. A ticket counts as scheduled until its job has finished.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running: set[str] = set()

    def is_scheduled(self, ticket_id: str) -> bool:
        return ticket_id in self._tasks or ticket_id in self._running

    def schedule(
        self,
        ticket_id: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> bool:
        if self.is_scheduled(ticket_id):
            return False
        task = asyncio.create_task(self._run(ticket_id, delay_seconds, callback), name=f"ticket-delete:{ticket_id}")
        self._tasks[ticket_id] = task
        LOGGER.info("Scheduled deletion of ticket %s in %.1fs", ticket_id, delay_seconds)
        return True

    def cancel(self, ticket_id: str) -> bool:
        task = self._tasks.pop(ticket_id, None)
        if task is None:
            return False
        task.cancel()
        LOGGER.info("Cancelled scheduled deletion of ticket %s", ticket_id)
        return True

    def cancel_all(self) -> None:
        for ticket_id in list(self._tasks):
            self.cancel(ticket_id)

    async def _run(self, ticket_id: str, delay_seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(delay_seconds)
        if self._tasks.get(ticket_id) is not asyncio.current_task():
            return
        del self._tasks[ticket_id]
        self._running.add(ticket_id)
        try:
            await callback()
        except Exception:
            LOGGER.exception("Scheduled deletion of ticket %s failed", ticket_id)
        finally:
            self._running.discard(ticket_id)
