"""
Cancellable deferred callbacks keyed by table.

Every delayed side effect (tie re-vote, payment confirmation, empty-table
eviction) runs as an asyncio task registered under a TimerKey, so it can
be cancelled when its table is reset or evicted and on shutdown.

Callbacks must re-check that the table/guest they reference still exists
and is still in the expected state: a timer that lost its subject is a
lost update, not an error.

Usage:
    scheduler = TimerScheduler()
    scheduler.schedule(TimerKey(table.id, TimerKind.TIE_RESET), 3.0, reset_callback)
    scheduler.cancel_table(table.id)
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, NamedTuple

from shared.config.logging import get_logger
from shared.infrastructure.correlation import event_id_var, new_event_id

logger = get_logger(__name__)

TimerCallback = Callable[[], Awaitable[Any] | Any]


class TimerKind(str, Enum):
    TIE_RESET = "tie_reset"
    PAYMENT_CONFIRMATION = "payment_confirmation"
    EVICTION = "eviction"


class TimerKey(NamedTuple):
    table_id: str
    kind: TimerKind
    guest_id: str | None = None


class TimerScheduler:
    """
    Registry of pending timers.

    Scheduling a key that is already pending replaces the earlier timer.
    Requires a running event loop.
    """

    def __init__(self) -> None:
        self._timers: dict[TimerKey, asyncio.Task] = {}
        self._fired = 0
        self._cancelled = 0

    def schedule(self, key: TimerKey, delay: float, callback: TimerCallback) -> asyncio.Task:
        """Run `callback` after `delay` seconds unless cancelled first."""
        self.cancel(key)
        task = asyncio.create_task(
            self._run(key, delay, callback),
            name=f"timer:{key.kind.value}:{key.table_id}",
        )
        self._timers[key] = task
        logger.debug(
            "Timer scheduled",
            table_id=key.table_id,
            kind=key.kind.value,
            guest_id=key.guest_id,
            delay=delay,
        )
        return task

    async def _run(self, key: TimerKey, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)

        # Past this point the timer can no longer be cancelled by key
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        self._fired += 1

        event_id_var.set(new_event_id())
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "Timer callback failed",
                table_id=key.table_id,
                kind=key.kind.value,
                guest_id=key.guest_id,
                error=str(e),
                exc_info=True,
            )

    def cancel(self, key: TimerKey) -> bool:
        """Cancel a pending timer. Returns False if nothing was pending."""
        task = self._timers.pop(key, None)
        if task is None:
            return False
        if task is not asyncio.current_task():
            task.cancel()
        self._cancelled += 1
        return True

    def cancel_table(self, table_id: str) -> int:
        """Cancel every pending timer of a table."""
        keys = [k for k in self._timers if k.table_id == table_id]
        for key in keys:
            self.cancel(key)
        if keys:
            logger.debug("Table timers cancelled", table_id=table_id, count=len(keys))
        return len(keys)

    def cancel_all(self) -> int:
        count = 0
        for key in list(self._timers):
            if self.cancel(key):
                count += 1
        return count

    async def shutdown(self) -> None:
        """Cancel everything and wait for the tasks to unwind."""
        tasks = list(self._timers.values())
        cancelled = self.cancel_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Timer scheduler stopped", cancelled=cancelled)

    def is_pending(self, key: TimerKey) -> bool:
        return key in self._timers

    def pending_for(self, table_id: str) -> list[TimerKey]:
        return [k for k in self._timers if k.table_id == table_id]

    def get_stats(self) -> dict[str, int]:
        return {
            "pending": len(self._timers),
            "fired": self._fired,
            "cancelled": self._cancelled,
        }
