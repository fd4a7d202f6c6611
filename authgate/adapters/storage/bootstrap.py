"""Single-flight schema bootstrap.

Many requests can discover the missing schema at the same moment. They all
attach to one shared task, so the DDL runs once and every waiter sees the same
outcome. A failed or cancelled run clears the memo so a later call can try
again; a successful run stays memoized for the life of the bootstrapper.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class SchemaBootstrapCancelled(RuntimeError):
    """The shared DDL task was cancelled; the next ``ensure()`` starts over."""


class SchemaBootstrapper:
    def __init__(self, create_schema: Callable[[], Awaitable[None]]) -> None:
        self._create_schema = create_schema
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._runs = 0

    @property
    def runs(self) -> int:
        """Number of DDL sequences started so far."""
        return self._runs

    @property
    def completed(self) -> bool:
        task = self._task
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    async def ensure(self) -> None:
        """Run the schema DDL once, or wait for the run already in flight.

        Raises whatever the DDL raised; every concurrent waiter receives it.
        """
        async with self._lock:
            if self._task is None:
                self._runs += 1
                self._task = asyncio.ensure_future(self._run())
            task = self._task

        try:
            # Shielded: a cancelled waiter must not abort the shared DDL.
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                # Only this waiter was cancelled; the shared run goes on.
                raise
            await self._forget(task)
            raise SchemaBootstrapCancelled("schema bootstrap was cancelled before completing") from None
        except Exception:
            await self._forget(task)
            raise

    async def _forget(self, task: asyncio.Task[None]) -> None:
        async with self._lock:
            if self._task is task:
                self._task = None

    async def _run(self) -> None:
        logger.warning("storage.bootstrap.started", extra={"attempt": self._runs})
        start = time.perf_counter()
        try:
            await self._create_schema()
        except (Exception, asyncio.CancelledError) as exc:
            logger.error(
                "storage.bootstrap.failed",
                extra={"attempt": self._runs, "error_type": type(exc).__name__},
            )
            raise
        logger.info(
            "storage.bootstrap.completed",
            extra={
                "attempt": self._runs,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
