from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestCache(Generic[T]):
    """Per-session single-flight map from a key to its generation task.

    The first caller for a key starts the work; every later caller, before or
    after completion, gets the same task. Failures are kept as well, so a key
    that failed once keeps failing for the lifetime of the cache.
    """

    def __init__(self, name: str = "requests"):
        self.name = name
        self._tasks: dict[str, asyncio.Future[T]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def get(self, key: str) -> Optional[asyncio.Future[T]]:
        return self._tasks.get(key)

    def get_or_start(self, key: str, start: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        # lookup and insert happen without yielding to the event loop
        task = self._tasks.get(key)
        if task is None:
            logger.debug(f"{self.name}: starting {key}")
            task = asyncio.ensure_future(start())
            self._tasks[key] = task
        return task

    async def run(self, key: str, start: Callable[[], Awaitable[T]]) -> T:
        # cancelling one caller never cancels the shared task
        return await asyncio.shield(self.get_or_start(key, start))
