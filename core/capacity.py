# core/capacity.py
"""Bounded pool of backend call slots shared by concurrently running jobs."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from config import settings

logger = structlog.get_logger(__name__)


class BackendCapacityPool:
    """Limit concurrent backend calls. Callers beyond the limit wait for a slot."""

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity if capacity is not None else settings.MAX_CONCURRENT_LLM_CALLS
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._semaphore = asyncio.Semaphore(self.capacity)
        self.in_use = 0
        self.peak_in_use = 0
        self.waiting = 0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one backend slot for the duration of the block."""
        if self._semaphore.locked():
            logger.debug(
                "Backend capacity exhausted; queueing call.",
                capacity=self.capacity,
                waiting=self.waiting + 1,
            )
        self.waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self.waiting -= 1
        self.in_use += 1
        self.peak_in_use = max(self.peak_in_use, self.in_use)
        try:
            yield
        finally:
            self.in_use -= 1
            self._semaphore.release()
