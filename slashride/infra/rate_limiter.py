# slashride/infra/rate_limiter.py
"""
Per-user slash command throttle.

A sliding window of request timestamps per chat user, held in this process
only: with N replicas a user gets up to N x ``max_requests`` per window.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from threading import Lock
from typing import Callable

from slashride.infra.logging_config import get_logger, mask_user_id

logger = get_logger(__name__)


class InMemoryRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    def is_allowed(self, user_id: str) -> tuple[bool, int | None]:
        """Record a command for ``user_id``; returns (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            window = self._requests.setdefault(user_id, deque())
            while window and window[0] <= now - self.window_seconds:
                window.popleft()

            if len(window) < self.max_requests:
                window.append(now)
                return True, None

            retry_after = int(window[0] + self.window_seconds - now) + 1

        logger.warning(
            f"Command throttled for {mask_user_id(user_id)}: "
            f"{self.max_requests}/{self.window_seconds}s, retry in {retry_after}s"
        )
        return False, retry_after

    def cleanup(self, max_age_seconds: int | None = None) -> int:
        """Forget users idle for ``max_age_seconds`` (default: the window). Returns how many."""
        cutoff = self._clock() - (max_age_seconds or self.window_seconds)
        with self._lock:
            idle = [
                user for user, window in self._requests.items()
                if not window or window[-1] <= cutoff
            ]
            for user in idle:
                del self._requests[user]

        if idle:
            logger.debug(f"Rate limiter forgot {len(idle)} idle users")
        return len(idle)

    async def start_cleanup(self, interval_seconds: float = 300) -> None:
        """Run cleanup() every ``interval_seconds`` until stop_cleanup()."""
        self._cleanup_task = asyncio.create_task(
            self._cleanup_loop(interval_seconds), name="rate_limiter_cleanup"
        )

    async def stop_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.cleanup()
            except Exception as exc:
                logger.error(f"Rate limiter cleanup failed: {exc}", exc_info=True)
