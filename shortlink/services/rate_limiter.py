import asyncio
import logging
import math
import time
from typing import Callable, Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..exceptions import RateLimitedError
from ..observability import RATE_LIMITED_TOTAL

logger = logging.getLogger(__name__)


class AdmissionController:
    """Token bucket shared by every request in the process.

    The bucket starts full with ``capacity`` tokens and refills continuously
    at ``refill_rate`` tokens per second, never exceeding ``capacity``.
    """

    def __init__(self, capacity: int = 3, refill_rate: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._tokens = float(capacity)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._updated_at = now

    async def try_acquire(self) -> bool:
        async with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    @property
    def retry_after(self) -> int:
        """Whole seconds until the next token is available."""
        missing = max(0.0, 1 - self._tokens)
        return max(1, math.ceil(missing / self.refill_rate))


class AdmissionControlMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, controller: AdmissionController, exempt_paths: Iterable[str] = ()):
        super().__init__(app)
        self.controller = controller
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        if not await self.controller.try_acquire():
            RATE_LIMITED_TOTAL.inc()
            logger.warning(f"Rate limit exceeded: {request.method} {request.url.path}")
            error = RateLimitedError()
            return JSONResponse(
                status_code=error.status_code,
                headers={"Retry-After": str(self.controller.retry_after)},
                content={"detail": error.detail},
            )

        return await call_next(request)
