from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Deque, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from api.middleware.auth import get_user_id_from_request
from settings import SETTINGS

EXEMPT_MARKERS = ("/webhook/",)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute window per caller. Provider callbacks are never throttled."""

    def __init__(self, app, requests_per_minute: int | None = None) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute or SETTINGS.rate_limit_per_minute
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if any(marker in request.url.path for marker in EXEMPT_MARKERS):
            return await call_next(request)
        user_id = get_user_id_from_request(request)
        if user_id:
            key = f"user:{user_id}"
        else:
            key = f"ip:{request.client.host if request.client else 'unknown'}"
        now = time.time()
        bucket = self._hits[key]
        while bucket and now - bucket[0] > 60:
            bucket.popleft()
        if len(bucket) >= self.requests_per_minute:
            return JSONResponse({"status": "error", "message": "rate_limited"}, status_code=429)
        bucket.append(now)
        return await call_next(request)
