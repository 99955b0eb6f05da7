"""Request context middleware: request ids, timing, logging and rate limiting.

One pass per request:
- Generate or propagate ``X-Request-ID``
- Enforce the per-client token bucket for the path's scope
- Measure duration into ``X-Response-Time``
- Log the request with share tokens redacted from the path

Share links are public, so ``/api/shared/`` gets its own, tighter bucket.
Guessing tokens through it costs a client far more than browsing its own
tree does. ``check_rate_limit`` is a pure function tested on its own.
"""

import logging
import threading
import time
import uuid
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import redact, request_id_var

logger = logging.getLogger(__name__)

# {scope:client: (available_tokens, last_refill_timestamp)}
RateBuckets = Dict[str, Tuple[float, float]]

_rate_buckets: RateBuckets = {}
_rate_lock = threading.Lock()

_rate_call_count = 0
_EVICT_EVERY = 100
_EVICT_AGE = 120.0

SHARED_PREFIX = "/api/shared/"

# Health probes and docs are never throttled.
EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


def _evict_stale(bucket: RateBuckets, now: float) -> None:
    cutoff = now - _EVICT_AGE
    for key in [k for k, (_, ts) in bucket.items() if ts < cutoff]:
        del bucket[key]


def check_rate_limit(
    bucket: RateBuckets,
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> Tuple[bool, float]:
    """Take one token for *key* from *bucket*.

    Args:
        bucket: Per-key state, modified in place.
        key: Client identifier, already scoped.
        max_per_minute: Sustained rate and burst size. Zero or less disables limiting.
        now: Monotonic timestamp, injectable for tests.

    Returns:
        ``(allowed, retry_after)`` where *retry_after* is the number of seconds
        until a token is available, or 0.0 when allowed.
    """
    global _rate_call_count

    if max_per_minute <= 0:
        return True, 0.0
    if now is None:
        now = time.monotonic()

    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        _evict_stale(bucket, now)

    per_second = max_per_minute / 60.0
    tokens, last = bucket.get(key, (float(max_per_minute), now))
    tokens = min(float(max_per_minute), tokens + (now - last) * per_second)

    if tokens < 1.0:
        bucket[key] = (tokens, now)
        return False, (1.0 - tokens) / per_second
    bucket[key] = (tokens - 1.0, now)
    return True, 0.0


def rate_scope(path: str) -> Optional[Tuple[str, int]]:
    """``(scope, limit)`` governing *path*, or None when it is exempt."""
    if path in EXEMPT_PATHS:
        return None
    if path.startswith(SHARED_PREFIX):
        return "shared", settings.share_rate_limit_per_minute
    return "api", settings.rate_limit_per_minute


def _client_key(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the direct client IP."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _rate_limited(rid: str, retry_after: float) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMITED",
            "message": "Too many requests",
            "details": {"retry_after": round(retry_after, 1)},
        },
        headers={"Retry-After": str(int(retry_after) + 1), "X-Request-ID": rid},
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request id, rate limit, timing and access log for every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)
        path = redact(request.url.path)

        scope = rate_scope(request.url.path)
        if scope is not None:
            name, limit = scope
            client = _client_key(request)
            with _rate_lock:
                allowed, retry_after = check_rate_limit(_rate_buckets, f"{name}:{client}", limit)
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": client, "scope": name, "path": path,
                           "retry_after": round(retry_after, 1)},
                )
                return _rate_limited(rid, retry_after)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
