"""Per-client rate limit checks shared by the public routers."""

from fastapi import HTTPException, Request, status

from uptodate.services.rate_limit import InMemoryRateLimiter


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce(limiter: InMemoryRateLimiter, request: Request) -> None:
    """Raise 429 when the caller exceeded ``limiter``'s window."""
    key = _client_key(request)
    if not limiter.is_allowed(key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(limiter.retry_after(key))},
        )


def check_feed_rate_limit(request: Request) -> None:
    enforce(request.app.state.feed_limiter, request)


def check_events_rate_limit(request: Request) -> None:
    enforce(request.app.state.events_limiter, request)
