"""
FastAPI dependencies for application-scoped collaborators.

The event emitter and the rate-limit store are built once in the app lifespan and
kept on app.state; routes get them through these dependencies so tests can swap them.
"""

from typing import Optional

from fastapi import Request, Response

from examprep.config import settings
from examprep.infra.events import EventEmitter, LogEventEmitter
from examprep.infra.ratelimit import RateLimitStore
from examprep.services.errors import RateLimited


def get_event_emitter(request: Request) -> EventEmitter:
    emitter: Optional[EventEmitter] = getattr(request.app.state, "events", None)
    return emitter if emitter is not None else LogEventEmitter()


def enforce_rate_limit(request: Request, response: Response) -> None:
    store: Optional[RateLimitStore] = getattr(request.app.state, "rate_limiter", None)
    if store is None:
        return
    client = request.client.host if request.client else "unknown"
    decision = store.hit(f"ip:{client}", settings.rate_limit_max, settings.rate_limit_window_seconds)
    response.headers["x-ratelimit-remaining"] = str(decision.remaining)
    if not decision.allowed:
        raise RateLimited(
            "too many requests, please try again later",
            retry_after=int(decision.reset_in_seconds) + 1,
        )
