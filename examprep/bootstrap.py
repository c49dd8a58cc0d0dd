from examprep.config import Settings
from examprep.infra.events import EventEmitter, HttpWebhookEmitter, LogEventEmitter
from examprep.infra.ratelimit import InMemoryRateLimitStore, RateLimitStore


def build_event_emitter(settings: Settings) -> EventEmitter:
    if settings.webhook_base_url:
        return HttpWebhookEmitter(
            base_url=settings.webhook_base_url,
            timeout=settings.webhook_timeout_seconds,
        )
    return LogEventEmitter()


def build_rate_limiter() -> RateLimitStore:
    return InMemoryRateLimitStore()
