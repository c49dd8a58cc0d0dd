from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from examprep.schemas.event_schemas import OutboundEvent
from examprep.utils.logger import configure_logging

logger = configure_logging()


class EventEmitter(ABC):
    """
    Outbound event port.

    The core calls `emit` after its own transaction has committed and never depends
    on delivery succeeding. Adapters decide the transport (HTTP webhook, queue, log).
    """

    @abstractmethod
    def emit(self, event: OutboundEvent) -> None:
        raise NotImplementedError


class LogEventEmitter(EventEmitter):
    """Writes events to the service log. Used when no webhook URL is configured."""

    def emit(self, event: OutboundEvent) -> None:
        logger.info("event %s payload=%s", event.event_type, event.model_dump_json())


# event_type -> path under the webhook base URL
WEBHOOK_PATHS: dict[str, str] = {
    "test-submitted": "/test-submitted",
    "recommendation-requested": "/generate-recommendations",
    "assignment-completed": "/weekly-assignment-completed",
}


@dataclass
class HttpWebhookEmitter(EventEmitter):
    """POSTs each event as JSON to `<base_url><path>`. Non-2xx responses raise."""

    base_url: str
    timeout: float = 5.0
    client: Optional[Any] = None

    def _get_client(self) -> httpx.Client:
        if self.client is None:
            self.client = httpx.Client(base_url=self.base_url.rstrip("/"), timeout=self.timeout)
        return self.client

    def emit(self, event: OutboundEvent) -> None:
        path = WEBHOOK_PATHS.get(event.event_type, f"/{event.event_type}")
        response = self._get_client().post(
            path,
            content=event.model_dump_json(),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


def emit_safely(emitter: EventEmitter, event: OutboundEvent) -> bool:
    """Emit without letting a delivery failure reach the caller. Returns True on success."""
    try:
        emitter.emit(event)
        return True
    except Exception:
        logger.exception("event emission failed type=%s", event.event_type)
        return False
