"""
Infrastructure adapters: outbound event emitters and the rate-limit store.

Import adapters from their module (e.g. `examprep.infra.events import HttpWebhookEmitter`).
"""

__all__ = []
