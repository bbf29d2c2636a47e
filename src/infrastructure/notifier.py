"""Outbound customer notifications (email / SMS gateway stand-ins)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.config import Settings
from src.domain.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def notify(
        self, recipient: str, template: str, context: dict[str, Any]
    ) -> None: ...


class LoggingNotifier(Notifier):
    """Default when no delivery service is configured."""

    async def notify(self, recipient, template, context):
        logger.info("Notification %s -> %s: %s", template, recipient, context)


class HttpNotifier(Notifier):
    """POSTs ``{recipient, template, context}`` to a delivery service."""

    def __init__(self, url: str, timeout_seconds: float = 5.0):
        self.url = url
        self.timeout = httpx.Timeout(timeout_seconds)

    async def notify(self, recipient, template, context):
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.url,
                    json={"recipient": recipient, "template": template, "context": context},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Notification delivery failed: {exc}") from exc


def build_notifier(settings: Settings) -> Notifier:
    if settings.notifier_url:
        return HttpNotifier(settings.notifier_url)
    return LoggingNotifier()
