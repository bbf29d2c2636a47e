"""
Per-request notification outbox.

Services ``add`` notifications while they change state; the API layer
flushes the outbox in a background task once the response is on its way.
Delivery is best-effort: every failure is logged and swallowed, so a broken
mail gateway can never undo or block a committed status change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from src.infrastructure.notifier import Notifier

logger = logging.getLogger(__name__)

BOOKING_CONFIRMATION = "booking_confirmation"
STATUS_UPDATE = "status_update"


@dataclass(frozen=True)
class Notification:
    recipient: str
    template: str
    context: dict[str, Any] = field(default_factory=dict)


class Outbox:
    def __init__(self) -> None:
        self.pending: list[Notification] = []

    def add(self, recipient: str | None, template: str, **context: Any) -> None:
        if not recipient:
            logger.warning("Skipping %s notification: no recipient", template)
            return
        self.pending.append(Notification(recipient, template, context))

    async def flush(self, notifier: Notifier) -> int:
        """Deliver everything queued.  Returns how many were delivered."""
        delivered = 0
        pending, self.pending = self.pending, []
        for item in pending:
            try:
                await notifier.notify(item.recipient, item.template, item.context)
                delivered += 1
            except Exception:
                logger.exception(
                    "Failed to send %s notification to %s", item.template, item.recipient
                )
        return delivered
