"""
Payment processor client.

The booking flow only needs one call, "create a payment intent for this
amount".  Card capture, webhook signing and refunds live with the
processor; success / failure comes back through ``POST /payments/events``.
Timeouts are owned here, not by the booking state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from src.config import Settings
from src.domain.enums import PaymentMethod
from src.domain.errors import UpstreamFailure


class PaymentGateway(ABC):
    @abstractmethod
    async def create_payment_intent(
        self,
        *,
        amount: int,
        method: PaymentMethod,
        metadata: dict[str, str],
    ) -> str:
        """Return the processor's payment intent id."""


class HttpPaymentGateway(PaymentGateway):
    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout_seconds)

    async def create_payment_intent(self, *, amount, method, metadata):
        payload = {
            # processor expects minor units
            "amount": amount * 100,
            "currency": "aud",
            "metadata": {**metadata, "payment_method": method.value},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/payment_intents",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                resp.raise_for_status()
                return resp.json()["id"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise UpstreamFailure(f"Payment intent creation failed: {exc}") from exc


def build_payment_gateway(settings: Settings) -> Optional[PaymentGateway]:
    """``None`` when payments are disabled (deferred payment flow)."""
    if not settings.payments_enabled:
        return None
    return HttpPaymentGateway(
        settings.payment_api_url,
        settings.payment_api_key,
        settings.payment_timeout_seconds,
    )
