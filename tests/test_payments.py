"""Payment gateway client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.config import Settings
from src.domain.enums import PaymentMethod
from src.domain.errors import UpstreamFailure
from src.infrastructure.payments import HttpPaymentGateway, build_payment_gateway


def _response(status_code: int, body: dict) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=body,
        request=httpx.Request("POST", "https://payments.test/v1/payment_intents"),
    )


class TestHttpPaymentGateway:
    @pytest.mark.asyncio
    async def test_amount_sent_in_cents(self):
        gateway = HttpPaymentGateway("https://payments.test/v1/", "sk_test")
        post = AsyncMock(return_value=_response(200, {"id": "pi_42"}))
        with patch.object(httpx.AsyncClient, "post", new=post):
            intent = await gateway.create_payment_intent(
                amount=50,
                method=PaymentMethod.DEPOSIT,
                metadata={"booking_number": "BK-20261019-0001"},
            )

        assert intent == "pi_42"
        url = post.call_args.args[0]
        payload = post.call_args.kwargs["json"]
        assert url == "https://payments.test/v1/payment_intents"
        assert payload["amount"] == 5000
        assert payload["currency"] == "aud"
        assert payload["metadata"]["payment_method"] == "deposit"
        assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk_test"

    @pytest.mark.asyncio
    async def test_http_error_is_upstream_failure(self):
        gateway = HttpPaymentGateway("https://payments.test/v1", "sk_test")
        post = AsyncMock(return_value=_response(503, {"error": "unavailable"}))
        with patch.object(httpx.AsyncClient, "post", new=post):
            with pytest.raises(UpstreamFailure):
                await gateway.create_payment_intent(
                    amount=330, method=PaymentMethod.FULL, metadata={}
                )

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_failure(self):
        gateway = HttpPaymentGateway("https://payments.test/v1", "sk_test", 0.5)
        post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch.object(httpx.AsyncClient, "post", new=post):
            with pytest.raises(UpstreamFailure):
                await gateway.create_payment_intent(
                    amount=330, method=PaymentMethod.FULL, metadata={}
                )


def test_gateway_disabled_by_default():
    assert build_payment_gateway(Settings(payments_enabled=False)) is None


def test_gateway_built_when_enabled():
    gateway = build_payment_gateway(
        Settings(payments_enabled=True, payment_api_url="https://payments.test/v1")
    )
    assert isinstance(gateway, HttpPaymentGateway)
    assert gateway.base_url == "https://payments.test/v1"
