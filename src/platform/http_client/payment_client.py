"""
Payment Client

The payment service exposes two surfaces (intent / checkout / billing and the
initiate / status / cancel flow); this client covers both.
"""

from typing import Any, Optional

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.http_client.base_api_client import BaseApiClient


class PaymentClient(BaseApiClient):
    SERVICE_NAME = 'payment'

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('base_url', settings.PAYMENT_SERVICE_URL)
        kwargs.setdefault('api_key', settings.PAYMENT_SERVICE_API_KEY)
        kwargs.setdefault('timeout', settings.PAYMENT_SERVICE_TIMEOUT)
        super().__init__(**kwargs)

    # ========== Payments ==========

    async def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str = settings.DEFAULT_CURRENCY,
        metadata: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        """Amount in minor units (cents)"""
        return await self._post(
            '/api/payments/intent',
            json={'amount': amount, 'currency': currency, 'metadata': metadata or {}},
            ctx=ctx,
        )

    async def initiate_payment(
        self, *, payment: dict[str, Any], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post('/api/payments/initiate', json=payment, ctx=ctx)

    async def create_checkout_session(
        self,
        *,
        items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        options: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        body = {
            'items': items,
            'successUrl': success_url,
            'cancelUrl': cancel_url,
            **(options or {}),
        }
        return await self._post('/api/payments/checkout', json=body, ctx=ctx)

    async def get_payment_details(
        self, *, payment_id: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._get(f'/api/payments/{payment_id}', ctx=ctx)

    async def get_payment_status(
        self, *, payment_intent_id: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._get(f'/api/payments/{payment_intent_id}/status', ctx=ctx)

    async def cancel_payment(
        self, *, payment_intent_id: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(f'/api/payments/{payment_intent_id}/cancel', ctx=ctx)

    async def process_refund(
        self,
        *,
        payment_id: str,
        amount: Optional[int] = None,
        reason: str = 'Refund requested',
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._post(
            f'/api/payments/{payment_id}/refund',
            json={'amount': amount, 'reason': reason},
            ctx=ctx,
        )

    # ========== Billing ==========

    async def get_user_invoices(
        self,
        *,
        user_id: int,
        options: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._get(
            '/api/billing/invoices', params={'userId': user_id, **(options or {})}, ctx=ctx
        )

    async def download_invoice(self, *, invoice_id: str, ctx: Optional[CallContext] = None) -> bytes:
        return await self._get(f'/api/billing/invoices/{invoice_id}/pdf', raw=True, ctx=ctx)

    # ========== Subscriptions ==========

    async def create_subscription(
        self,
        *,
        user_id: int,
        plan_id: str,
        options: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._post(
            '/api/subscriptions',
            json={'userId': user_id, 'planId': plan_id, **(options or {})},
            ctx=ctx,
        )

    async def cancel_subscription(
        self,
        *,
        subscription_id: str,
        reason: str = 'User requested',
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._delete(
            f'/api/subscriptions/{subscription_id}', json={'reason': reason}, ctx=ctx
        )

    # ========== Webhooks ==========

    async def process_webhook(
        self,
        *,
        provider: str,
        payload: dict[str, Any],
        signature: str,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._post(
            f'/api/webhooks/{provider}',
            json=payload,
            headers={'X-Webhook-Signature': signature},
            ctx=ctx,
        )
