from typing import Any, Optional

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.http_client.base_api_client import BaseApiClient


class NotificationGatewayClient(BaseApiClient):
    """Client for the notification service (email / SMS / push senders)"""

    SERVICE_NAME = 'notification'

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('base_url', settings.NOTIFICATION_SERVICE_URL)
        kwargs.setdefault('api_key', settings.NOTIFICATION_SERVICE_API_KEY)
        kwargs.setdefault('timeout', settings.NOTIFICATION_SERVICE_TIMEOUT)
        super().__init__(**kwargs)

    async def send_email(
        self, *, to: str, template: str, data: dict[str, Any], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(
            '/api/email/send', json={'to': to, 'template': template, 'data': data}, ctx=ctx
        )

    async def queue_email(
        self,
        *,
        recipients: list[dict[str, Any]],
        template: str,
        data: dict[str, Any],
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        """Bulk send; the response carries the remote `jobId`"""
        return await self._post(
            '/api/email/queue',
            json={'recipients': recipients, 'template': template, 'data': data},
            ctx=ctx,
        )

    async def send_sms(
        self, *, to: str, message: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post('/api/sms/send', json={'to': to, 'message': message}, ctx=ctx)

    async def queue_sms(
        self, *, recipients: list[dict[str, Any]], message: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(
            '/api/sms/queue', json={'recipients': recipients, 'message': message}, ctx=ctx
        )

    async def send_push(
        self, *, user_id: str, notification: dict[str, Any], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(
            '/api/push/send', json={'userId': user_id, 'notification': notification}, ctx=ctx
        )

    async def get_notification_status(
        self, *, notification_id: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._get(f'/api/notifications/{notification_id}/status', ctx=ctx)
