from datetime import datetime, timezone
from typing import Any, Optional

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.http_client.base_api_client import BaseApiClient


class ScanValidationClient(BaseApiClient):
    """Client for the scan-validation service (entry control, checkpoints, offline sync)"""

    SERVICE_NAME = 'scan-validation'

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('base_url', settings.SCAN_VALIDATION_SERVICE_URL)
        kwargs.setdefault('api_key', settings.SCAN_VALIDATION_SERVICE_API_KEY)
        kwargs.setdefault('timeout', settings.SCAN_VALIDATION_SERVICE_TIMEOUT)
        super().__init__(**kwargs)

    # ========== Scans ==========

    async def validate_ticket(
        self,
        *,
        qr_code_data: str,
        scan_data: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        body = {
            'qrCodeData': qr_code_data,
            'scannedAt': datetime.now(timezone.utc).isoformat(),
            **(scan_data or {}),
        }
        return await self._post('/api/scan/validate', json=body, ctx=ctx)

    async def validate_batch(
        self, *, scans: list[dict[str, Any]], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post('/api/scan/batch', json={'scans': scans}, ctx=ctx)

    async def get_event_scan_stats(
        self,
        *,
        event_id: int,
        filters: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._get(f'/api/scan/event/{event_id}/stats', params=filters, ctx=ctx)

    async def get_ticket_scan_history(
        self, *, ticket_code: str, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._get(f'/api/scan/ticket/{ticket_code}/history', ctx=ctx)

    async def get_realtime_scans(
        self,
        *,
        event_id: int,
        filters: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._get(f'/api/scan/event/{event_id}/realtime', params=filters, ctx=ctx)

    async def generate_scan_report(
        self,
        *,
        event_id: int,
        options: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._post(f'/api/scan/event/{event_id}/report', json=options or {}, ctx=ctx)

    async def check_fraud(self, *, ticket_code: str, ctx: Optional[CallContext] = None) -> dict[str, Any]:
        return await self._get(f'/api/anti-fraud/check/{ticket_code}', ctx=ctx)

    # ========== Offline sync ==========

    async def download_offline_data(
        self,
        *,
        event_id: int,
        options: Optional[dict[str, Any]] = None,
        ctx: Optional[CallContext] = None,
    ) -> dict[str, Any]:
        return await self._post(
            '/api/sync/download', json={'eventId': event_id, **(options or {})}, ctx=ctx
        )

    async def upload_offline_scans(
        self, *, device_id: str, scans: list[dict[str, Any]], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(
            '/api/sync/upload', json={'deviceId': device_id, 'scans': scans}, ctx=ctx
        )

    # ========== Checkpoints ==========

    async def get_event_checkpoints(
        self, *, event_id: int, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._get(f'/api/checkpoints/{event_id}', ctx=ctx)

    async def create_checkpoint(
        self, *, event_id: int, checkpoint: dict[str, Any], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._post(f'/api/checkpoints/{event_id}', json=checkpoint, ctx=ctx)

    async def update_checkpoint(
        self, *, checkpoint_id: int, changes: dict[str, Any], ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._put(f'/api/checkpoints/{checkpoint_id}', json=changes, ctx=ctx)

    async def deactivate_checkpoint(
        self, *, checkpoint_id: int, ctx: Optional[CallContext] = None
    ) -> dict[str, Any]:
        return await self._delete(f'/api/checkpoints/{checkpoint_id}', ctx=ctx)
