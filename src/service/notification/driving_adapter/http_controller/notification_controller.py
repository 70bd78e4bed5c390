from fastapi import APIRouter, Depends

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.logging.loguru_io import Logger
from src.service.notification.app.query.get_notification_use_case import GetNotificationUseCase
from src.service.notification.driving_adapter.http_controller.schema.notification_schema import (
    NotificationResponse,
)


router = APIRouter()


@router.get('/notifications/{notification_id}')
@Logger.io
async def get_notification(
    notification_id: int,
    use_case: GetNotificationUseCase = Depends(GetNotificationUseCase.depends),
) -> NotificationResponse:
    notification = await use_case.get(
        notification_id=notification_id,
        ctx=CallContext.with_timeout(settings.REQUEST_TIMEOUT, operation='get notification'),
    )
    return NotificationResponse.from_entity(notification)
