"""
Notify Generation Completed Use Case

Flow:
1. Transaction: a notification already recorded for the job is returned as is
   (idempotent); otherwise insert it (pending) and commit to obtain its id
2. Enqueue the send request on notification_queue carrying that id
3. Transaction: store the queue job id as external_job_id

The row is committed before the send request exists, so a sender reply can
always be correlated. When the enqueue fails the row is marked failed.

Only called once a generation job has reached `completed`.
"""

from typing import Any, Dict, List

from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io import Logger
from src.platform.types.result import Err, Ok, Result
from src.service.notification.app.dto.notification_dto import (
    NotificationRecipient,
    NotifyAccepted,
    NotifyGenerationCompletedRequest,
)
from src.service.notification.app.dto.notification_message import (
    NotificationDispatchMessage,
    NotificationRecipientPayload,
)
from src.service.notification.app.interface.i_notification_dispatch_publisher import (
    INotificationDispatchPublisher,
)
from src.service.notification.domain.entity.notification_entity import Notification
from src.service.notification.domain.enum.notification_state import NotificationChannel


def select_channels(recipients: List[NotificationRecipient]) -> List[NotificationChannel]:
    channels = [NotificationChannel.EMAIL]
    if any(recipient.guest_phone for recipient in recipients):
        channels.append(NotificationChannel.SMS)
    return channels


def build_template(request: NotifyGenerationCompletedRequest) -> Dict[str, Any]:
    return {
        'job_id': str(request.job_id),
        'event_title': request.event_title,
        'event_date': request.event_date,
        'event_location': request.event_location,
        'ticket_count': len(request.recipients),
    }


class NotifyGenerationCompletedUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        notification_dispatch_publisher: INotificationDispatchPublisher,
    ) -> None:
        self.uow_factory = uow_factory
        self.notification_dispatch_publisher = notification_dispatch_publisher

    @Logger.io
    async def notify(
        self, *, request: NotifyGenerationCompletedRequest, ctx: CallContext
    ) -> Result[NotifyAccepted]:
        try:
            return Ok(await self._notify(request=request, ctx=ctx))
        except CustomBaseError as e:
            return Err(e.code, e.message, details=e.details)

    async def _notify(
        self, *, request: NotifyGenerationCompletedRequest, ctx: CallContext
    ) -> NotifyAccepted:
        async with self.uow_factory(ctx=ctx) as uow:
            existing = await uow.notification_repo.find_by_job_id(job_id=request.job_id)
            if existing:
                Logger.base.info(
                    f'🔁 [NOTIFY] Job {request.job_id} already has notification {existing.id}'
                )
                return NotifyAccepted(
                    notification_id=existing.id,
                    external_job_id=existing.external_job_id,
                    already_existed=True,
                )

            notification = await uow.notification_repo.insert(
                notification=Notification.create(
                    job_id=request.job_id,
                    event_id=request.event_id,
                    organizer_id=request.organizer_id,
                    recipient_count=len(request.recipients),
                    channels=select_channels(request.recipients),
                    template_payload=build_template(request),
                )
            )
            await uow.commit()

        try:
            external_job_id = await self.notification_dispatch_publisher.publish(
                message=self._dispatch_message(request=request, notification=notification),
                ctx=ctx,
            )
        except CustomBaseError as e:
            await self._mark_dispatch_failed(notification=notification, error=e, ctx=ctx)
            raise

        async with self.uow_factory(ctx=ctx) as uow:
            await uow.notification_repo.set_external_job_id(
                notification_id=notification.id, external_job_id=external_job_id
            )
            await uow.commit()

        Logger.base.info(
            f'📨 [NOTIFY] Notification {notification.id} queued for job {request.job_id} '
            f'({len(request.recipients)} recipients, queue job {external_job_id})'
        )
        return NotifyAccepted(notification_id=notification.id, external_job_id=external_job_id)

    @staticmethod
    def _dispatch_message(
        *, request: NotifyGenerationCompletedRequest, notification: Notification
    ) -> NotificationDispatchMessage:
        return NotificationDispatchMessage(
            notification_id=notification.id,
            job_id=request.job_id,
            event_id=request.event_id,
            kind=notification.kind.value,
            channels=[channel.value for channel in notification.channels],
            recipients=[
                NotificationRecipientPayload(
                    ticket_code=recipient.ticket_code,
                    guest_name=recipient.guest_name,
                    guest_email=recipient.guest_email,
                    guest_phone=recipient.guest_phone,
                    artifact_url=recipient.artifact_url,
                )
                for recipient in request.recipients
            ],
            template=notification.template_payload,
        )

    async def _mark_dispatch_failed(
        self, *, notification: Notification, error: CustomBaseError, ctx: CallContext
    ) -> None:
        Logger.base.error(
            f'❌ [NOTIFY] Notification {notification.id} could not be queued: {error.message}'
        )
        async with self.uow_factory(ctx=ctx) as uow:
            await uow.notification_repo.update(
                notification=notification.mark_dispatch_failed(
                    reason=f'{error.code}: {error.message}'
                )
            )
            await uow.commit()
