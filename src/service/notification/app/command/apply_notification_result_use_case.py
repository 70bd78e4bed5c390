from typing import Optional

from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import AbstractUnitOfWork, UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError, ErrorCode, UnrecoverableMessageError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.queue_metrics import metrics
from src.platform.types.result import Err, Ok, Result
from src.service.notification.app.dto.notification_message import NotificationResultMessage
from src.service.notification.domain.entity.notification_entity import Notification


class ApplyNotificationResultUseCase:
    """
    Record the counters reported by the senders

    Correlates by notification_id, falling back to external_job_id. Missing
    rows are dropped, terminal rows are left untouched, and counters larger
    than the recipient count are rejected as unrecoverable.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @staticmethod
    async def _lock(
        uow: AbstractUnitOfWork, message: NotificationResultMessage
    ) -> Optional[Notification]:
        notification = None
        if message.notification_id is not None:
            notification = await uow.notification_repo.lock_by_id(
                notification_id=message.notification_id
            )
        if notification is None and message.external_job_id:
            notification = await uow.notification_repo.lock_by_external_job_id(
                external_job_id=message.external_job_id
            )
        return notification

    @Logger.io
    async def apply(
        self, *, message: NotificationResultMessage, ctx: CallContext
    ) -> Result[Notification]:
        async with self.uow_factory(ctx=ctx) as uow:
            notification = await self._lock(uow, message)
            if not notification:
                Logger.base.warning(
                    f'⚠️ [NOTIFY-RESULT] No notification for id={message.notification_id} '
                    f'external={message.external_job_id}, dropping'
                )
                return Err(
                    ErrorCode.NOT_FOUND,
                    'Notification introuvable',
                    details={
                        'notification_id': message.notification_id,
                        'external_job_id': message.external_job_id,
                    },
                )

            if notification.is_terminal:
                Logger.base.info(
                    f'🔁 [NOTIFY-RESULT] Notification {notification.id} already {notification.state}'
                )
                return Ok(notification)

            try:
                notification = notification.apply_result(
                    sent_count=message.sent_count,
                    failed_count=message.failed_count,
                    error=message.error,
                )
            except DomainError as e:
                raise UnrecoverableMessageError(e.message, details=e.details) from e

            notification = await uow.notification_repo.update(notification=notification)
            await uow.commit()

        metrics.notifications_finished.labels(state=notification.state.value).inc()
        Logger.base.info(
            f'📬 [NOTIFY-RESULT] Notification {notification.id}: {notification.sent_count} sent, '
            f'{notification.failed_count} failed -> {notification.state}'
        )
        return Ok(notification)
