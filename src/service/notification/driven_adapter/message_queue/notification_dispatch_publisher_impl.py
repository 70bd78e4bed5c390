from src.platform.context.call_context import CallContext
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.job_options import BackoffPolicy, JobOptions
from src.platform.message_queue.queue_name import QueueName
from src.service.notification.app.dto.notification_message import NotificationDispatchMessage
from src.service.notification.app.interface.i_notification_dispatch_publisher import (
    INotificationDispatchPublisher,
)


NOTIFICATION_JOB_NAME = 'send_notification'

NOTIFICATION_JOB_OPTIONS = JobOptions(
    priority=1,
    attempts=5,
    backoff=BackoffPolicy(base_delay_ms=3000, cap_ms=24000),
)


class NotificationDispatchPublisherImpl(INotificationDispatchPublisher):
    """Queue adapter for notification_queue"""

    def __init__(
        self,
        *,
        queue_client: IQueueClient,
        queue_name: str = QueueName.NOTIFICATION,
        opts: JobOptions = NOTIFICATION_JOB_OPTIONS,
    ) -> None:
        self.queue_client = queue_client
        self.queue_name = queue_name
        self.opts = opts

    @Logger.io
    async def publish(self, *, message: NotificationDispatchMessage, ctx: CallContext) -> str:
        return await self.queue_client.enqueue(
            queue_name=self.queue_name,
            name=NOTIFICATION_JOB_NAME,
            payload=message.to_payload(),
            opts=self.opts,
            ctx=ctx,
        )
