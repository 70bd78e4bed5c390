from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.message_schema import decode_message
from src.platform.message_queue.queue_job import ReservedJob
from src.platform.message_queue.queue_name import QueueName
from src.platform.message_queue.queue_worker import QueueWorker
from src.platform.types.result import Result
from src.service.notification.app.command.apply_notification_result_use_case import (
    ApplyNotificationResultUseCase,
)
from src.service.notification.app.dto.notification_message import NotificationResultMessage


class NotificationResultMqConsumer:
    """Pulls notification_result_queue; results for distinct notifications apply concurrently"""

    def __init__(
        self,
        *,
        queue_client: IQueueClient,
        apply_result_use_case: ApplyNotificationResultUseCase,
        concurrency: int = settings.NOTIFICATION_RESULT_CONSUMER_CONCURRENCY,
    ) -> None:
        self.queue_client = queue_client
        self.apply_result_use_case = apply_result_use_case
        self.concurrency = concurrency

    async def handle(self, job: ReservedJob, ctx: CallContext) -> Result:
        message = decode_message(NotificationResultMessage, job.data)
        return await self.apply_result_use_case.apply(message=message, ctx=ctx)

    def build_worker(self) -> QueueWorker:
        return self.queue_client.subscribe(
            queue_name=QueueName.NOTIFICATION_RESULT,
            handler=self.handle,
            concurrency=self.concurrency,
        )
