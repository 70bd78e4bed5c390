from abc import ABC, abstractmethod

from src.platform.context.call_context import CallContext
from src.service.notification.app.dto.notification_message import NotificationDispatchMessage


class INotificationDispatchPublisher(ABC):
    """Outbound send requests (notification_queue)"""

    @abstractmethod
    async def publish(self, *, message: NotificationDispatchMessage, ctx: CallContext) -> str:
        """
        Enqueue one send request

        Returns:
            The queue job id, stored as the notification's external_job_id
        """
        pass
