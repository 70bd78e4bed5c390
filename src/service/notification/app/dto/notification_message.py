"""
Notification queue messages

- NotificationDispatchMessage: notification_queue, carries the persisted notification_id
- NotificationResultMessage: notification_result_queue, counters reported by the senders
"""

from typing import Any, Dict, List, Optional, Self

from pydantic import BaseModel, Field, model_validator

from src.platform.message_queue.message_schema import VersionedMessage
from src.platform.message_queue.queue_name import QueueName
from src.platform.types import UtilsUUID7


class NotificationRecipientPayload(BaseModel):
    ticket_code: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    artifact_url: Optional[str] = None


class NotificationDispatchMessage(VersionedMessage):
    notification_id: int
    job_id: Optional[UtilsUUID7] = None
    event_id: int
    kind: str
    channels: List[str]
    recipients: List[NotificationRecipientPayload]
    template: Dict[str, Any] = Field(default_factory=dict)
    reply_queue: str = QueueName.NOTIFICATION_RESULT.value


class NotificationResultMessage(VersionedMessage):
    notification_id: Optional[int] = None
    external_job_id: Optional[str] = None
    sent_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    error: Optional[str] = None

    @model_validator(mode='after')
    def _require_correlation(self) -> Self:
        if self.notification_id is None and not self.external_job_id:
            raise ValueError('notification_id or external_job_id is required')
        return self
