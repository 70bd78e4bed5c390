from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from src.platform.types import UtilsUUID7
from src.service.notification.domain.entity.notification_entity import Notification


class NotificationResponse(BaseModel):
    id: int
    job_id: Optional[UtilsUUID7] = None
    event_id: int
    organizer_id: int
    kind: str
    channels: List[str]
    recipient_count: int
    sent_count: int
    failed_count: int
    state: str
    external_job_id: Optional[str] = None
    template_payload: Dict[str, Any]
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, notification: Notification) -> 'NotificationResponse':
        return cls(
            id=notification.id or 0,
            job_id=notification.job_id,
            event_id=notification.event_id,
            organizer_id=notification.organizer_id,
            kind=notification.kind.value,
            channels=[channel.value for channel in notification.channels],
            recipient_count=notification.recipient_count,
            sent_count=notification.sent_count,
            failed_count=notification.failed_count,
            state=notification.state.value,
            external_job_id=notification.external_job_id,
            template_payload=notification.template_payload,
            last_error=notification.last_error,
            created_at=notification.created_at,
            finished_at=notification.finished_at,
        )
