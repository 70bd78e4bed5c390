from typing import List, Optional

import attrs
from uuid_utils import UUID


@attrs.frozen
class NotificationRecipient:
    ticket_code: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    artifact_url: Optional[str] = None


@attrs.frozen
class NotifyGenerationCompletedRequest:
    job_id: UUID
    event_id: int
    organizer_id: int
    recipients: List[NotificationRecipient]
    event_title: Optional[str] = None
    event_date: Optional[str] = None
    event_location: Optional[str] = None


@attrs.frozen
class NotifyAccepted:
    notification_id: int
    external_job_id: Optional[str]
    already_existed: bool = False
