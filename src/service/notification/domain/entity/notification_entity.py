from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import attrs
from uuid_utils import UUID

from src.platform.exception.exceptions import DomainError, PreconditionFailedError
from src.platform.logging.loguru_io import Logger
from src.service.notification.domain.enum.notification_state import (
    NotificationChannel,
    NotificationKind,
    NotificationState,
)


@attrs.define
class Notification:
    """
    Fan-out request for one completed generation job

    Invariants:
    - sent_count + failed_count <= recipient_count
    - sent / partial / failed are terminal
    """

    event_id: int
    organizer_id: int
    recipient_count: int
    kind: NotificationKind = NotificationKind.TICKET_GENERATION_COMPLETE
    channels: List[NotificationChannel] = attrs.field(
        factory=lambda: [NotificationChannel.EMAIL]
    )
    job_id: Optional[UUID] = None
    sent_count: int = 0
    failed_count: int = 0
    state: NotificationState = NotificationState.PENDING
    external_job_id: Optional[str] = None
    template_payload: Dict[str, Any] = attrs.field(factory=dict)
    last_error: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        event_id: int,
        organizer_id: int,
        recipient_count: int,
        channels: List[NotificationChannel],
        job_id: Optional[UUID] = None,
        template_payload: Optional[Dict[str, Any]] = None,
        kind: NotificationKind = NotificationKind.TICKET_GENERATION_COMPLETE,
    ) -> 'Notification':
        if recipient_count < 0:
            raise DomainError('recipient_count doit être >= 0')
        if not channels:
            raise DomainError('Au moins un canal est requis')

        return cls(
            event_id=event_id,
            organizer_id=organizer_id,
            recipient_count=recipient_count,
            channels=list(channels),
            job_id=job_id,
            kind=kind,
            template_payload=template_payload or {},
        )

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def with_external_job_id(self, external_job_id: str) -> 'Notification':
        return attrs.evolve(self, external_job_id=external_job_id)

    @Logger.io
    def mark_dispatch_failed(self, *, reason: str, now: Optional[datetime] = None) -> 'Notification':
        """The send request never reached notification_queue"""
        if self.is_terminal:
            raise PreconditionFailedError(
                f'Notification {self.id} déjà terminée ({self.state})',
                details={'notification_id': self.id, 'state': self.state.value},
            )

        now = now or datetime.now(timezone.utc)
        return attrs.evolve(
            self,
            state=NotificationState.FAILED,
            last_error=reason,
            finished_at=now,
            updated_at=now,
        )

    @Logger.io
    def apply_result(
        self,
        *,
        sent_count: int,
        failed_count: int,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> 'Notification':
        if self.is_terminal:
            raise PreconditionFailedError(
                f'Notification {self.id} déjà terminée ({self.state})',
                details={'notification_id': self.id, 'state': self.state.value},
            )
        if sent_count < 0 or failed_count < 0:
            raise DomainError('Les compteurs doivent être >= 0')
        if sent_count + failed_count > self.recipient_count:
            raise DomainError(
                f'Compteurs {sent_count}+{failed_count} > {self.recipient_count} destinataires',
                details={
                    'notification_id': self.id,
                    'sent_count': sent_count,
                    'failed_count': failed_count,
                    'recipient_count': self.recipient_count,
                },
            )

        if failed_count == 0:
            state = NotificationState.SENT
        elif sent_count > 0:
            state = NotificationState.PARTIAL
        else:
            state = NotificationState.FAILED

        now = now or datetime.now(timezone.utc)
        return attrs.evolve(
            self,
            sent_count=sent_count,
            failed_count=failed_count,
            state=state,
            last_error=error or self.last_error,
            finished_at=now,
            updated_at=now,
        )
