from typing import Optional

import asyncpg
from uuid_utils import UUID

from src.platform.database.asyncpg_repo import AsyncpgRepo, to_uuid
from src.platform.logging.loguru_io import Logger
from src.service.notification.app.interface.i_notification_repo import INotificationRepo
from src.service.notification.domain.entity.notification_entity import Notification
from src.service.notification.domain.enum.notification_state import (
    NotificationChannel,
    NotificationKind,
    NotificationState,
)


NOTIFICATION_COLUMNS = """
    id, job_id, event_id, organizer_id, kind, channels, recipient_count,
    sent_count, failed_count, state, external_job_id, template_payload,
    last_error, created_at, updated_at, finished_at
"""


class NotificationRepoImpl(AsyncpgRepo, INotificationRepo):
    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> Notification:
        return Notification(
            id=row['id'],
            job_id=to_uuid(row['job_id']) if row['job_id'] else None,
            event_id=row['event_id'],
            organizer_id=row['organizer_id'],
            kind=NotificationKind(row['kind']),
            channels=[NotificationChannel(channel) for channel in row['channels'] or []],
            recipient_count=row['recipient_count'],
            sent_count=row['sent_count'],
            failed_count=row['failed_count'],
            state=NotificationState(row['state']),
            external_job_id=row['external_job_id'],
            template_payload=row['template_payload'] or {},
            last_error=row['last_error'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
            finished_at=row['finished_at'],
        )

    @Logger.io
    async def insert(self, *, notification: Notification) -> Notification:
        with self._query('insert notification'):
            row = await self.conn.fetchrow(
                f"""
                INSERT INTO notifications (
                    job_id, event_id, organizer_id, kind, channels, recipient_count,
                    state, template_payload
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING {NOTIFICATION_COLUMNS}
                """,
                str(notification.job_id) if notification.job_id else None,
                notification.event_id,
                notification.organizer_id,
                notification.kind.value,
                [channel.value for channel in notification.channels],
                notification.recipient_count,
                notification.state.value,
                notification.template_payload,
            )
        return self._row_to_entity(row)

    @Logger.io
    async def set_external_job_id(self, *, notification_id: int, external_job_id: str) -> None:
        with self._query('store notification external job id'):
            await self.conn.execute(
                """
                UPDATE notifications
                SET external_job_id = $2, updated_at = now()
                WHERE id = $1
                """,
                notification_id,
                external_job_id,
            )

    @Logger.io
    async def find_by_id(self, *, notification_id: int) -> Optional[Notification]:
        with self._query('find notification'):
            row = await self.conn.fetchrow(
                f'SELECT {NOTIFICATION_COLUMNS} FROM notifications WHERE id = $1',
                notification_id,
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def find_by_job_id(self, *, job_id: UUID) -> Optional[Notification]:
        with self._query('find notification by job'):
            row = await self.conn.fetchrow(
                f'SELECT {NOTIFICATION_COLUMNS} FROM notifications WHERE job_id = $1',
                str(job_id),
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def lock_by_id(self, *, notification_id: int) -> Optional[Notification]:
        with self._query('lock notification'):
            row = await self.conn.fetchrow(
                f'SELECT {NOTIFICATION_COLUMNS} FROM notifications WHERE id = $1 FOR UPDATE',
                notification_id,
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def lock_by_external_job_id(self, *, external_job_id: str) -> Optional[Notification]:
        with self._query('lock notification by external job id'):
            row = await self.conn.fetchrow(
                f"""
                SELECT {NOTIFICATION_COLUMNS} FROM notifications
                WHERE external_job_id = $1
                FOR UPDATE
                """,
                external_job_id,
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def update(self, *, notification: Notification) -> Notification:
        with self._query('update notification'):
            row = await self.conn.fetchrow(
                f"""
                UPDATE notifications
                SET sent_count = $2,
                    failed_count = $3,
                    state = $4,
                    last_error = $5,
                    finished_at = $6,
                    updated_at = now()
                WHERE id = $1
                RETURNING {NOTIFICATION_COLUMNS}
                """,
                notification.id,
                notification.sent_count,
                notification.failed_count,
                notification.state.value,
                notification.last_error,
                notification.finished_at,
            )
        return self._row_to_entity(row)
