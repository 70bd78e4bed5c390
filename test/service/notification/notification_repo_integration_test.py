"""
Integration test for the notification repository (PostgreSQL)
"""

import pytest

from src.platform.database.unit_of_work import with_tx
from src.platform.exception.exceptions import ConflictError, InternalError
from src.service.notification.domain.entity.notification_entity import Notification
from src.service.notification.domain.enum.notification_state import (
    NotificationChannel,
    NotificationState,
)
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob


async def _job_id(uow_factory, ctx):
    job = GenerationJob.create(event_id=7, organizer_id=3, requested_count=1)

    async def insert(uow):
        return await uow.generation_job_repo.insert(job=job)

    return (await with_tx(uow_factory, insert, ctx=ctx)).id


def _notification(job_id=None, recipients: int = 3) -> Notification:
    return Notification.create(
        job_id=job_id,
        event_id=7,
        organizer_id=3,
        recipient_count=recipients,
        channels=[NotificationChannel.EMAIL, NotificationChannel.PUSH],
        template_payload={'event_title': 'Gala de printemps', 'ticket_count': recipients},
    )


async def _insert(uow_factory, ctx, notification: Notification) -> Notification:
    async def insert(uow):
        return await uow.notification_repo.insert(notification=notification)

    return await with_tx(uow_factory, insert, ctx=ctx)


@pytest.mark.integration
class TestNotificationRepo:
    async def test_insert_round_trips_channels_and_template(self, pg_uow_factory, ctx):
        job_id = await _job_id(pg_uow_factory, ctx)

        inserted = await _insert(pg_uow_factory, ctx, _notification(job_id))

        async def read(uow):
            return await uow.notification_repo.find_by_job_id(job_id=job_id)

        found = await with_tx(pg_uow_factory, read, ctx=ctx)
        assert found.id == inserted.id
        assert found.state is NotificationState.PENDING
        assert found.channels == [NotificationChannel.EMAIL, NotificationChannel.PUSH]
        assert found.template_payload == {'event_title': 'Gala de printemps', 'ticket_count': 3}

    async def test_one_notification_per_job(self, pg_uow_factory, ctx):
        job_id = await _job_id(pg_uow_factory, ctx)
        await _insert(pg_uow_factory, ctx, _notification(job_id))

        with pytest.raises(ConflictError):
            await _insert(pg_uow_factory, ctx, _notification(job_id))

    async def test_external_job_id_correlates(self, pg_uow_factory, ctx):
        inserted = await _insert(pg_uow_factory, ctx, _notification())

        async def store_id(uow):
            await uow.notification_repo.set_external_job_id(
                notification_id=inserted.id, external_job_id='42'
            )

        async def lock(uow):
            return await uow.notification_repo.lock_by_external_job_id(external_job_id='42')

        await with_tx(pg_uow_factory, store_id, ctx=ctx)

        assert (await with_tx(pg_uow_factory, lock, ctx=ctx)).id == inserted.id

    async def test_counters_are_persisted_and_bounded(self, pg_uow_factory, ctx):
        inserted = await _insert(pg_uow_factory, ctx, _notification(recipients=3))

        async def apply(uow):
            locked = await uow.notification_repo.lock_by_id(notification_id=inserted.id)
            return await uow.notification_repo.update(
                notification=locked.apply_result(sent_count=2, failed_count=1, error='bounce')
            )

        updated = await with_tx(pg_uow_factory, apply, ctx=ctx)
        assert updated.state is NotificationState.PARTIAL
        assert (updated.sent_count, updated.failed_count) == (2, 1)
        assert updated.finished_at is not None

        async def overflow(uow):
            await uow.notification_repo.update(
                notification=Notification(
                    id=inserted.id,
                    event_id=7,
                    organizer_id=3,
                    recipient_count=3,
                    sent_count=3,
                    failed_count=1,
                )
            )

        with pytest.raises(InternalError) as exc_info:
            await with_tx(pg_uow_factory, overflow, ctx=ctx)
        assert exc_info.value.details['constraint'] == 'ck_notifications_counters'

    async def test_uncommitted_row_is_invisible_to_other_connections(self, pg_uow_factory, ctx):
        # Given: A notification inserted but not yet committed
        async with pg_uow_factory(ctx=ctx) as writer:
            pending = await writer.notification_repo.insert(notification=_notification())

            # When: Another connection looks for it
            async def lookup(uow):
                return await uow.notification_repo.find_by_id(notification_id=pending.id)

            before_commit = await with_tx(pg_uow_factory, lookup, ctx=ctx)
            await writer.commit()

        # Then
        assert before_commit is None
        assert (await with_tx(pg_uow_factory, lookup, ctx=ctx)).id == pending.id
