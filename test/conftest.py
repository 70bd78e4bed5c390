"""
Test Configuration and Fixtures

Unit tests run without PostgreSQL or Redis:
- InMemoryStore + FakeUnitOfWork stand in for asyncpg (snapshot / restore per transaction)
- FakeQueueClient stands in for the Redis queue (priority, FIFO, attempts, dead-letter)

Integration tests (`@pytest.mark.integration`):
- Lua queue scripts run on fakeredis with Lua enabled
- Repositories and the migration store run on a real PostgreSQL test database,
  migrated by MigrationRunner and truncated before each test; skipped when unreachable

Fakes are exposed through fixtures only.
"""

# =============================================================================
# Environment setup MUST happen before any application import: settings are
# read once, at import time
# =============================================================================
import os


def _early_setup_test_environment() -> None:
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    test_db = os.environ.get('TEST_POSTGRES_DB', 'event_planner_test')
    os.environ['POSTGRES_DB'] = test_db if worker_id == 'master' else f'{test_db}_{worker_id}'


_early_setup_test_environment()

from collections.abc import AsyncGenerator
import copy
from datetime import datetime, timezone
import itertools
from typing import Any, Callable, Optional, Sequence

import attrs
import pytest
from uuid_utils import UUID

from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import ConflictError, DependencyUnavailableError
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.job_options import JobOptions
from src.platform.message_queue.queue_job import (
    FailureOutcome,
    QueueJob,
    QueueJobState,
    ReservedJob,
)
from src.service.notification.app.interface.i_notification_repo import INotificationRepo
from src.service.notification.domain.entity.notification_entity import Notification
from src.service.ticket_generation.app.interface.i_generation_job_repo import IGenerationJobRepo
from src.service.ticket_generation.app.interface.i_ticket_repo import ITicketRepo
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState
from src.service.ticket_generation.domain.enum.ticket_state import TicketErrorCode, TicketState
from src.service.ticket_generation.domain.value_object.render_result import (
    RenderResultItem,
    TicketChange,
    TicketsSummary,
)


# =============================================================================
# In-memory job store
# =============================================================================


@attrs.define
class InMemoryStore:
    jobs: dict[str, GenerationJob] = attrs.field(factory=dict)
    tickets: dict[str, Ticket] = attrs.field(factory=dict)
    notifications: dict[int, Notification] = attrs.field(factory=dict)
    next_ticket_id: int = 1
    next_notification_id: int = 1
    commits: int = 0
    committed: dict[str, Any] = attrs.field(factory=dict)

    def snapshot(self) -> dict[str, Any]:
        # Entities are replaced through attrs.evolve, never mutated: shallow copies suffice
        return {
            'jobs': dict(self.jobs),
            'tickets': dict(self.tickets),
            'notifications': dict(self.notifications),
            'next_ticket_id': self.next_ticket_id,
            'next_notification_id': self.next_notification_id,
        }

    def restore(self, state: dict[str, Any]) -> None:
        for key, value in state.items():
            setattr(self, key, value)

    def committed_view(self) -> 'InMemoryStore':
        """What another connection sees: the state as of the last commit"""
        view = InMemoryStore()
        view.restore({key: copy.copy(value) for key, value in self.committed.items()})
        return view

    def tickets_of(self, job_id: UUID) -> list[Ticket]:
        return [ticket for ticket in self.tickets.values() if ticket.job_id == job_id]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeGenerationJobRepo(IGenerationJobRepo):
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def insert(self, *, job: GenerationJob) -> GenerationJob:
        if any(j.correlation_key == job.correlation_key for j in self.store.jobs.values()):
            raise ConflictError('correlation_key')
        self.store.jobs[str(job.id)] = job
        return job

    async def update(self, *, job: GenerationJob) -> GenerationJob:
        job = attrs.evolve(job, updated_at=_now())
        self.store.jobs[str(job.id)] = job
        return job

    async def find_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        return self.store.jobs.get(str(job_id))

    async def find_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        return next(
            (j for j in self.store.jobs.values() if j.correlation_key == correlation_key), None
        )

    async def lock_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        return await self.find_by_id(job_id=job_id)

    async def lock_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        return await self.find_by_correlation_key(correlation_key=correlation_key)

    async def list_by_event(
        self,
        *,
        event_id: int,
        page: int,
        limit: int,
        state: Optional[GenerationJobState] = None,
    ) -> tuple[list[GenerationJob], int]:
        matching = [
            j
            for j in reversed(list(self.store.jobs.values()))
            if j.event_id == event_id and (state is None or j.state is state)
        ]
        start = (page - 1) * limit
        return matching[start : start + limit], len(matching)


class FakeTicketRepo(ITicketRepo):
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def insert_many(self, *, tickets: Sequence[Ticket]) -> None:
        for ticket in tickets:
            live_duplicate = any(
                t.voided_at is None
                and (t.event_id, t.guest_id, t.ticket_type_id)
                == (ticket.event_id, ticket.guest_id, ticket.ticket_type_id)
                for t in self.store.tickets.values()
            )
            if live_duplicate or ticket.ticket_code in self.store.tickets:
                raise ConflictError('uq_tickets_event_guest_type_live')
            self.store.tickets[ticket.ticket_code] = attrs.evolve(
                ticket, id=self.store.next_ticket_id, created_at=_now()
            )
            self.store.next_ticket_id += 1

    async def apply_results(
        self, *, job_id: UUID, results: Sequence[RenderResultItem]
    ) -> list[TicketChange]:
        changes: list[TicketChange] = []
        seen: set[str] = set()
        for item in results:
            if item.ticket_code in seen:
                continue
            seen.add(item.ticket_code)
            ticket = self.store.tickets.get(item.ticket_code)
            if not ticket or ticket.job_id != job_id or ticket.state is not TicketState.PENDING:
                continue

            now = _now()
            if item.state is TicketState.RENDERED:
                ticket = attrs.evolve(
                    ticket,
                    state=TicketState.RENDERED,
                    artifact_url=item.artifact_url,
                    rendered_at=now,
                    qr_payload=item.qr_payload or ticket.qr_payload,
                )
            else:
                ticket = attrs.evolve(
                    ticket,
                    state=TicketState.FAILED,
                    error_code=item.error_code or TicketErrorCode.RENDER_FAILED.value,
                    error_message=item.error,
                    qr_payload=item.qr_payload or ticket.qr_payload,
                )
            self.store.tickets[ticket.ticket_code] = ticket
            changes.append(
                TicketChange(ticket_code=ticket.ticket_code, state=ticket.state, changed_at=now)
            )
        return changes

    async def summarize_by_job(self, *, job_id: UUID) -> TicketsSummary:
        tickets = self.store.tickets_of(job_id)
        return TicketsSummary(
            rendered=sum(t.state is TicketState.RENDERED for t in tickets),
            pending=sum(t.state is TicketState.PENDING for t in tickets),
            failed=sum(t.state is TicketState.FAILED for t in tickets),
        )

    async def count_failed(self, *, job_id: UUID) -> int:
        return sum(t.state is TicketState.FAILED for t in self.store.tickets_of(job_id))

    async def list_rendered_by_job(self, *, job_id: UUID) -> list[Ticket]:
        return sorted(
            (t for t in self.store.tickets_of(job_id) if t.state is TicketState.RENDERED),
            key=lambda t: t.id or 0,
        )

    async def fail_pending_for_cancel(self, *, job_id: UUID) -> int:
        changed = 0
        for ticket in self.store.tickets_of(job_id):
            if ticket.state is TicketState.PENDING:
                self.store.tickets[ticket.ticket_code] = attrs.evolve(
                    ticket, state=TicketState.FAILED, error_code=TicketErrorCode.CANCELLED.value
                )
                changed += 1
        return changed

    async def void_by_job(self, *, job_id: UUID) -> int:
        changed = 0
        for ticket in self.store.tickets_of(job_id):
            if ticket.voided_at is None:
                self.store.tickets[ticket.ticket_code] = attrs.evolve(ticket, voided_at=_now())
                changed += 1
        return changed


class FakeNotificationRepo(INotificationRepo):
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def insert(self, *, notification: Notification) -> Notification:
        if notification.job_id and any(
            n.job_id == notification.job_id for n in self.store.notifications.values()
        ):
            raise ConflictError('notifications_job_id_key')
        notification = attrs.evolve(
            notification, id=self.store.next_notification_id, created_at=_now()
        )
        self.store.notifications[notification.id] = notification
        self.store.next_notification_id += 1
        return notification

    async def set_external_job_id(self, *, notification_id: int, external_job_id: str) -> None:
        notification = self.store.notifications[notification_id]
        self.store.notifications[notification_id] = notification.with_external_job_id(
            external_job_id
        )

    async def find_by_id(self, *, notification_id: int) -> Optional[Notification]:
        return self.store.notifications.get(notification_id)

    async def find_by_job_id(self, *, job_id: UUID) -> Optional[Notification]:
        return next((n for n in self.store.notifications.values() if n.job_id == job_id), None)

    async def lock_by_id(self, *, notification_id: int) -> Optional[Notification]:
        return await self.find_by_id(notification_id=notification_id)

    async def lock_by_external_job_id(self, *, external_job_id: str) -> Optional[Notification]:
        return next(
            (n for n in self.store.notifications.values() if n.external_job_id == external_job_id),
            None,
        )

    async def update(self, *, notification: Notification) -> Notification:
        self.store.notifications[notification.id] = notification
        return notification


class FakeUnitOfWork(AbstractUnitOfWork):
    """Snapshot on enter, restore on rollback: mirrors one database transaction"""

    def __init__(self, store: InMemoryStore, *, ctx: Optional[CallContext] = None) -> None:
        self.store = store
        self.ctx = ctx or CallContext.background()
        self.generation_job_repo = FakeGenerationJobRepo(store)
        self.ticket_repo = FakeTicketRepo(store)
        self.notification_repo = FakeNotificationRepo(store)
        self._snapshot: Optional[dict[str, Any]] = None
        self._finished = False

    async def __aenter__(self) -> 'FakeUnitOfWork':
        self._snapshot = self.store.snapshot()
        return self

    async def _commit(self) -> None:
        self._finished = True
        self.store.commits += 1
        self.store.committed = self.store.snapshot()

    async def rollback(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self._snapshot is not None:
            self.store.restore(self._snapshot)


# =============================================================================
# In-memory queue
# =============================================================================


@attrs.define
class _StoredJob:
    id: str
    queue_name: str
    name: str
    data: dict[str, Any]
    opts: JobOptions
    seq: int
    state: QueueJobState = QueueJobState.WAITING
    attempts_made: int = 0
    failed_reason: Optional[str] = None


class FakeQueueClient(IQueueClient):
    """Priority then FIFO delivery; retries are immediately deliverable"""

    def __init__(self) -> None:
        self.jobs: dict[str, _StoredJob] = {}
        self._ids = itertools.count(1)
        self.unavailable = False
        self.fail_enqueue_after: Optional[int] = None
        self.enqueue_calls = 0
        self.removed: list[str] = []

    def _check(self) -> None:
        if self.unavailable:
            raise DependencyUnavailableError('File de messages indisponible (fake)')

    def messages(self, queue_name: str) -> list[_StoredJob]:
        return [job for job in self.jobs.values() if job.queue_name == queue_name]

    async def enqueue(
        self,
        *,
        queue_name: str,
        name: str,
        payload: dict[str, Any],
        opts: JobOptions,
        ctx: CallContext,
    ) -> str:
        self._check()
        self.enqueue_calls += 1
        if self.fail_enqueue_after is not None and self.enqueue_calls > self.fail_enqueue_after:
            raise DependencyUnavailableError('enqueue refused (fake)')
        job_id = str(next(self._ids))
        self.jobs[job_id] = _StoredJob(
            id=job_id,
            queue_name=queue_name,
            name=name,
            data=copy.deepcopy(payload),
            opts=opts,
            seq=int(job_id),
        )
        return job_id

    async def get(
        self, *, queue_name: str, queue_job_id: str, ctx: CallContext
    ) -> Optional[QueueJob]:
        self._check()
        job = self.jobs.get(queue_job_id)
        if not job or job.queue_name != queue_name:
            return None
        return QueueJob(
            id=job.id,
            name=job.name,
            state=job.state,
            data=job.data,
            attempts_made=job.attempts_made,
            failed_reason=job.failed_reason,
        )

    async def remove(self, *, queue_name: str, queue_job_id: str, ctx: CallContext) -> bool:
        self._check()
        job = self.jobs.pop(queue_job_id, None)
        if job:
            self.removed.append(queue_job_id)
        return job is not None

    async def reserve_next(self, *, queue_name: str, ctx: CallContext) -> Optional[ReservedJob]:
        self._check()
        waiting = [
            job
            for job in self.jobs.values()
            if job.queue_name == queue_name and job.state is QueueJobState.WAITING
        ]
        if not waiting:
            return None
        job = min(waiting, key=lambda j: (j.opts.priority, j.seq))
        job.state = QueueJobState.ACTIVE
        return ReservedJob(
            id=job.id,
            queue_name=job.queue_name,
            name=job.name,
            data=copy.deepcopy(job.data),
            attempts_made=job.attempts_made,
            opts=job.opts,
        )

    async def mark_completed(self, *, job: ReservedJob, result: Any, ctx: CallContext) -> bool:
        stored = self.jobs.get(job.id)
        if not stored or stored.state is not QueueJobState.ACTIVE:
            return False
        stored.state = QueueJobState.COMPLETED
        stored.attempts_made += 1
        return True

    async def mark_failed(
        self, *, job: ReservedJob, reason: str, unrecoverable: bool, ctx: CallContext
    ) -> FailureOutcome:
        stored = self.jobs.get(job.id)
        if not stored or stored.state is not QueueJobState.ACTIVE:
            return FailureOutcome.LOST
        stored.attempts_made += 1
        stored.failed_reason = reason
        if unrecoverable or stored.attempts_made >= stored.opts.attempts:
            stored.state = QueueJobState.FAILED
            return FailureOutcome.DEAD_LETTERED
        stored.state = QueueJobState.WAITING
        return FailureOutcome.RETRYING

    async def ping(self, *, ctx: CallContext) -> bool:
        return not self.unavailable


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store: InMemoryStore) -> Callable[..., FakeUnitOfWork]:
    def factory(*, ctx: Optional[CallContext] = None) -> FakeUnitOfWork:
        return FakeUnitOfWork(store, ctx=ctx)

    return factory


@pytest.fixture
def committed_uow_factory(store: InMemoryStore) -> Callable[..., FakeUnitOfWork]:
    """A concurrent connection: each unit of work starts from the last committed state"""

    def factory(*, ctx: Optional[CallContext] = None) -> FakeUnitOfWork:
        return FakeUnitOfWork(store.committed_view(), ctx=ctx)

    return factory


@pytest.fixture
def queue_client() -> FakeQueueClient:
    return FakeQueueClient()


@pytest.fixture
def ctx() -> CallContext:
    return CallContext.with_timeout(30, operation='test')


# =============================================================================
# PostgreSQL (integration)
# =============================================================================

_database_migrated = False

BUSINESS_TABLES = ('notifications', 'tickets', 'generation_jobs')


async def _migrate_test_database() -> None:
    global _database_migrated
    if _database_migrated:
        return

    from src.platform.database.migration.migration_runner import MigrationRunner

    await MigrationRunner().run()
    _database_migrated = True


@pytest.fixture
async def clean_database() -> AsyncGenerator[None, None]:
    """Migrated test database with empty business tables; skips when PostgreSQL is down"""
    import asyncpg

    from src.platform.config.core_setting import settings
    from src.platform.database.asyncpg_setting import close_asyncpg_pool

    try:
        await _migrate_test_database()
    except DependencyUnavailableError as e:
        pytest.skip(f'PostgreSQL unavailable: {e.message}')

    conn = await asyncpg.connect(settings.DATABASE_URL)
    try:
        await conn.execute(f'TRUNCATE {", ".join(BUSINESS_TABLES)} RESTART IDENTITY CASCADE')
    finally:
        await conn.close()

    yield

    await close_asyncpg_pool()


@pytest.fixture
def pg_uow_factory(clean_database: None) -> Callable[..., AbstractUnitOfWork]:
    from src.platform.database.unit_of_work import AsyncpgUnitOfWork

    def factory(*, ctx: Optional[CallContext] = None) -> AsyncpgUnitOfWork:
        return AsyncpgUnitOfWork(ctx=ctx)

    return factory
