"""
Generation Job Repository Implementation

All queries run on the unit-of-work connection, so `lock_*` row locks live
until the surrounding transaction commits or rolls back.
"""

from typing import Optional

import asyncpg
from uuid_utils import UUID

from src.platform.database.asyncpg_repo import AsyncpgRepo, to_uuid
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.app.interface.i_generation_job_repo import IGenerationJobRepo
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState


JOB_COLUMNS = """
    id, event_id, organizer_id, requested_count, state, progress, attempts,
    last_error, correlation_key, queue_job_ids, event_title, event_date,
    event_location, created_at, started_at, finished_at, updated_at
"""


class GenerationJobRepoImpl(AsyncpgRepo, IGenerationJobRepo):
    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> GenerationJob:
        return GenerationJob(
            id=to_uuid(row['id']),
            event_id=row['event_id'],
            organizer_id=row['organizer_id'],
            requested_count=row['requested_count'],
            correlation_key=to_uuid(row['correlation_key']),
            state=GenerationJobState(row['state']),
            progress=row['progress'],
            attempts=row['attempts'],
            last_error=row['last_error'],
            queue_job_ids=list(row['queue_job_ids'] or []),
            event_title=row['event_title'],
            event_date=row['event_date'],
            event_location=row['event_location'],
            created_at=row['created_at'],
            started_at=row['started_at'],
            finished_at=row['finished_at'],
            updated_at=row['updated_at'],
        )

    @Logger.io
    async def insert(self, *, job: GenerationJob) -> GenerationJob:
        with self._query('insert generation job'):
            row = await self.conn.fetchrow(
                f"""
                INSERT INTO generation_jobs (
                    id, event_id, organizer_id, requested_count, state, progress,
                    attempts, correlation_key, queue_job_ids, event_title,
                    event_date, event_location
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING {JOB_COLUMNS}
                """,
                str(job.id),
                job.event_id,
                job.organizer_id,
                job.requested_count,
                job.state.value,
                job.progress,
                job.attempts,
                str(job.correlation_key),
                job.queue_job_ids,
                job.event_title,
                job.event_date,
                job.event_location,
            )
        return self._row_to_entity(row)

    @Logger.io
    async def update(self, *, job: GenerationJob) -> GenerationJob:
        with self._query('update generation job'):
            row = await self.conn.fetchrow(
                f"""
                UPDATE generation_jobs
                SET state = $2,
                    progress = $3,
                    attempts = $4,
                    last_error = $5,
                    queue_job_ids = $6,
                    started_at = $7,
                    finished_at = $8,
                    updated_at = now()
                WHERE id = $1
                RETURNING {JOB_COLUMNS}
                """,
                str(job.id),
                job.state.value,
                job.progress,
                job.attempts,
                job.last_error,
                job.queue_job_ids,
                job.started_at,
                job.finished_at,
            )
        return self._row_to_entity(row)

    @Logger.io
    async def find_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        with self._query('find generation job'):
            row = await self.conn.fetchrow(
                f'SELECT {JOB_COLUMNS} FROM generation_jobs WHERE id = $1', str(job_id)
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def find_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        with self._query('find generation job by correlation key'):
            row = await self.conn.fetchrow(
                f'SELECT {JOB_COLUMNS} FROM generation_jobs WHERE correlation_key = $1',
                str(correlation_key),
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def lock_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        with self._query('lock generation job'):
            row = await self.conn.fetchrow(
                f'SELECT {JOB_COLUMNS} FROM generation_jobs WHERE id = $1 FOR UPDATE',
                str(job_id),
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def lock_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        with self._query('lock generation job by correlation key'):
            row = await self.conn.fetchrow(
                f"""
                SELECT {JOB_COLUMNS} FROM generation_jobs
                WHERE correlation_key = $1
                FOR UPDATE
                """,
                str(correlation_key),
            )
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def list_by_event(
        self,
        *,
        event_id: int,
        page: int,
        limit: int,
        state: Optional[GenerationJobState] = None,
    ) -> tuple[list[GenerationJob], int]:
        state_value = state.value if state else None
        offset = (page - 1) * limit
        with self._query('list generation jobs'):
            total = await self.conn.fetchval(
                """
                SELECT count(*) FROM generation_jobs
                WHERE event_id = $1 AND ($2::varchar IS NULL OR state = $2)
                """,
                event_id,
                state_value,
            )
            rows = await self.conn.fetch(
                f"""
                SELECT {JOB_COLUMNS} FROM generation_jobs
                WHERE event_id = $1 AND ($2::varchar IS NULL OR state = $2)
                ORDER BY created_at DESC, id DESC
                LIMIT $3 OFFSET $4
                """,
                event_id,
                state_value,
                limit,
                offset,
            )
        return [self._row_to_entity(row) for row in rows], int(total or 0)
