"""
Ticket Repository Implementation

Render results are applied with a single UPDATE ... FROM unnest(...) guarded by
`state = 'pending'`: replays and late results for cancelled jobs touch no row,
and RETURNING tells the reconciler exactly how many tickets moved.
"""

from typing import Sequence

import asyncpg
from uuid_utils import UUID

from src.platform.database.asyncpg_repo import AsyncpgRepo, rows_affected, to_uuid
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.app.interface.i_ticket_repo import ITicketRepo
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket
from src.service.ticket_generation.domain.enum.ticket_state import TicketErrorCode, TicketState
from src.service.ticket_generation.domain.value_object.render_result import (
    RenderResultItem,
    TicketChange,
    TicketsSummary,
)


TICKET_COLUMNS = """
    id, job_id, event_id, guest_id, ticket_type_id, ticket_code, qr_payload,
    artifact_url, state, error_code, error_message, guest_name, guest_email,
    guest_phone, price, currency, rendered_at, voided_at, created_at
"""


class TicketRepoImpl(AsyncpgRepo, ITicketRepo):
    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> Ticket:
        return Ticket(
            id=row['id'],
            job_id=to_uuid(row['job_id']),
            event_id=row['event_id'],
            guest_id=row['guest_id'],
            ticket_type_id=row['ticket_type_id'],
            ticket_code=row['ticket_code'],
            qr_payload=row['qr_payload'],
            artifact_url=row['artifact_url'],
            state=TicketState(row['state']),
            error_code=row['error_code'],
            error_message=row['error_message'],
            guest_name=row['guest_name'],
            guest_email=row['guest_email'],
            guest_phone=row['guest_phone'],
            price=row['price'],
            currency=row['currency'],
            rendered_at=row['rendered_at'],
            voided_at=row['voided_at'],
            created_at=row['created_at'],
        )

    @Logger.io
    async def insert_many(self, *, tickets: Sequence[Ticket]) -> None:
        if not tickets:
            return
        with self._query('insert tickets'):
            await self.conn.executemany(
                """
                INSERT INTO tickets (
                    job_id, event_id, guest_id, ticket_type_id, ticket_code, qr_payload,
                    state, guest_name, guest_email, guest_phone, price, currency
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                """,
                [
                    (
                        str(ticket.job_id),
                        ticket.event_id,
                        ticket.guest_id,
                        ticket.ticket_type_id,
                        ticket.ticket_code,
                        ticket.qr_payload,
                        ticket.state.value,
                        ticket.guest_name,
                        ticket.guest_email,
                        ticket.guest_phone,
                        ticket.price,
                        ticket.currency,
                    )
                    for ticket in tickets
                ],
            )

    @Logger.io
    async def apply_results(
        self, *, job_id: UUID, results: Sequence[RenderResultItem]
    ) -> list[TicketChange]:
        # First result per ticket code wins within one message
        unique: dict[str, RenderResultItem] = {}
        for item in results:
            unique.setdefault(item.ticket_code, item)
        if not unique:
            return []

        items = list(unique.values())
        with self._query('apply render results'):
            rows = await self.conn.fetch(
                """
                UPDATE tickets AS t
                SET state = r.state,
                    artifact_url = CASE WHEN r.state = 'rendered' THEN r.artifact_url
                                        ELSE t.artifact_url END,
                    rendered_at = CASE WHEN r.state = 'rendered' THEN now() ELSE NULL END,
                    qr_payload = COALESCE(r.qr_payload, t.qr_payload),
                    error_code = CASE WHEN r.state = 'failed'
                                      THEN COALESCE(r.error_code, $8) ELSE NULL END,
                    error_message = CASE WHEN r.state = 'failed' THEN r.error ELSE NULL END,
                    updated_at = now()
                FROM unnest($2::text[], $3::text[], $4::text[], $5::text[], $6::text[], $7::text[])
                    AS r(ticket_code, state, artifact_url, error, error_code, qr_payload)
                WHERE t.job_id = $1
                  AND t.ticket_code = r.ticket_code
                  AND t.state = 'pending'
                RETURNING t.ticket_code, t.state, t.updated_at
                """,
                str(job_id),
                [item.ticket_code for item in items],
                [item.state.value for item in items],
                [item.artifact_url for item in items],
                [item.error for item in items],
                [item.error_code for item in items],
                [item.qr_payload for item in items],
                TicketErrorCode.RENDER_FAILED.value,
            )

        return [
            TicketChange(
                ticket_code=row['ticket_code'],
                state=TicketState(row['state']),
                changed_at=row['updated_at'],
            )
            for row in rows
        ]

    @Logger.io
    async def summarize_by_job(self, *, job_id: UUID) -> TicketsSummary:
        with self._query('summarize tickets'):
            rows = await self.conn.fetch(
                'SELECT state, count(*) AS n FROM tickets WHERE job_id = $1 GROUP BY state',
                str(job_id),
            )
        counts = {row['state']: row['n'] for row in rows}
        return TicketsSummary(
            rendered=counts.get(TicketState.RENDERED.value, 0),
            pending=counts.get(TicketState.PENDING.value, 0),
            failed=counts.get(TicketState.FAILED.value, 0),
        )

    @Logger.io
    async def count_failed(self, *, job_id: UUID) -> int:
        with self._query('count failed tickets'):
            count = await self.conn.fetchval(
                "SELECT count(*) FROM tickets WHERE job_id = $1 AND state = 'failed'",
                str(job_id),
            )
        return int(count or 0)

    @Logger.io
    async def list_rendered_by_job(self, *, job_id: UUID) -> list[Ticket]:
        with self._query('list rendered tickets'):
            rows = await self.conn.fetch(
                f"""
                SELECT {TICKET_COLUMNS} FROM tickets
                WHERE job_id = $1 AND state = 'rendered'
                ORDER BY id
                """,
                str(job_id),
            )
        return [self._row_to_entity(row) for row in rows]

    @Logger.io
    async def fail_pending_for_cancel(self, *, job_id: UUID) -> int:
        with self._query('fail pending tickets'):
            status = await self.conn.execute(
                """
                UPDATE tickets
                SET state = 'failed', error_code = $2, updated_at = now()
                WHERE job_id = $1 AND state = 'pending'
                """,
                str(job_id),
                TicketErrorCode.CANCELLED.value,
            )
        return rows_affected(status)

    @Logger.io
    async def void_by_job(self, *, job_id: UUID) -> int:
        with self._query('void tickets'):
            status = await self.conn.execute(
                """
                UPDATE tickets
                SET voided_at = now(), updated_at = now()
                WHERE job_id = $1 AND voided_at IS NULL
                """,
                str(job_id),
            )
        return rows_affected(status)
