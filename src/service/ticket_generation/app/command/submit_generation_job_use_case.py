from typing import List, Self, Sequence

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import CustomBaseError, DomainError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.app.dto.generation_job_dto import (
    GenerationTicketInput,
    SubmitGenerationJobResult,
)
from src.service.ticket_generation.app.dto.render_message import (
    RenderRequestMessage,
    RenderTicketPayload,
)
from src.service.ticket_generation.app.interface.i_render_request_publisher import (
    IRenderRequestPublisher,
)
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket
from src.service.ticket_generation.domain.value_object.batch_plan import TicketBatch, plan_batches


class SubmitGenerationJobUseCase:
    """
    Accept an organizer request and dispatch it to the renderer pool

    Flow (one transaction):
    1. Insert the job (pending) and its tickets (pending)
    2. Split the tickets into batches of at most TICKET_BATCH_SIZE
    3. Enqueue one render request per batch on ticket_generation_queue
    4. Store the queue job ids on the job and commit

    If an enqueue fails the transaction rolls back and the batches already
    enqueued are withdrawn, so no batch references a job that never committed.
    """

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        render_request_publisher: IRenderRequestPublisher,
        batch_size: int = settings.TICKET_BATCH_SIZE,
        max_tickets: int = settings.MAX_TICKETS_PER_JOB,
        default_currency: str = settings.DEFAULT_CURRENCY,
    ) -> None:
        self.uow_factory = uow_factory
        self.render_request_publisher = render_request_publisher
        self.batch_size = batch_size
        self.max_tickets = max_tickets
        self.default_currency = default_currency

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.uow_factory]),
        render_request_publisher: IRenderRequestPublisher = Depends(
            Provide[Container.render_request_publisher]
        ),
    ) -> Self:
        return cls(uow_factory=uow_factory, render_request_publisher=render_request_publisher)

    def _validate(self, tickets: Sequence[GenerationTicketInput]) -> None:
        if not tickets:
            raise DomainError('Au moins un billet est requis')
        if len(tickets) > self.max_tickets:
            raise DomainError(
                f'Trop de billets: {len(tickets)} (maximum {self.max_tickets})',
                details={'max_tickets': self.max_tickets},
            )

        seen: set[tuple[int, int]] = set()
        for ticket in tickets:
            key = (ticket.guest_id, ticket.ticket_type_id)
            if key in seen:
                raise DomainError(
                    'Billet en double pour le même invité et le même type',
                    details={'guest_id': ticket.guest_id, 'ticket_type_id': ticket.ticket_type_id},
                )
            seen.add(key)
            if ticket.price < 0:
                raise DomainError('Le prix doit être positif', details={'guest_id': ticket.guest_id})

    def _build_tickets(
        self, job: GenerationJob, tickets: Sequence[GenerationTicketInput]
    ) -> List[Ticket]:
        return [
            Ticket.create(
                job_id=job.id,
                event_id=job.event_id,
                guest_id=ticket.guest_id,
                ticket_type_id=ticket.ticket_type_id,
                currency=(ticket.currency or self.default_currency).upper(),
                price=ticket.price,
                guest_name=ticket.guest_name,
                guest_email=ticket.guest_email,
                guest_phone=ticket.guest_phone,
            )
            for ticket in tickets
        ]

    @staticmethod
    def _render_request(
        *,
        job: GenerationJob,
        batch: TicketBatch[tuple[Ticket, GenerationTicketInput]],
        batch_count: int,
    ) -> RenderRequestMessage:
        return RenderRequestMessage(
            job_id=job.id,
            correlation_key=job.correlation_key,
            event_id=job.event_id,
            batch_index=batch.index,
            batch_count=batch_count,
            tickets=[
                RenderTicketPayload(
                    ticket_code=ticket.ticket_code,
                    guest_id=ticket.guest_id,
                    ticket_type_id=ticket.ticket_type_id,
                    guest_name=source.guest_name,
                    guest_email=source.guest_email,
                    guest_phone=source.guest_phone,
                    event_title=source.event_title,
                    event_date=source.event_date,
                    event_location=source.event_location,
                    qr_payload=ticket.qr_payload,
                    price=str(ticket.price),
                    currency=ticket.currency,
                )
                for ticket, source in batch.items
            ],
        )

    @Logger.io
    async def submit(
        self,
        *,
        event_id: int,
        organizer_id: int,
        tickets: Sequence[GenerationTicketInput],
        ctx: CallContext,
    ) -> SubmitGenerationJobResult:
        self._validate(tickets)

        first = tickets[0]
        job = GenerationJob.create(
            event_id=event_id,
            organizer_id=organizer_id,
            requested_count=len(tickets),
            event_title=first.event_title,
            event_date=first.event_date,
            event_location=first.event_location,
        )
        ticket_rows = self._build_tickets(job, tickets)
        batches = plan_batches(list(zip(ticket_rows, tickets)), batch_size=self.batch_size)

        queue_job_ids: List[str] = []
        try:
            async with self.uow_factory(ctx=ctx) as uow:
                job = await uow.generation_job_repo.insert(job=job)
                await uow.ticket_repo.insert_many(tickets=ticket_rows)

                for batch in batches:
                    queue_job_id = await self.render_request_publisher.publish(
                        message=self._render_request(
                            job=job, batch=batch, batch_count=len(batches)
                        ),
                        ctx=ctx,
                    )
                    queue_job_ids.append(queue_job_id)

                job = await uow.generation_job_repo.update(
                    job=job.with_queue_job_ids(queue_job_ids)
                )
                await uow.commit()
        except Exception:
            await self._withdraw(queue_job_ids)
            raise

        Logger.base.info(
            f'🎫 [SUBMIT] Job {job.id}: {job.requested_count} tickets in {len(batches)} batches'
        )
        return SubmitGenerationJobResult(
            job_id=job.id, queue_job_ids=queue_job_ids, batch_count=len(batches)
        )

    async def _withdraw(self, queue_job_ids: List[str]) -> None:
        if not queue_job_ids:
            return

        # The request deadline may be spent already; removal gets its own budget
        ctx = CallContext.with_timeout(
            settings.QUEUE_OP_TIMEOUT * len(queue_job_ids), operation='withdraw render batches'
        )
        for queue_job_id in queue_job_ids:
            try:
                await self.render_request_publisher.withdraw(queue_job_id=queue_job_id, ctx=ctx)
            except CustomBaseError as e:
                Logger.base.error(
                    f'❌ [SUBMIT] Could not withdraw render batch {queue_job_id}: {e.message}'
                )
