from decimal import Decimal
from typing import Callable, Collection, List, Optional

import pytest

from src.platform.context.call_context import CallContext
from src.platform.message_queue.queue_name import QueueName
from src.service.notification.app.command.notify_generation_completed_use_case import (
    NotifyGenerationCompletedUseCase,
)
from src.service.notification.driven_adapter.message_queue.notification_dispatch_publisher_impl import (
    NotificationDispatchPublisherImpl,
)
from src.service.ticket_generation.app.command.cancel_generation_job_use_case import (
    CancelGenerationJobUseCase,
)
from src.service.ticket_generation.app.command.mark_generation_job_failed_use_case import (
    MarkGenerationJobFailedUseCase,
)
from src.service.ticket_generation.app.command.reconcile_render_result_use_case import (
    ReconcileRenderResultUseCase,
)
from src.service.ticket_generation.app.command.submit_generation_job_use_case import (
    SubmitGenerationJobUseCase,
)
from src.service.ticket_generation.app.dto.generation_job_dto import GenerationTicketInput
from src.service.ticket_generation.app.dto.render_message import (
    RenderRequestMessage,
    RenderResultEntry,
    RenderResultMessage,
)
from src.service.ticket_generation.driven_adapter.message_queue.render_request_publisher_impl import (
    RenderRequestPublisherImpl,
)
from src.service.ticket_generation.driven_adapter.notification.generation_notifier_impl import (
    GenerationNotifierImpl,
)


class FakeRenderer:
    """Drains ticket_generation_queue the way the renderer pool would and builds the replies"""

    def __init__(self, queue_client) -> None:
        self.queue_client = queue_client

    async def render_all(
        self,
        *,
        fail_codes: Collection[str] = (),
        qr_override: Optional[str] = None,
    ) -> List[RenderResultMessage]:
        ctx = CallContext.background()
        replies: List[RenderResultMessage] = []
        while job := await self.queue_client.reserve_next(
            queue_name=QueueName.TICKET_GENERATION, ctx=ctx
        ):
            request = RenderRequestMessage.model_validate(job.data)
            results = [
                RenderResultEntry(
                    ticket_code=ticket.ticket_code,
                    state='failed',
                    error='template missing',
                    error_code='template_error',
                )
                if ticket.ticket_code in fail_codes
                else RenderResultEntry(
                    ticket_code=ticket.ticket_code,
                    state='rendered',
                    artifact_url=f'https://cdn.example.com/tickets/{ticket.ticket_code}.pdf',
                    qr_payload=qr_override,
                )
                for ticket in request.tickets
            ]
            await self.queue_client.mark_completed(job=job, result=None, ctx=ctx)
            replies.append(
                RenderResultMessage(
                    correlation_key=request.correlation_key,
                    batch_index=request.batch_index,
                    results=results,
                )
            )
        return replies


@pytest.fixture
def ticket_inputs() -> Callable[..., List[GenerationTicketInput]]:
    def build(
        count: int, *, first_guest_id: int = 1, phone: bool = False
    ) -> List[GenerationTicketInput]:
        return [
            GenerationTicketInput(
                guest_id=guest_id,
                ticket_type_id=1,
                guest_name=f'Invité {guest_id}',
                guest_email=f'guest{guest_id}@example.com',
                guest_phone='+33600000000' if phone else None,
                event_title='Gala de printemps',
                event_date='2026-05-21T20:00:00+02:00',
                event_location='Salle Pleyel, Paris',
                price=Decimal('25.00'),
            )
            for guest_id in range(first_guest_id, first_guest_id + count)
        ]

    return build


@pytest.fixture
def render_request_publisher(queue_client) -> RenderRequestPublisherImpl:
    return RenderRequestPublisherImpl(queue_client=queue_client)


@pytest.fixture
def submit_use_case(uow_factory, render_request_publisher) -> SubmitGenerationJobUseCase:
    return SubmitGenerationJobUseCase(
        uow_factory=uow_factory,
        render_request_publisher=render_request_publisher,
        batch_size=2,
        max_tickets=10,
        default_currency='eur',
    )


@pytest.fixture
def notify_use_case(uow_factory, queue_client) -> NotifyGenerationCompletedUseCase:
    return NotifyGenerationCompletedUseCase(
        uow_factory=uow_factory,
        notification_dispatch_publisher=NotificationDispatchPublisherImpl(queue_client=queue_client),
    )


@pytest.fixture
def reconcile_use_case(uow_factory, notify_use_case) -> ReconcileRenderResultUseCase:
    return ReconcileRenderResultUseCase(
        uow_factory=uow_factory,
        generation_notifier=GenerationNotifierImpl(notify_use_case=notify_use_case),
    )


@pytest.fixture
def cancel_use_case(uow_factory) -> CancelGenerationJobUseCase:
    return CancelGenerationJobUseCase(uow_factory=uow_factory)


@pytest.fixture
def mark_failed_use_case(uow_factory) -> MarkGenerationJobFailedUseCase:
    return MarkGenerationJobFailedUseCase(uow_factory=uow_factory)


@pytest.fixture
def renderer(queue_client) -> FakeRenderer:
    return FakeRenderer(queue_client)
