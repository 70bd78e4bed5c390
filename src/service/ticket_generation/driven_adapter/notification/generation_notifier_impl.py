from typing import List

from src.platform.context.call_context import CallContext
from src.platform.types.result import Result
from src.service.notification.app.command.notify_generation_completed_use_case import (
    NotifyGenerationCompletedUseCase,
)
from src.service.notification.app.dto.notification_dto import (
    NotificationRecipient,
    NotifyGenerationCompletedRequest,
)
from src.service.ticket_generation.app.interface.i_generation_notifier import IGenerationNotifier
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket


class GenerationNotifierImpl(IGenerationNotifier):
    """In-process port from the reconciler to the notification orchestrator"""

    def __init__(self, *, notify_use_case: NotifyGenerationCompletedUseCase) -> None:
        self.notify_use_case = notify_use_case

    async def notify_completed(
        self, *, job: GenerationJob, tickets: List[Ticket], ctx: CallContext
    ) -> Result:
        return await self.notify_use_case.notify(
            request=NotifyGenerationCompletedRequest(
                job_id=job.id,
                event_id=job.event_id,
                organizer_id=job.organizer_id,
                event_title=job.event_title,
                event_date=job.event_date,
                event_location=job.event_location,
                recipients=[
                    NotificationRecipient(
                        ticket_code=ticket.ticket_code,
                        guest_name=ticket.guest_name,
                        guest_email=ticket.guest_email,
                        guest_phone=ticket.guest_phone,
                        artifact_url=ticket.artifact_url,
                    )
                    for ticket in tickets
                ],
            ),
            ctx=ctx,
        )
