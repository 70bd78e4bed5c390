from abc import ABC, abstractmethod

from src.platform.context.call_context import CallContext
from src.platform.types.result import Result
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket


class IGenerationNotifier(ABC):
    """Hands a completed job over to the notification orchestrator"""

    @abstractmethod
    async def notify_completed(
        self, *, job: GenerationJob, tickets: list[Ticket], ctx: CallContext
    ) -> Result:
        pass
