from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from src.platform.context.call_context import CallContext
from src.platform.message_queue.job_options import JobOptions
from src.platform.message_queue.queue_job import FailureOutcome, QueueJob, ReservedJob


if TYPE_CHECKING:
    from src.platform.message_queue.queue_worker import QueueWorker


JobHandler = Callable[[ReservedJob, CallContext], Awaitable[Any]]
DeadLetterHook = Callable[[ReservedJob, str], Awaitable[None]]


class IQueueClient(ABC):
    """Named durable queues: strict priority, FIFO within a priority, at-least-once delivery"""

    @abstractmethod
    async def enqueue(
        self,
        *,
        queue_name: str,
        name: str,
        payload: dict[str, Any],
        opts: JobOptions,
        ctx: CallContext,
    ) -> str:
        """
        Add a job to the queue

        Returns:
            The queue job id
        """
        pass

    @abstractmethod
    async def get(self, *, queue_name: str, queue_job_id: str, ctx: CallContext) -> Optional[QueueJob]:
        """Look up a job by id; None when unknown or already trimmed from history"""
        pass

    @abstractmethod
    async def remove(self, *, queue_name: str, queue_job_id: str, ctx: CallContext) -> bool:
        """Withdraw a job from every state of the queue"""
        pass

    @abstractmethod
    async def reserve_next(self, *, queue_name: str, ctx: CallContext) -> Optional[ReservedJob]:
        """Lease the next deliverable job, None when the queue is empty"""
        pass

    @abstractmethod
    async def mark_completed(
        self, *, job: ReservedJob, result: Any, ctx: CallContext
    ) -> bool:
        """Record a successful delivery; False when the lease was lost"""
        pass

    @abstractmethod
    async def mark_failed(
        self,
        *,
        job: ReservedJob,
        reason: str,
        unrecoverable: bool,
        ctx: CallContext,
    ) -> FailureOutcome:
        """Record a failed delivery: retry with backoff or dead-letter when attempts are exhausted"""
        pass

    @abstractmethod
    async def ping(self, *, ctx: CallContext) -> bool:
        pass

    def subscribe(
        self,
        *,
        queue_name: str,
        handler: JobHandler,
        concurrency: int = 1,
        on_dead_letter: Optional[DeadLetterHook] = None,
    ) -> QueueWorker:
        """Build a pull-loop worker for the queue; call `await worker.run()` to start it"""
        from src.platform.message_queue.queue_worker import QueueWorker

        return QueueWorker(
            queue_client=self,
            queue_name=queue_name,
            handler=handler,
            concurrency=concurrency,
            on_dead_letter=on_dead_letter,
        )
