"""
Queue Worker - pull loop consumer

One worker drains one queue:
    reserve next -> run handler under a deadline -> record completion or failure

- Concurrency is bounded by a semaphore; a slot is taken before reserving so
  that a worker never leases more jobs than it can run.
- A handler that returns (including an `Err` result) completes the delivery.
  A handler that raises records a failure: the queue retries with backoff or
  dead-letters once attempts are exhausted.
- UnrecoverableMessageError dead-letters immediately.
- request_stop() stops pulling; in-flight handlers finish inside the task group.
"""

import time
from typing import Any, Optional

import anyio
import attrs

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import CustomBaseError, UnrecoverableMessageError
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.i_queue_client import DeadLetterHook, IQueueClient, JobHandler
from src.platform.message_queue.queue_job import FailureOutcome, ReservedJob
from src.platform.metrics.queue_metrics import metrics
from src.platform.types.result import Err, Ok


def _result_payload(result: Any) -> Any:
    if isinstance(result, Ok):
        return {'ok': True, 'value': result.value}
    if isinstance(result, Err):
        return {'ok': False, 'code': result.code, 'message': result.message}
    if attrs.has(type(result)):
        return attrs.asdict(result)
    return result


def _failure_reason(error: Exception) -> str:
    if isinstance(error, CustomBaseError):
        return f'{error.code}: {error.message}'
    return f'{type(error).__name__}: {error}'


class QueueWorker:
    def __init__(
        self,
        *,
        queue_client: IQueueClient,
        queue_name: str,
        handler: JobHandler,
        concurrency: int = 1,
        on_dead_letter: Optional[DeadLetterHook] = None,
        handler_timeout: float = settings.HANDLER_TIMEOUT,
        poll_interval: float = settings.QUEUE_POLL_INTERVAL,
    ) -> None:
        if concurrency < 1:
            raise ValueError('concurrency must be >= 1')

        self.queue_client = queue_client
        self.queue_name = queue_name
        self.handler = handler
        self.concurrency = concurrency
        self.on_dead_letter = on_dead_letter
        self.handler_timeout = handler_timeout
        self.poll_interval = poll_interval

        self._stop_event = anyio.Event()
        self._finished = anyio.Event()
        self.in_flight = 0

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        if not self._stop_event.is_set():
            Logger.base.info(f'🛑 [WORKER] {self.queue_name}: stop requested, draining {self.in_flight} in-flight')
            self._stop_event.set()

    async def wait_drained(self, grace_period: float) -> bool:
        """Wait for run() to return; False when the grace period elapsed first."""
        with anyio.move_on_after(grace_period):
            await self._finished.wait()
            return True
        return False

    async def run(self) -> None:
        Logger.base.info(
            f'🚀 [WORKER] {self.queue_name}: pulling with concurrency={self.concurrency}'
        )
        slots = anyio.Semaphore(self.concurrency)
        try:
            async with anyio.create_task_group() as tg:
                while not self.stopping:
                    await slots.acquire()
                    job = await self._reserve() if not self.stopping else None
                    if job is None:
                        slots.release()
                        await self._idle()
                        continue
                    tg.start_soon(self._process, job, slots)
        finally:
            self._finished.set()
            Logger.base.info(f'✅ [WORKER] {self.queue_name}: stopped')

    async def _reserve(self) -> Optional[ReservedJob]:
        try:
            return await self.queue_client.reserve_next(
                queue_name=self.queue_name,
                ctx=CallContext.background(operation=f'reserve {self.queue_name}'),
            )
        except CustomBaseError as e:
            Logger.base.warning(f'⚠️ [WORKER] {self.queue_name}: reserve failed: {e.message}')
            return None

    async def _idle(self) -> None:
        with anyio.move_on_after(self.poll_interval):
            await self._stop_event.wait()

    async def _process(self, job: ReservedJob, slots: anyio.Semaphore) -> None:
        started = time.monotonic()
        metrics.in_flight.labels(queue=self.queue_name).inc()
        self.in_flight += 1
        try:
            try:
                result = await self._invoke(job)
            except Exception as e:
                await self._record_failure(job, e, started)
            else:
                await self._record_success(job, result, started)
        finally:
            self.in_flight -= 1
            metrics.in_flight.labels(queue=self.queue_name).dec()
            slots.release()

    async def _invoke(self, job: ReservedJob) -> Any:
        operation = f'{self.queue_name}:{job.name}#{job.id}'
        ctx = CallContext.with_timeout(self.handler_timeout, operation=operation)
        with ctx.scope(self.handler_timeout, operation=operation):
            return await self.handler(job, ctx)

    async def _record_success(self, job: ReservedJob, result: Any, started: float) -> None:
        metrics.record_processed(queue=self.queue_name, duration=time.monotonic() - started)
        try:
            recorded = await self.queue_client.mark_completed(
                job=job,
                result=_result_payload(result),
                ctx=CallContext.background(operation=f'complete {self.queue_name}'),
            )
        except CustomBaseError as e:
            # The lease expires and the job is delivered again; handlers are idempotent
            Logger.base.error(
                f'❌ [WORKER] {self.queue_name}: could not record completion of {job.id}: {e.message}'
            )
            return

        if not recorded:
            Logger.base.warning(
                f'⚠️ [WORKER] {self.queue_name}: lease lost before completing {job.id}'
            )

    async def _record_failure(self, job: ReservedJob, error: Exception, started: float) -> None:
        unrecoverable = isinstance(error, UnrecoverableMessageError)
        reason = _failure_reason(error)
        if isinstance(error, CustomBaseError):
            Logger.base.warning(
                f'⚠️ [WORKER] {self.queue_name}: job {job.id} attempt {job.attempt}/{job.opts.attempts} failed: {reason}'
            )
        else:
            Logger.base.opt(exception=error).error(
                f'💥 [WORKER] {self.queue_name}: job {job.id} attempt {job.attempt}/{job.opts.attempts} crashed'
            )

        try:
            outcome = await self.queue_client.mark_failed(
                job=job,
                reason=reason,
                unrecoverable=unrecoverable,
                ctx=CallContext.background(operation=f'fail {self.queue_name}'),
            )
        except CustomBaseError as e:
            Logger.base.error(
                f'❌ [WORKER] {self.queue_name}: could not record failure of {job.id}: {e.message}'
            )
            return

        metrics.record_failure(
            queue=self.queue_name,
            error_type=type(error).__name__,
            dead_lettered=outcome is FailureOutcome.DEAD_LETTERED,
            duration=time.monotonic() - started,
        )

        if outcome is FailureOutcome.LOST:
            Logger.base.warning(f'⚠️ [WORKER] {self.queue_name}: lease lost before failing {job.id}')
        elif outcome is FailureOutcome.DEAD_LETTERED:
            Logger.base.error(f'☠️ [WORKER] {self.queue_name}: job {job.id} dead-lettered: {reason}')
            await self._run_dead_letter_hook(job, reason)

    async def _run_dead_letter_hook(self, job: ReservedJob, reason: str) -> None:
        if self.on_dead_letter is None:
            return
        try:
            await self.on_dead_letter(job, reason)
        except Exception:
            Logger.base.exception(
                f'❌ [WORKER] {self.queue_name}: dead-letter hook failed for job {job.id}'
            )
