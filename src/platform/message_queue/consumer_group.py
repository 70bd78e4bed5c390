from typing import Sequence

import anyio

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.queue_worker import QueueWorker


class ConsumerGroup:
    """
    Runs a set of queue workers side by side and drains them together

    Usage:
        async with anyio.create_task_group() as tg:
            tg.start_soon(group.run)
            ...
            drained = await group.drain()
    """

    def __init__(
        self,
        workers: Sequence[QueueWorker],
        *,
        grace_period: float = settings.SHUTDOWN_GRACE_PERIOD,
    ) -> None:
        self.workers = list(workers)
        self.grace_period = grace_period

    async def run(self) -> None:
        async with anyio.create_task_group() as tg:
            for worker in self.workers:
                tg.start_soon(worker.run)

    def request_stop(self) -> None:
        for worker in self.workers:
            worker.request_stop()

    async def drain(self) -> bool:
        """Stop pulling and wait for in-flight handlers; False when the grace period ran out."""
        self.request_stop()
        drained = True
        with anyio.move_on_after(self.grace_period):
            for worker in self.workers:
                drained = await worker.wait_drained(self.grace_period) and drained
            Logger.base.info('✅ [CONSUMERS] All workers drained')
            return drained

        in_flight = sum(worker.in_flight for worker in self.workers)
        Logger.base.error(
            f'⏱️ [CONSUMERS] Drain exceeded {self.grace_period:.0f}s with {in_flight} handlers in flight'
        )
        return False
