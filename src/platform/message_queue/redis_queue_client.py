"""
Redis Queue Client

Key layout per queue (prefix = QUEUE_KEY_PREFIX + queue name):
- {prefix}:id         job id counter
- {prefix}:seq        arrival counter (FIFO tie-break within a priority)
- {prefix}:job:{id}   job hash (name, data, opts, state, attempts_made, ...)
- {prefix}:wait       zset scored priority * 1e12 + seq
- {prefix}:delayed    zset scored by due time (ms), retries wait here
- {prefix}:active     zset scored by lease deadline (ms), expired leases are requeued
- {prefix}:completed  list of finished ids, trimmed to remove_on_complete
- {prefix}:failed     dead-letter list, trimmed to remove_on_fail
"""

from collections.abc import Iterator
from contextlib import contextmanager
import time
from typing import Any, Callable, Optional

import attrs
import orjson
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import DependencyUnavailableError
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.job_options import JobOptions
from src.platform.message_queue.queue_job import (
    FailureOutcome,
    QueueJob,
    QueueJobState,
    ReservedJob,
)
from src.platform.message_queue.queue_lua_scripts import QueueLuaScripts
from src.platform.state.redis_client import RedisClient


def _now_ms() -> int:
    return int(time.time() * 1000)


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, '') else None


def _retention(value: Optional[int]) -> int:
    return -1 if value is None else value


@attrs.frozen
class QueueKeys:
    prefix: str

    @property
    def id(self) -> str:
        return f'{self.prefix}:id'

    @property
    def seq(self) -> str:
        return f'{self.prefix}:seq'

    @property
    def job_prefix(self) -> str:
        return f'{self.prefix}:job:'

    @property
    def wait(self) -> str:
        return f'{self.prefix}:wait'

    @property
    def delayed(self) -> str:
        return f'{self.prefix}:delayed'

    @property
    def active(self) -> str:
        return f'{self.prefix}:active'

    @property
    def completed(self) -> str:
        return f'{self.prefix}:completed'

    @property
    def failed(self) -> str:
        return f'{self.prefix}:failed'

    def job(self, job_id: str) -> str:
        return f'{self.job_prefix}{job_id}'


class RedisQueueClient(IQueueClient):
    def __init__(
        self,
        *,
        redis_client: RedisClient,
        scripts: QueueLuaScripts,
        key_prefix: str = settings.QUEUE_KEY_PREFIX,
        lease_seconds: int = settings.QUEUE_LEASE_SECONDS,
        op_timeout: float = settings.QUEUE_OP_TIMEOUT,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.redis_client = redis_client
        self.scripts = scripts
        self.key_prefix = key_prefix
        self.lease_ms = lease_seconds * 1000
        self.op_timeout = op_timeout
        self.clock = clock

    async def connect(self) -> None:
        client = await self.redis_client.initialize()
        self.scripts.initialize(client=client)

    @property
    def _client(self) -> Redis:
        return self.redis_client.get_client()

    def keys_for(self, queue_name: str) -> QueueKeys:
        return QueueKeys(prefix=f'{self.key_prefix}{queue_name}')

    @contextmanager
    def _guard(self, ctx: CallContext, operation: str) -> Iterator[None]:
        try:
            with ctx.scope(self.op_timeout, operation=operation):
                yield
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            raise DependencyUnavailableError(
                f'File de messages indisponible ({operation})'
            ) from e

    @Logger.io
    async def enqueue(
        self,
        *,
        queue_name: str,
        name: str,
        payload: dict[str, Any],
        opts: JobOptions,
        ctx: CallContext,
    ) -> str:
        keys = self.keys_for(queue_name)
        with self._guard(ctx, f'enqueue {queue_name}'):
            job_id = await self.scripts.run(
                'enqueue',
                client=self._client,
                keys=[keys.id, keys.seq, keys.wait, keys.delayed],
                args=[
                    keys.job_prefix,
                    name,
                    orjson.dumps(payload).decode(),
                    orjson.dumps(opts.to_dict()).decode(),
                    opts.priority,
                    opts.attempts,
                    opts.delay_ms,
                    self.clock(),
                    _retention(opts.remove_on_complete),
                    _retention(opts.remove_on_fail),
                ],
            )
        return str(job_id)

    @Logger.io
    async def get(
        self, *, queue_name: str, queue_job_id: str, ctx: CallContext
    ) -> Optional[QueueJob]:
        keys = self.keys_for(queue_name)
        with self._guard(ctx, f'get {queue_name}'):
            raw: dict[str, str] = await self._client.hgetall(keys.job(queue_job_id))
        if not raw:
            return None

        return QueueJob(
            id=raw.get('id', queue_job_id),
            name=raw.get('name', ''),
            state=QueueJobState(raw.get('state', QueueJobState.WAITING)),
            data=orjson.loads(raw.get('data') or '{}'),
            attempts_made=int(raw.get('attempts_made') or 0),
            progress=int(raw.get('progress') or 0),
            failed_reason=raw.get('failed_reason') or None,
            processed_on=_optional_int(raw.get('processed_on')),
            finished_on=_optional_int(raw.get('finished_on')),
        )

    @Logger.io
    async def remove(self, *, queue_name: str, queue_job_id: str, ctx: CallContext) -> bool:
        keys = self.keys_for(queue_name)
        with self._guard(ctx, f'remove {queue_name}'):
            removed = await self.scripts.run(
                'remove',
                client=self._client,
                keys=[keys.wait, keys.delayed, keys.active, keys.completed, keys.failed],
                args=[keys.job_prefix, queue_job_id],
            )
        return bool(int(removed or 0))

    async def reserve_next(self, *, queue_name: str, ctx: CallContext) -> Optional[ReservedJob]:
        keys = self.keys_for(queue_name)
        with self._guard(ctx, f'reserve {queue_name}'):
            reserved = await self.scripts.run(
                'reserve',
                client=self._client,
                keys=[keys.seq, keys.wait, keys.delayed, keys.active, keys.failed],
                args=[keys.job_prefix, self.clock(), self.lease_ms],
            )
        if not reserved:
            return None

        job_id, name, data, attempts_made, opts = reserved
        return ReservedJob(
            id=str(job_id),
            queue_name=queue_name,
            name=name or '',
            data=orjson.loads(data or '{}'),
            attempts_made=int(attempts_made or 0),
            opts=JobOptions.from_dict(orjson.loads(opts or '{}')),
        )

    async def mark_completed(self, *, job: ReservedJob, result: Any, ctx: CallContext) -> bool:
        keys = self.keys_for(job.queue_name)
        with self._guard(ctx, f'complete {job.queue_name}'):
            done = await self.scripts.run(
                'complete',
                client=self._client,
                keys=[keys.active, keys.completed],
                args=[
                    keys.job_prefix,
                    job.id,
                    orjson.dumps(result, default=str).decode(),
                    self.clock(),
                ],
            )
        return bool(int(done or 0))

    async def mark_failed(
        self,
        *,
        job: ReservedJob,
        reason: str,
        unrecoverable: bool,
        ctx: CallContext,
    ) -> FailureOutcome:
        keys = self.keys_for(job.queue_name)
        with self._guard(ctx, f'fail {job.queue_name}'):
            outcome = await self.scripts.run(
                'fail',
                client=self._client,
                keys=[keys.active, keys.delayed, keys.failed],
                args=[
                    keys.job_prefix,
                    job.id,
                    reason,
                    self.clock(),
                    job.opts.backoff.delay_ms(job.attempt),
                    '1' if unrecoverable else '0',
                ],
            )
        return FailureOutcome(outcome)

    async def ping(self, *, ctx: CallContext) -> bool:
        with self._guard(ctx, 'ping'):
            return bool(await self._client.ping())
