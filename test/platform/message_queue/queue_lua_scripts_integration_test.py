"""
Integration test for the queue Lua scripts

Runs enqueue / reserve / complete / fail / remove through RedisQueueClient on
fakeredis with Lua enabled, with a hand-driven clock for leases and backoff.
"""

import fakeredis
import pytest

from src.platform.context.call_context import CallContext
from src.platform.message_queue.job_options import BackoffPolicy, JobOptions
from src.platform.message_queue.queue_job import FailureOutcome, QueueJobState
from src.platform.message_queue.queue_lua_scripts import QueueLuaScripts
from src.platform.message_queue.redis_queue_client import RedisQueueClient
from src.platform.state.redis_client import RedisClient


QUEUE = 'ticket_generation_queue'
LEASE_MS = 30_000


class Clock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRedisClient(RedisClient):
    def __init__(self, client: fakeredis.FakeAsyncRedis) -> None:
        super().__init__()
        self._client = client


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def redis() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
async def queue(redis, clock) -> RedisQueueClient:
    client = RedisQueueClient(
        redis_client=FakeRedisClient(redis),
        scripts=QueueLuaScripts(),
        key_prefix='test:',
        lease_seconds=LEASE_MS // 1000,
        clock=clock,
    )
    await client.connect()
    return client


@pytest.fixture
def ctx() -> CallContext:
    return CallContext.background('lua test')


async def _enqueue(queue: RedisQueueClient, ctx: CallContext, name: str, **opts) -> str:
    return await queue.enqueue(
        queue_name=QUEUE, name=name, payload={'name': name}, opts=JobOptions(**opts), ctx=ctx
    )


async def _drain(queue: RedisQueueClient, ctx: CallContext) -> list[str]:
    names = []
    while job := await queue.reserve_next(queue_name=QUEUE, ctx=ctx):
        names.append(job.name)
    return names


# ============================================================================
# enqueue / reserve
# ============================================================================


@pytest.mark.integration
class TestEnqueueAndReserve:
    async def test_lower_priority_value_first_then_fifo(self, queue, ctx):
        # Given
        await _enqueue(queue, ctx, 'late-low', priority=5)
        await _enqueue(queue, ctx, 'first-high', priority=1)
        await _enqueue(queue, ctx, 'second-high', priority=1)
        await _enqueue(queue, ctx, 'urgent', priority=0)

        # When
        names = await _drain(queue, ctx)

        # Then
        assert names == ['urgent', 'first-high', 'second-high', 'late-low']

    async def test_reserved_job_carries_payload_and_options(self, queue, ctx):
        job_id = await _enqueue(queue, ctx, 'render', priority=1, attempts=5)

        job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)

        assert job.id == job_id
        assert job.data == {'name': 'render'}
        assert job.attempts_made == 0
        assert job.opts.attempts == 5
        snapshot = await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)
        assert snapshot.state is QueueJobState.ACTIVE

    async def test_delayed_job_is_held_until_due(self, queue, clock, ctx):
        await _enqueue(queue, ctx, 'later', delay_ms=5_000)

        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None
        clock.advance(5_000)
        assert (await queue.reserve_next(queue_name=QUEUE, ctx=ctx)).name == 'later'

    async def test_empty_queue_reserves_nothing(self, queue, ctx):
        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None


# ============================================================================
# complete / fail
# ============================================================================


@pytest.mark.integration
class TestCompleteAndFail:
    async def test_completion_trims_history_to_retention(self, queue, redis, ctx):
        first_id = await _enqueue(queue, ctx, 'a', remove_on_complete=1)
        second_id = await _enqueue(queue, ctx, 'b', remove_on_complete=1)

        for _ in range(2):
            job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
            assert await queue.mark_completed(job=job, result={'ok': True}, ctx=ctx)

        assert await queue.get(queue_name=QUEUE, queue_job_id=first_id, ctx=ctx) is None
        kept = await queue.get(queue_name=QUEUE, queue_job_id=second_id, ctx=ctx)
        assert kept.state is QueueJobState.COMPLETED
        assert kept.attempts_made == 1
        assert await redis.lrange(queue.keys_for(QUEUE).completed, 0, -1) == [second_id]

    async def test_failure_backs_off_then_dead_letters(self, queue, redis, clock, ctx):
        # Given: Two deliveries with a fixed 1 s backoff
        job_id = await _enqueue(
            queue,
            ctx,
            'flaky',
            attempts=2,
            backoff=BackoffPolicy(base_delay_ms=1_000, cap_ms=1_000),
        )

        # When: The first delivery fails
        job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
        outcome = await queue.mark_failed(job=job, reason='boom', unrecoverable=False, ctx=ctx)

        # Then: It waits for its backoff before the second delivery
        assert outcome is FailureOutcome.RETRYING
        snapshot = await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)
        assert snapshot.state is QueueJobState.DELAYED
        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None
        clock.advance(1_000)
        retry = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
        assert retry.attempt == 2

        # When: The last delivery fails too
        outcome = await queue.mark_failed(job=retry, reason='boom again', unrecoverable=False, ctx=ctx)

        # Then
        assert outcome is FailureOutcome.DEAD_LETTERED
        snapshot = await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)
        assert snapshot.is_dead_lettered
        assert snapshot.failed_reason == 'boom again'
        assert await redis.lrange(queue.keys_for(QUEUE).failed, 0, -1) == [job_id]

    async def test_unrecoverable_failure_dead_letters_at_once(self, queue, ctx):
        job_id = await _enqueue(queue, ctx, 'poison', attempts=5)
        job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)

        outcome = await queue.mark_failed(
            job=job, reason='schema_version 2.0', unrecoverable=True, ctx=ctx
        )

        assert outcome is FailureOutcome.DEAD_LETTERED
        snapshot = await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)
        assert snapshot.state is QueueJobState.FAILED
        assert snapshot.attempts_made == 1

    async def test_dead_letter_history_trims_to_retention(self, queue, ctx):
        first_id = await _enqueue(queue, ctx, 'a', remove_on_fail=1)
        await _enqueue(queue, ctx, 'b', remove_on_fail=1)

        for _ in range(2):
            job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
            await queue.mark_failed(job=job, reason='bad', unrecoverable=True, ctx=ctx)

        assert await queue.get(queue_name=QUEUE, queue_job_id=first_id, ctx=ctx) is None


# ============================================================================
# Leases
# ============================================================================


@pytest.mark.integration
class TestLeases:
    async def test_expired_lease_is_redelivered_and_counted(self, queue, clock, ctx):
        # Given: A worker reserves the job and dies
        job_id = await _enqueue(queue, ctx, 'render', attempts=3)
        await queue.reserve_next(queue_name=QUEUE, ctx=ctx)

        # When: The lease runs out
        clock.advance(LEASE_MS + 1)
        again = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)

        # Then
        assert again.id == job_id
        assert again.attempts_made == 1
        assert await queue.mark_completed(job=again, result=None, ctx=ctx)

    async def test_job_crashing_every_worker_dead_letters(self, queue, clock, ctx):
        job_id = await _enqueue(queue, ctx, 'crasher', attempts=2)

        await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
        clock.advance(LEASE_MS + 1)
        assert (await queue.reserve_next(queue_name=QUEUE, ctx=ctx)).id == job_id
        clock.advance(LEASE_MS + 1)

        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None
        snapshot = await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)
        assert snapshot.state is QueueJobState.FAILED
        assert snapshot.attempts_made == 2
        assert snapshot.failed_reason == 'lease expired: worker stalled'

    async def test_live_lease_is_not_redelivered(self, queue, clock, ctx):
        await _enqueue(queue, ctx, 'slow')
        await queue.reserve_next(queue_name=QUEUE, ctx=ctx)

        clock.advance(LEASE_MS - 1)

        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None


# ============================================================================
# remove
# ============================================================================


@pytest.mark.integration
class TestRemove:
    async def test_removed_job_is_never_delivered(self, queue, ctx):
        job_id = await _enqueue(queue, ctx, 'withdrawn')

        assert await queue.remove(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx) is True

        assert await queue.reserve_next(queue_name=QUEUE, ctx=ctx) is None
        assert await queue.get(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx) is None
        assert await queue.remove(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx) is False

    async def test_outcome_of_a_removed_active_job_is_lost(self, queue, ctx):
        job_id = await _enqueue(queue, ctx, 'cancelled')
        job = await queue.reserve_next(queue_name=QUEUE, ctx=ctx)
        await queue.remove(queue_name=QUEUE, queue_job_id=job_id, ctx=ctx)

        assert await queue.mark_completed(job=job, result=None, ctx=ctx) is False
        outcome = await queue.mark_failed(job=job, reason='late', unrecoverable=False, ctx=ctx)
        assert outcome is FailureOutcome.LOST
