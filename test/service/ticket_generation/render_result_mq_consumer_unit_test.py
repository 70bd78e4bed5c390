import anyio
import pytest

from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import UnrecoverableMessageError
from src.platform.message_queue.job_options import JobOptions
from src.platform.message_queue.queue_job import QueueJobState, ReservedJob
from src.platform.message_queue.queue_name import QueueName
from src.platform.types.result import Ok
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState
from src.service.ticket_generation.driving_adapter.mq_consumer.render_result_mq_consumer import (
    RenderResultMqConsumer,
)


def _reserved(data: dict) -> ReservedJob:
    return ReservedJob(
        id='1',
        queue_name=QueueName.TICKET_GENERATION_RESULT,
        name='render_result',
        data=data,
        attempts_made=0,
        opts=JobOptions(attempts=3),
    )


@pytest.fixture
def consumer(queue_client, reconcile_use_case, mark_failed_use_case) -> RenderResultMqConsumer:
    return RenderResultMqConsumer(
        queue_client=queue_client,
        reconcile_use_case=reconcile_use_case,
        mark_failed_use_case=mark_failed_use_case,
    )


@pytest.mark.unit
class TestRenderResultMqConsumer:
    async def test_handle_decodes_and_reconciles(
        self, store, consumer, submit_use_case, renderer, ticket_inputs, ctx
    ):
        submitted = await submit_use_case.submit(
            event_id=7, organizer_id=3, tickets=ticket_inputs(1), ctx=ctx
        )
        [reply] = await renderer.render_all()

        result = await consumer.handle(_reserved(reply.to_payload()), CallContext.background())

        assert isinstance(result, Ok)
        assert store.jobs[str(submitted.job_id)].state is GenerationJobState.COMPLETED

    @pytest.mark.parametrize(
        'payload',
        [
            {'correlation_key': '0190a4b1-0000-7000-8000-000000000000', 'results': []},
            {'schema_version': '2.0', 'correlation_key': '0190a4b1-0000-7000-8000-000000000000'},
            {'schema_version': '1.0', 'correlation_key': 'not-a-uuid'},
            {
                'schema_version': '1.0',
                'correlation_key': '0190a4b1-0000-7000-8000-000000000000',
                'results': [{'ticket_code': 'x', 'state': 'lost'}],
            },
        ],
    )
    async def test_unreadable_messages_are_unrecoverable(self, consumer, payload):
        with pytest.raises(UnrecoverableMessageError):
            await consumer.handle(_reserved(payload), CallContext.background())

    async def test_dead_letter_marks_owning_job_failed(
        self, store, consumer, submit_use_case, ticket_inputs, ctx
    ):
        submitted = await submit_use_case.submit(
            event_id=7, organizer_id=3, tickets=ticket_inputs(1), ctx=ctx
        )
        correlation_key = store.jobs[str(submitted.job_id)].correlation_key

        await consumer.on_dead_letter(
            _reserved({'correlation_key': str(correlation_key)}), 'DEADLINE_EXCEEDED: slow db'
        )

        job = store.jobs[str(submitted.job_id)]
        assert job.state is GenerationJobState.FAILED
        assert job.last_error == 'DEADLINE_EXCEEDED: slow db'

    async def test_dead_letter_without_correlation_key_is_logged_only(self, store, consumer):
        await consumer.on_dead_letter(_reserved({'foo': 'bar'}), 'garbage')

        assert store.jobs == {}

    async def test_worker_pulls_result_queue(
        self, store, queue_client, consumer, submit_use_case, renderer, ticket_inputs, ctx
    ):
        # Given: The renderer replied on the result queue
        submitted = await submit_use_case.submit(
            event_id=7, organizer_id=3, tickets=ticket_inputs(3), ctx=ctx
        )
        for reply in await renderer.render_all():
            await queue_client.enqueue(
                queue_name=QueueName.TICKET_GENERATION_RESULT,
                name='render_result',
                payload=reply.to_payload(),
                opts=JobOptions(attempts=3),
                ctx=ctx,
            )
        worker = consumer.build_worker()
        worker.poll_interval = 0.01

        # When
        async with anyio.create_task_group() as tg:
            tg.start_soon(worker.run)
            with anyio.fail_after(5):
                while store.jobs[str(submitted.job_id)].state is not GenerationJobState.COMPLETED:
                    await anyio.sleep(0.01)
            worker.request_stop()

        # Then
        results = queue_client.messages(QueueName.TICKET_GENERATION_RESULT)
        assert {job.state for job in results} == {QueueJobState.COMPLETED}
        assert len(store.notifications) == 1
