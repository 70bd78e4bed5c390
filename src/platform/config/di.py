"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi-sqlalchemy.html

Composition root: every queue client, publisher, use case and consumer is
built here and injected explicitly. HTTP controllers reach the container
through `UseCase.depends` (wired in wire_modules.py); the lifespan and the
standalone consumer process pull the consumers from it.
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.migration.migration_runner import MigrationRunner
from src.platform.database.unit_of_work import AsyncpgUnitOfWork
from src.platform.http_client.notification_gateway_client import NotificationGatewayClient
from src.platform.http_client.payment_client import PaymentClient
from src.platform.http_client.scan_validation_client import ScanValidationClient
from src.platform.message_queue.queue_lua_scripts import QueueLuaScripts
from src.platform.message_queue.redis_queue_client import RedisQueueClient
from src.platform.state.redis_client import RedisClient
from src.service.notification.app.command.apply_notification_result_use_case import (
    ApplyNotificationResultUseCase,
)
from src.service.notification.app.command.notify_generation_completed_use_case import (
    NotifyGenerationCompletedUseCase,
)
from src.service.notification.driven_adapter.message_queue.notification_dispatch_publisher_impl import (
    NotificationDispatchPublisherImpl,
)
from src.service.notification.driving_adapter.mq_consumer.notification_result_mq_consumer import (
    NotificationResultMqConsumer,
)
from src.service.ticket_generation.app.command.mark_generation_job_failed_use_case import (
    MarkGenerationJobFailedUseCase,
)
from src.service.ticket_generation.app.command.reconcile_render_result_use_case import (
    ReconcileRenderResultUseCase,
)
from src.service.ticket_generation.driven_adapter.message_queue.render_request_publisher_impl import (
    RenderRequestPublisherImpl,
)
from src.service.ticket_generation.driven_adapter.notification.generation_notifier_impl import (
    GenerationNotifierImpl,
)
from src.service.ticket_generation.driving_adapter.mq_consumer.render_result_mq_consumer import (
    RenderResultMqConsumer,
)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Infrastructure
    redis_client = providers.Singleton(RedisClient)
    queue_lua_scripts = providers.Singleton(QueueLuaScripts)
    queue_client = providers.Singleton(
        RedisQueueClient,
        redis_client=redis_client,
        scripts=queue_lua_scripts,
        key_prefix=config_service.provided.QUEUE_KEY_PREFIX,
        lease_seconds=config_service.provided.QUEUE_LEASE_SECONDS,
        op_timeout=config_service.provided.QUEUE_OP_TIMEOUT,
    )

    # Unit of work: a class, called per use-case invocation with the call context
    uow_factory = providers.Object(AsyncpgUnitOfWork)

    # Database bootstrap
    migration_runner = providers.Singleton(
        MigrationRunner,
        migrations_dir=config_service.provided.MIGRATIONS_DIR,
        seeds_dir=config_service.provided.SEEDS_DIR,
        lock_id=config_service.provided.ADVISORY_LOCK_ID,
        lock_timeout=config_service.provided.ADVISORY_LOCK_TIMEOUT,
    )

    # Message Queue Publishers
    render_request_publisher = providers.Singleton(
        RenderRequestPublisherImpl, queue_client=queue_client
    )
    notification_dispatch_publisher = providers.Singleton(
        NotificationDispatchPublisherImpl, queue_client=queue_client
    )

    # Notification Service
    notify_generation_completed_use_case = providers.Singleton(
        NotifyGenerationCompletedUseCase,
        uow_factory=uow_factory,
        notification_dispatch_publisher=notification_dispatch_publisher,
    )
    apply_notification_result_use_case = providers.Singleton(
        ApplyNotificationResultUseCase, uow_factory=uow_factory
    )

    # Ticket Generation Service (port into the notification service)
    generation_notifier = providers.Singleton(
        GenerationNotifierImpl, notify_use_case=notify_generation_completed_use_case
    )
    reconcile_render_result_use_case = providers.Singleton(
        ReconcileRenderResultUseCase,
        uow_factory=uow_factory,
        generation_notifier=generation_notifier,
    )
    mark_generation_job_failed_use_case = providers.Singleton(
        MarkGenerationJobFailedUseCase, uow_factory=uow_factory
    )

    # Queue consumers
    render_result_consumer = providers.Singleton(
        RenderResultMqConsumer,
        queue_client=queue_client,
        reconcile_use_case=reconcile_render_result_use_case,
        mark_failed_use_case=mark_generation_job_failed_use_case,
        concurrency=config_service.provided.RENDER_RESULT_CONSUMER_CONCURRENCY,
    )
    notification_result_consumer = providers.Singleton(
        NotificationResultMqConsumer,
        queue_client=queue_client,
        apply_result_use_case=apply_notification_result_use_case,
        concurrency=config_service.provided.NOTIFICATION_RESULT_CONSUMER_CONCURRENCY,
    )

    # Outbound HTTP clients (contracts of the surrounding services)
    notification_gateway_client = providers.Singleton(NotificationGatewayClient)
    scan_validation_client = providers.Singleton(ScanValidationClient)
    payment_client = providers.Singleton(PaymentClient)


container = Container()


def setup() -> None:
    container.config_service()


def cleanup() -> None:
    container.reset_singletons()
