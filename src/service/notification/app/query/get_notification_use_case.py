from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.notification.domain.entity.notification_entity import Notification


class GetNotificationUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @classmethod
    @inject
    def depends(
        cls, uow_factory: UnitOfWorkFactory = Depends(Provide[Container.uow_factory])
    ) -> Self:
        return cls(uow_factory=uow_factory)

    @Logger.io
    async def get(self, *, notification_id: int, ctx: CallContext) -> Notification:
        async with self.uow_factory(ctx=ctx) as uow:
            notification = await uow.notification_repo.find_by_id(
                notification_id=notification_id
            )
        if not notification:
            raise NotFoundError(f'Notification {notification_id} introuvable')
        return notification
