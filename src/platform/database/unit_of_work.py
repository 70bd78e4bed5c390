"""
Unit of Work Pattern - one asyncpg connection + transaction per unit

Architecture:
- UoW owns the connection lifecycle (acquire from pool, release on exit)
- UoW owns commit/rollback; leaving the block without commit rolls back
- Repositories are bound to the UoW connection and call context
- Use cases coordinate several repositories through one UoW
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

import asyncpg

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.database.db_error_mapping import translate_db_errors
from src.platform.logging.loguru_io import Logger


if TYPE_CHECKING:
    from asyncpg.transaction import Transaction

    from src.service.notification.app.interface.i_notification_repo import INotificationRepo
    from src.service.ticket_generation.app.interface.i_generation_job_repo import (
        IGenerationJobRepo,
    )
    from src.service.ticket_generation.app.interface.i_ticket_repo import ITicketRepo


T = TypeVar('T')


class AbstractUnitOfWork(abc.ABC):
    """
    Abstract Unit of Work

    Usage:
        async with uow_factory(ctx=ctx) as uow:
            job = await uow.generation_job_repo.lock_by_correlation_key(...)
            await uow.commit()
    """

    ctx: CallContext

    generation_job_repo: IGenerationJobRepo
    ticket_repo: ITicketRepo
    notification_repo: INotificationRepo

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.rollback()

    async def commit(self) -> None:
        await self._commit()

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError


UnitOfWorkFactory = Callable[..., AbstractUnitOfWork]


class AsyncpgUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        *,
        ctx: Optional[CallContext] = None,
        pool_getter: Callable[[], Awaitable[asyncpg.Pool]] = get_asyncpg_pool,
    ) -> None:
        self.ctx = ctx or CallContext.background()
        self._pool_getter = pool_getter
        self._pool: Optional[asyncpg.Pool] = None
        self._conn: Optional[asyncpg.Connection] = None
        self._tx: Optional[Transaction] = None
        self._finished = False

    async def __aenter__(self) -> AsyncpgUnitOfWork:
        from src.service.notification.driven_adapter.repo.notification_repo_impl import (
            NotificationRepoImpl,
        )
        from src.service.ticket_generation.driven_adapter.repo.generation_job_repo_impl import (
            GenerationJobRepoImpl,
        )
        from src.service.ticket_generation.driven_adapter.repo.ticket_repo_impl import (
            TicketRepoImpl,
        )

        self._pool = await self._pool_getter()
        timeout = self.ctx.timeout_for(settings.DB_QUERY_TIMEOUT, operation='acquire connection')
        with translate_db_errors('begin transaction'):
            self._conn = await self._pool.acquire(timeout=timeout)
            try:
                self._tx = self._conn.transaction()
                await self._tx.start()
            except BaseException:
                await self._pool.release(self._conn)
                self._conn = None
                raise

        self.generation_job_repo = GenerationJobRepoImpl(conn=self._conn, ctx=self.ctx)
        self.ticket_repo = TicketRepoImpl(conn=self._conn, ctx=self.ctx)
        self.notification_repo = NotificationRepoImpl(conn=self._conn, ctx=self.ctx)
        return self

    async def __aexit__(self, *args: Any) -> None:
        try:
            await super().__aexit__(*args)
        finally:
            if self._pool is not None and self._conn is not None:
                await self._pool.release(self._conn)
                self._conn = None

    async def _commit(self) -> None:
        if self._tx is None or self._finished:
            return
        with translate_db_errors('commit'):
            await self._tx.commit()
        self._finished = True

    async def rollback(self) -> None:
        if self._tx is None or self._finished:
            return
        self._finished = True
        try:
            await self._tx.rollback()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            # Broken connection: the server has already discarded the transaction
            Logger.base.warning(f'⚠️ [UoW] Rollback failed: {e}')


async def with_tx(
    uow_factory: UnitOfWorkFactory,
    fn: Callable[[AbstractUnitOfWork], Awaitable[T]],
    *,
    ctx: CallContext,
) -> T:
    """Run fn inside one transaction: commit on return, rollback on raise"""
    async with uow_factory(ctx=ctx) as uow:
        result = await fn(uow)
        await uow.commit()
        return result
