from typing import Optional

from redis.asyncio import ConnectionPool as AsyncConnectionPool, Redis as AsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import DependencyUnavailableError
from src.platform.logging.loguru_io import Logger


class RedisClient:
    """
    Async Redis client with a bounded connection pool (queue backend).

    Usage:
        await redis_client.initialize()  # In startup
        client = redis_client.get_client()  # In adapters
    """

    def __init__(self) -> None:
        self._client: Optional[AsyncRedis] = None

    async def initialize(self) -> AsyncRedis:
        """Initialize connection pool (idempotent)"""
        if self._client is not None:
            return self._client

        pool = AsyncConnectionPool.from_url(
            f'redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}',
            password=settings.REDIS_PASSWORD or None,
            decode_responses=True,
            max_connections=settings.REDIS_POOL_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_POOL_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_POOL_SOCKET_CONNECT_TIMEOUT,
            socket_keepalive=True,
            health_check_interval=settings.REDIS_POOL_HEALTH_CHECK_INTERVAL,
        )
        client = AsyncRedis.from_pool(pool)
        try:
            await client.ping()  # Fail-fast
        except (RedisConnectionError, OSError) as e:
            await client.aclose()
            raise DependencyUnavailableError(f'Redis injoignable: {e}') from e

        Logger.base.info(
            f'📡 [Redis] Connected {settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB} '
            f'(pool max={settings.REDIS_POOL_MAX_CONNECTIONS})'
        )
        self._client = client
        return client

    def get_client(self) -> AsyncRedis:
        if self._client is None:
            raise RuntimeError(
                'Redis client not initialized. Call await redis_client.initialize() during startup.'
            )
        return self._client

    async def disconnect(self) -> None:
        """Close connection pool"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
