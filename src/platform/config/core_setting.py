from pathlib import Path
from typing import List

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Event Ticketing Core'
    VERSION: str = '0.1.0'
    DEBUG: bool = False
    SERVICE_NAME: str = 'ticketing-core'
    DEPLOY_ENV: str = 'local_dev'

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    # PostgreSQL
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'event_planner'
    POSTGRES_ADMIN_DB: str = 'postgres'  # Server default database, used to create POSTGRES_DB

    # asyncpg pool
    ASYNCPG_POOL_MIN_SIZE: int = 2
    ASYNCPG_POOL_MAX_SIZE: int = 20
    ASYNCPG_POOL_TIMEOUT: float = 10.0  # Connection acquire timeout (seconds)
    ASYNCPG_POOL_MAX_INACTIVE_LIFETIME: float = 300.0
    ASYNCPG_POOL_COMMAND_TIMEOUT: float = 30.0

    @property
    def DATABASE_URL(self) -> str:
        return self._build_dsn(self.POSTGRES_DB)

    @property
    def ADMIN_DATABASE_URL(self) -> str:
        return self._build_dsn(self.POSTGRES_ADMIN_DB)

    def _build_dsn(self, database: str) -> str:
        password = self.POSTGRES_PASSWORD.get_secret_value()
        return (
            f'postgresql://{self.POSTGRES_USER}:{password}'
            f'@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{database}'
        )

    # Redis (queue backend)
    REDIS_HOST: str = 'localhost'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ''
    REDIS_POOL_MAX_CONNECTIONS: int = 10
    REDIS_POOL_SOCKET_TIMEOUT: int = 5
    REDIS_POOL_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_POOL_HEALTH_CHECK_INTERVAL: int = 30
    QUEUE_KEY_PREFIX: str = 'ticketing:'

    # Per-call deadlines (seconds)
    DB_QUERY_TIMEOUT: float = 5.0
    QUEUE_OP_TIMEOUT: float = 2.0
    REQUEST_TIMEOUT: float = 15.0
    HANDLER_TIMEOUT: float = 60.0
    SHUTDOWN_GRACE_PERIOD: float = 30.0

    # Queue worker
    QUEUE_LEASE_SECONDS: int = 120  # Reserved items return to the queue when the lease expires
    QUEUE_POLL_INTERVAL: float = 0.5
    RENDER_RESULT_CONSUMER_CONCURRENCY: int = 1
    NOTIFICATION_RESULT_CONSUMER_CONCURRENCY: int = 3
    START_CONSUMERS_WITH_APP: bool = True

    # Ticket generation
    TICKET_BATCH_SIZE: int = 100
    MAX_TICKETS_PER_JOB: int = 10000
    DEFAULT_CURRENCY: str = 'EUR'

    # Database bootstrap
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    MIGRATIONS_DIR: Path = _PROJECT_ROOT / 'database' / 'migrations'
    SEEDS_DIR: Path = _PROJECT_ROOT / 'database' / 'seeds'
    ADVISORY_LOCK_ID: int = 12345
    ADVISORY_LOCK_TIMEOUT: float = 60.0

    # Outbound HTTP clients
    NOTIFICATION_SERVICE_URL: str = 'http://localhost:3002'
    NOTIFICATION_SERVICE_API_KEY: SecretStr = SecretStr('')
    NOTIFICATION_SERVICE_TIMEOUT: float = 10.0
    SCAN_VALIDATION_SERVICE_URL: str = 'http://localhost:3005'
    SCAN_VALIDATION_SERVICE_API_KEY: SecretStr = SecretStr('')
    SCAN_VALIDATION_SERVICE_TIMEOUT: float = 10.0
    PAYMENT_SERVICE_URL: str = 'http://localhost:3003'
    PAYMENT_SERVICE_API_KEY: SecretStr = SecretStr('')
    PAYMENT_SERVICE_TIMEOUT: float = 15.0
    HTTP_CLIENT_MAX_RETRIES: int = 2
    HTTP_CLIENT_BACKOFF_BASE: float = 0.5

    @field_validator('TICKET_BATCH_SIZE', 'MAX_TICKETS_PER_JOB')
    @classmethod
    def ensure_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError('must be >= 1')
        return v


settings = Settings()  # type: ignore
