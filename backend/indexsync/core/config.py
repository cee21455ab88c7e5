"""Application settings loaded from the environment."""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the index sync service.

    Values are read from environment variables (and a local ``.env`` file when
    present). Optional integrations are disabled by leaving their URL unset.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    PROJECT_NAME: str = "indexsync"
    LOCAL_DEVELOPMENT: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    ADMIN_TOKEN: Optional[str] = None

    # Primary store
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 10
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = None

    # Intent queue
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    # Analytical event store (ClickHouse HTTP interface)
    CLICKHOUSE_URL: Optional[str] = None
    CLICKHOUSE_USER: str = "default"
    CLICKHOUSE_PASSWORD: str = ""
    CLICKHOUSE_DATABASE: str = "default"
    CLICKHOUSE_TIMEOUT_SECONDS: float = 300.0

    # Search engine
    MEILISEARCH_URL: Optional[str] = None
    MEILISEARCH_API_KEY: Optional[str] = None
    MEILISEARCH_TIMEOUT_SECONDS: int = 60

    # Sync engine
    SEARCH_INDEX_WORKER_COUNT: int = 10
    SEARCH_INDEX_MAX_QUEUE_SIZE: int = 20
    SEARCH_INDEX_UPDATE_INTERVAL_SECONDS: int = 0
    SEARCH_INDEX_TASK_TIMEOUT_MS: int = 600_000

    # Retry policy for transient store errors
    STORE_RETRY_MAX_ATTEMPTS: int = 3
    STORE_RETRY_BASE_SECONDS: float = 1.0
    STORE_RETRY_MAX_SECONDS: float = 30.0

    @model_validator(mode="after")
    def assemble_db_connection(self) -> "Settings":
        """Build the SQLAlchemy DSN from the postgres settings when not given."""
        if not self.SQLALCHEMY_ASYNC_DATABASE_URI:
            self.SQLALCHEMY_ASYNC_DATABASE_URI = (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        if self.STORE_RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("STORE_RETRY_MAX_ATTEMPTS must be at least 1")
        return self

    @property
    def postgres_dsn(self) -> str:
        """DSN for direct asyncpg connections."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
