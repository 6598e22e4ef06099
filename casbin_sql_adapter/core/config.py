import os
from typing import Literal, Optional

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

# backend name -> async drivers the adapter is tested against
SUPPORTED_DRIVERS = {
    "sqlite": ("aiosqlite",),
    "postgresql": ("asyncpg", "psycopg"),
    "mysql": ("aiomysql", "asyncmy"),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # env_file will be set dynamically in get_settings()
        env_ignore_empty=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal[
        "development", "testing", "staging", "production"
    ] = "development"

    DATABASE_URL: str = "sqlite+aiosqlite:///./casbin.db"
    POOL_SIZE: int = 5
    MAX_OVERFLOW: int = 10
    # Recycle connections after 5 minutes
    POOL_RECYCLE: int = 300
    ECHO_SQL: bool = False

    # Run filtered loads as SQL LIKE queries instead of filtering in memory
    FILTER_PUSHDOWN: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    @field_validator("DATABASE_URL")
    @classmethod
    def _check_async_driver(cls, value: str) -> str:
        try:
            url = make_url(value)
        except ArgumentError as e:
            raise ValueError(f"Invalid DATABASE_URL: {e}") from e
        drivers = SUPPORTED_DRIVERS.get(url.get_backend_name())
        if drivers is None:
            raise ValueError(
                f"Unsupported database backend '{url.get_backend_name()}', "
                f"expected one of {sorted(SUPPORTED_DRIVERS)}"
            )
        if url.get_driver_name() not in drivers:
            raise ValueError(
                f"DATABASE_URL must use an async driver for "
                f"{url.get_backend_name()}: {', '.join(drivers)}"
            )
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def DATABASE_DIALECT(self) -> str:
        return make_url(self.DATABASE_URL).get_backend_name()


def get_settings() -> Settings:
    """Get settings with appropriate env file based on ENVIRONMENT."""
    environment = os.getenv("ENVIRONMENT", "development")

    env_files = {"testing": ".env.test", "development": ".env"}
    env_file = env_files.get(environment, ".env")

    return Settings(_env_file=env_file)


settings = get_settings()
