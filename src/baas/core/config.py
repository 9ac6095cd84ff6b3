import re
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "BaaS Entity Engine"
    app_env: str = "development"  # development, testing, production
    debug: bool = False

    # Database
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Physical tables
    identifier_max_length: int = 63  # PostgreSQL limit; 32 for engines with short identifiers
    table_prefix: str = "baas_"

    # Entity listing
    list_default_limit: int = 20
    list_max_limit: int = 100

    # Password fields
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 1

    @field_validator("identifier_max_length")
    @classmethod
    def validate_identifier_max_length(cls, v: int) -> int:
        if not 32 <= v <= 63:
            raise ValueError("IDENTIFIER_MAX_LENGTH must be between 32 and 63")
        return v

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        """Prefix must itself be a safe identifier fragment ending in an underscore."""
        if not re.fullmatch(r"[a-z][a-z0-9]*_", v):
            raise ValueError("TABLE_PREFIX must match ^[a-z][a-z0-9]*_$ (e.g. 'baas_')")
        return v

    @field_validator("list_max_limit")
    @classmethod
    def validate_list_max_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("LIST_MAX_LIMIT must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
