"""
Configuration settings for recordplan.

Uses Pydantic Settings to load environment variables for the store backend,
database connection, logging, and dashboard aggregation defaults.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Store
    store_backend: Literal["memory", "postgres"] = Field("memory", alias="STORE_BACKEND")
    store_fixture_path: Optional[str] = Field(None, alias="STORE_FIXTURE_PATH")
    store_timeout_seconds: float = Field(30.0, gt=0, alias="STORE_TIMEOUT_SECONDS")
    stream_batch_size: int = Field(500, gt=0, alias="STREAM_BATCH_SIZE")

    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("recordplan", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(15_000, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")
    documents_table: str = Field("documents", alias="DOCUMENTS_TABLE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Aggregation defaults
    unspecified_label: str = Field("unspecified", min_length=1, alias="UNSPECIFIED_LABEL")
    margin_cost_ratio: float = Field(0.7, ge=0.0, alias="MARGIN_COST_RATIO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
