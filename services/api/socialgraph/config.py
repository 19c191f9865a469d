"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Relational store (MySQL protocol) ──────────────────────────────────
    db_host: str = "mysql"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "social_graph"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    # Full SQLAlchemy URL; overrides the db_* fields when set.
    # e.g. sqlite+aiosqlite:///./social_graph.db for local runs
    database_url: Optional[str] = None

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Identity tokens ────────────────────────────────────────────────────
    secret_key: str = "change-me-dev-secret"
    token_ttl_seconds: int = Field(default=6 * 3600, gt=0)   # 6h

    # ── Observability ──────────────────────────────────────────────────────
    log_level: str = "INFO"
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "social-graph-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
