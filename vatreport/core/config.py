"""Configuration management for the VAT report service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="VAT Report Service")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://vatreport:vatreport@db:5432/vatreport")
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    target_tax_scheme: str = Field(default="UNION-OSS")
    allowed_transaction_types: list[str] = Field(default_factory=lambda: ["SALE", "REFUND"])
    invalid_amount_policy: str = Field(default="ZERO_ON_ERROR")
    ingest_statement_chunk_size: int = Field(default=500)
    upload_chunk_size: int = Field(default=64 * 1024)
    upload_spool_max_bytes: int = Field(default=8 * 1024 * 1024)

    aws_region: str = Field(default="eu-west-1")
    s3_endpoint_url: str | None = Field(default=None)
    sqs_endpoint_url: str | None = Field(default=None)
    audit_log_bucket: str = Field(default="vatreport-audit-logs")
    audit_log_prefix: str = Field(default="audit/records")
    audit_log_sample_rate: float = Field(default=1.0)

    upload_bucket: str = Field(default="vatreport-uploads")
    upload_prefix: str = Field(default="uploads/reports")
    upload_queue_url: str = Field(default="https://sqs.eu-west-1.amazonaws.com/000000000000/report-uploads")
    upload_dead_letter_queue_url: str = Field(
        default="https://sqs.eu-west-1.amazonaws.com/000000000000/report-uploads-dead"
    )
    report_ingestor_poll_interval_seconds: int = Field(default=2)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
