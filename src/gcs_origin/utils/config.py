from __future__ import annotations

from collections.abc import Mapping
import os

from dotenv import load_dotenv
from pydantic import Field
from pydantic.dataclasses import dataclass

# Environment variable -> Settings field
ENV_VARS: dict[str, str] = {
    "GOOGLE_CLOUD_PROJECT_ID": "project_id",
    "GCS_BUCKET_NAME": "bucket_name",
    "GOOGLE_CLOUD_KEY_FILE": "key_file",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "ENVIRONMENT": "environment",
    "STREAM_CHUNK_SIZE": "chunk_size",
    "METADATA_CACHE_TTL": "metadata_cache_ttl",
    "METADATA_CACHE_SIZE": "metadata_cache_size",
    "SHUTDOWN_GRACE_PERIOD": "shutdown_grace_period",
    "CORS_ORIGINS": "cors_origins",
}


@dataclass
class Settings:
    project_id: str | None = None
    bucket_name: str | None = None
    key_file: str | None = None
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = "info"
    log_format: str = "json"
    environment: str = "production"
    chunk_size: int = Field(default=64 * 1024, gt=0)
    metadata_cache_ttl: float = Field(default=0.0, ge=0)
    metadata_cache_size: int = Field(default=1024, gt=0)
    shutdown_grace_period: float = Field(default=30.0, ge=0)
    cors_origins: str = "*"

    @property
    def debug(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, dotenv: bool = True) -> Settings:
        """Build settings from the process environment.

        Empty values count as unset so ``GCS_BUCKET_NAME=`` behaves like a
        missing bucket.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        values = {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var, "").strip()}
        return cls(**values)
