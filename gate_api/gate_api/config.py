"""API-layer configuration loaded from environment variables."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(str, Enum):
    """Where schema snapshots are persisted."""

    LOCAL = "local"
    SUPABASE = "supabase"


class APISettings(BaseSettings):
    """FastAPI application settings.

    All values can be overridden via environment variables prefixed with
    ``API_`` (e.g. ``API_LLM_MODEL=gpt-4o``) or through a ``.env`` file in
    the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Origins permitted by the CORS middleware.
    cors_origins: list[str] = ["http://localhost:3000"]

    # Whether CORS responses include credentials (cookies, auth headers).
    cors_allow_credentials: bool = True

    # Structured JSON logging.
    structured_logging: bool = False

    # When set, bearer tokens must carry a valid HS256 signature.
    jwt_secret: SecretStr | None = None

    # Language model (OpenAI-compatible chat completions).
    llm_api_key: SecretStr | None = None
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    llm_top_p: float = 0.9
    llm_timeout: float = 30.0

    # Snapshot storage.
    storage_backend: StorageBackend = StorageBackend.LOCAL
    storage_path: Path = Path(".schemagate/snapshots")
    supabase_url: str | None = None
    supabase_service_key: SecretStr | None = None
    storage_bucket: str = "schemas"
    storage_timeout: float = 10.0

    # Catalog introspection.
    enforce_catalog_only: bool = True
    introspection_statement_timeout: str = "5s"
    default_max_tables: int = 200
    max_tables_limit: int = 2000

    @model_validator(mode="after")
    def _validate_cors_credentials_not_wildcard(self) -> Self:
        """Reject wildcard origins when credentials are enabled.

        Browsers reject ``Access-Control-Allow-Origin: *`` together with
        ``Access-Control-Allow-Credentials: true``; fail at startup instead.
        """
        if self.cors_allow_credentials and "*" in self.cors_origins:
            raise ValueError(
                "Cannot use wildcard origins with credentials. "
                "Specify explicit origins instead of '*' when "
                "cors_allow_credentials=True."
            )
        return self

    @model_validator(mode="after")
    def _validate_supabase_backend(self) -> Self:
        if self.storage_backend is StorageBackend.SUPABASE and not (self.supabase_url and self.supabase_service_key):
            raise ValueError("storage_backend=supabase requires supabase_url and supabase_service_key")
        return self

    def is_llm_configured(self) -> bool:
        return self.llm_api_key is not None and bool(self.llm_api_key.get_secret_value())


def load_api_settings(**overrides: object) -> APISettings:
    """Construct settings from the environment / ``.env`` file."""
    return APISettings(**overrides)  # type: ignore[arg-type]
