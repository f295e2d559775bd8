"""FastAPI dependency injection for settings, collaborators and the caller's identity."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from gate_engine.config import EngineSettings, load_engine_settings

from gate_api.config import APISettings, StorageBackend, load_api_settings
from gate_api.services.llm_client import LLMClient
from gate_api.services.schema_introspector import CatalogIntrospector
from gate_api.services.snapshot_service import SnapshotService
from gate_api.services.snapshot_store import LocalSnapshotStore, SnapshotStore, SupabaseSnapshotStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None
_engine_settings_cache: EngineSettings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


def get_engine_settings() -> EngineSettings:
    """Return the cached :class:`EngineSettings` singleton (review policy)."""
    global _engine_settings_cache  # noqa: PLW0603
    if _engine_settings_cache is None:
        _engine_settings_cache = load_engine_settings()
    return _engine_settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]
EngineSettingsDep = Annotated[EngineSettings, Depends(get_engine_settings)]

# ---------------------------------------------------------------------------
# LLM client
# ---------------------------------------------------------------------------

_llm_client: LLMClient | None = None


def init_llm_client(settings: APISettings) -> LLMClient:
    """Create and cache the global LLM client."""
    global _llm_client  # noqa: PLW0603
    api_key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
    _llm_client = LLMClient(
        api_key=api_key,
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        top_p=settings.llm_top_p,
        timeout=settings.llm_timeout,
    )
    return _llm_client


async def dispose_llm_client() -> None:
    global _llm_client  # noqa: PLW0603
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None


def get_llm_client() -> LLMClient:
    if _llm_client is None:
        raise RuntimeError("LLM client has not been initialised. Ensure init_llm_client() is called during startup.")
    return _llm_client


LLMClientDep = Annotated[LLMClient, Depends(get_llm_client)]

# ---------------------------------------------------------------------------
# Snapshot storage
# ---------------------------------------------------------------------------

_snapshot_store: SnapshotStore | None = None


def build_snapshot_store(settings: APISettings) -> SnapshotStore:
    """Instantiate the storage backend selected by ``storage_backend``."""
    if settings.storage_backend is StorageBackend.SUPABASE:
        assert settings.supabase_url is not None and settings.supabase_service_key is not None
        return SupabaseSnapshotStore(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key.get_secret_value(),
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout,
        )
    return LocalSnapshotStore(settings.storage_path)


def init_snapshot_store(settings: APISettings) -> SnapshotStore:
    global _snapshot_store  # noqa: PLW0603
    _snapshot_store = build_snapshot_store(settings)
    return _snapshot_store


async def dispose_snapshot_store() -> None:
    global _snapshot_store  # noqa: PLW0603
    if _snapshot_store is not None:
        await _snapshot_store.close()
        _snapshot_store = None


def get_snapshot_store() -> SnapshotStore:
    if _snapshot_store is None:
        raise RuntimeError(
            "Snapshot store has not been initialised. Ensure init_snapshot_store() is called during startup."
        )
    return _snapshot_store


SnapshotStoreDep = Annotated[SnapshotStore, Depends(get_snapshot_store)]

# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


def get_introspector(settings: SettingsDep) -> CatalogIntrospector:
    return CatalogIntrospector(
        statement_timeout=settings.introspection_statement_timeout,
        enforce_catalog_only=settings.enforce_catalog_only,
        default_max_tables=settings.default_max_tables,
        max_tables_limit=settings.max_tables_limit,
    )


IntrospectorDep = Annotated[CatalogIntrospector, Depends(get_introspector)]

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def get_owner_id(request: Request) -> str:
    """Extract the owner id set by :class:`AuthenticationMiddleware`."""
    owner_id = getattr(request.state, "owner_id", None)
    if not owner_id:
        raise HTTPException(status_code=401, detail="unauthorized")
    return owner_id


OwnerDep = Annotated[str, Depends(get_owner_id)]


def get_snapshot_service(store: SnapshotStoreDep, owner_id: OwnerDep) -> SnapshotService:
    return SnapshotService(store, owner_id)


SnapshotServiceDep = Annotated[SnapshotService, Depends(get_snapshot_service)]
