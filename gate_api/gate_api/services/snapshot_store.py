"""Persistence backends for schema snapshot documents.

Documents live under ``<owner>/<name>.json``.  Two backends are provided:

* :class:`LocalSnapshotStore` -- a directory tree on local disk, recency
  taken from file modification times.  Blocking file I/O runs in a worker
  thread via :func:`asyncio.to_thread`.
* :class:`SupabaseSnapshotStore` -- the Supabase Storage REST API over
  ``httpx``, authenticated with a service key.

Both raise :class:`StorageError` for backend failures and return ``None``
from :meth:`get` when a document does not exist.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import httpx

from gate_engine.errors import InputError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")
_OWNER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,127}$")
_SUFFIX = ".json"


class StorageError(Exception):
    """The storage backend failed to complete an operation."""


def validate_snapshot_name(name: str) -> str:
    """Return *name* if it is a safe snapshot name.

    Raises
    ------
    InputError
        If the name is empty, too long, contains characters outside
        ``[A-Za-z0-9_.-]`` or contains ``..``.
    """
    if not isinstance(name, str) or not _NAME_RE.match(name) or ".." in name:
        raise InputError(f"Invalid snapshot name: {name!r}")
    return name


def _validate_owner(owner_id: str) -> str:
    if not _OWNER_RE.match(owner_id) or ".." in owner_id:
        raise InputError("Invalid owner id")
    return owner_id


def object_path(owner_id: str, name: str) -> str:
    """Storage key for a snapshot: ``<owner>/<name>.json``."""
    return f"{_validate_owner(owner_id)}/{validate_snapshot_name(name)}{_SUFFIX}"


@dataclass(frozen=True)
class StoredItem:
    """Listing entry for one stored snapshot."""

    name: str
    updated_at: datetime | None
    size: int | None


class SnapshotStore(Protocol):
    """Interface shared by all snapshot storage backends."""

    async def list_items(self, owner_id: str) -> list[StoredItem]: ...

    async def get(self, owner_id: str, name: str) -> dict[str, Any] | None: ...

    async def put(self, owner_id: str, name: str, document: dict[str, Any]) -> None: ...

    async def delete(self, owner_id: str, name: str) -> bool: ...

    async def close(self) -> None: ...


def _encode(document: dict[str, Any]) -> bytes:
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def _decode(raw: bytes, key: str) -> dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StorageError(f"Stored document {key} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise StorageError(f"Stored document {key} is not a JSON object")
    return data


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------


class LocalSnapshotStore:
    """Snapshot documents stored as files under *root*."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, owner_id: str, name: str) -> Path:
        return self._root / object_path(owner_id, name)

    async def list_items(self, owner_id: str) -> list[StoredItem]:
        owner_dir = self._root / _validate_owner(owner_id)
        return await asyncio.to_thread(self._list_sync, owner_dir)

    @staticmethod
    def _list_sync(owner_dir: Path) -> list[StoredItem]:
        if not owner_dir.is_dir():
            return []
        entries: list[tuple[float, StoredItem]] = []
        for path in owner_dir.glob(f"*{_SUFFIX}"):
            stat = path.stat()
            item = StoredItem(
                name=path.name[: -len(_SUFFIX)],
                updated_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                size=stat.st_size,
            )
            entries.append((stat.st_mtime, item))
        entries.sort(key=lambda entry: (-entry[0], entry[1].name))
        return [item for _, item in entries]

    async def get(self, owner_id: str, name: str) -> dict[str, Any] | None:
        path = self._path(owner_id, name)
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path.name}: {exc}") from exc
        return _decode(raw, str(path))

    async def put(self, owner_id: str, name: str, document: dict[str, Any]) -> None:
        path = self._path(owner_id, name)
        try:
            await asyncio.to_thread(self._write_sync, path, _encode(document))
        except OSError as exc:
            raise StorageError(f"Failed to write {path.name}: {exc}") from exc
        logger.debug("Wrote snapshot document %s", path)

    @staticmethod
    def _write_sync(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    async def delete(self, owner_id: str, name: str) -> bool:
        path = self._path(owner_id, name)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete {path.name}: {exc}") from exc
        return True

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Supabase Storage
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class SupabaseSnapshotStore:
    """Snapshot documents stored in a Supabase Storage bucket.

    Parameters
    ----------
    base_url:
        Project URL, e.g. ``https://xyz.supabase.co``.
    service_key:
        Service-role key used as both ``apikey`` and bearer token.  Owner
        isolation is enforced by the object path, not by storage policies.
    bucket:
        Bucket holding the documents.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str = "schemas",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/storage/v1",
            timeout=httpx.Timeout(timeout),
            headers={"apikey": service_key, "Authorization": f"Bearer {service_key}"},
            transport=transport,
        )

    async def list_items(self, owner_id: str) -> list[StoredItem]:
        payload = {
            "prefix": f"{_validate_owner(owner_id)}/",
            "limit": 1000,
            "offset": 0,
            "sortBy": {"column": "updated_at", "order": "desc"},
        }
        response = await self._request("POST", f"/object/list/{self._bucket}", json=payload)
        items: list[StoredItem] = []
        for entry in response.json() or []:
            name = entry.get("name") or ""
            if not name.endswith(_SUFFIX):
                continue
            metadata = entry.get("metadata") or {}
            items.append(
                StoredItem(
                    name=name[: -len(_SUFFIX)],
                    updated_at=_parse_timestamp(entry.get("updated_at")),
                    size=metadata.get("size"),
                )
            )
        return items

    async def get(self, owner_id: str, name: str) -> dict[str, Any] | None:
        key = object_path(owner_id, name)
        response = await self._request("GET", f"/object/{self._bucket}/{key}", allow_missing=True)
        if response is None:
            return None
        return _decode(response.content, key)

    async def put(self, owner_id: str, name: str, document: dict[str, Any]) -> None:
        key = object_path(owner_id, name)
        await self._request(
            "POST",
            f"/object/{self._bucket}/{key}",
            content=_encode(document),
            headers={"Content-Type": "application/json; charset=utf-8", "x-upsert": "true"},
        )

    async def delete(self, owner_id: str, name: str) -> bool:
        key = object_path(owner_id, name)
        response = await self._request("DELETE", f"/object/{self._bucket}", json={"prefixes": [key]})
        removed = response.json() or []
        return bool(removed)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, allow_missing: bool = False, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.warning("Storage request %s %s failed: %s", method, path, exc)
            raise StorageError(f"Storage request failed: {exc}") from exc

        # Supabase reports a missing object as 400 or 404 depending on version.
        if allow_missing and response.status_code in (400, 404):
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Storage returned %d for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:500],
            )
            raise StorageError(f"Storage error {response.status_code}") from exc
        return response
