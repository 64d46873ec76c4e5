"""
In-memory Database Provider implementation.

Process-local store for development and tests. Multi-step writes
(version numbering, publish, cascades) run under one asyncio lock so
concurrent requests never observe a half-applied change.
"""
from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ...config import get_logger
from ...exceptions import ConflictError, NotFoundError
from ..llm.interface import Vendor
from .interface import (
    App,
    AppStatus,
    Credential,
    DatabaseProviderInterface,
    ExecutionRecord,
    ExecutionStats,
    ExecutionStatus,
    PromptVersion,
    PromptVersionDraft,
    VendorSecret,
    utc_now,
)

logger = get_logger("database.memory")

APP_MUTABLE_FIELDS = frozenset({"name", "description", "status"})


class MemoryDatabaseProvider(DatabaseProviderInterface):
    """Dictionary-backed store. Returned entities are copies."""

    def __init__(self) -> None:
        self._apps: Dict[str, App] = {}
        self._versions: Dict[str, PromptVersion] = {}
        self._executions: List[ExecutionRecord] = []
        self._credentials: Dict[str, Credential] = {}
        self._vendor_secrets: Dict[Vendor, VendorSecret] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> bool:
        self._initialized = True
        logger.info("In-memory store initialized (data is not persisted)")
        return True

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return self._initialized

    async def health_check(self) -> bool:
        return self._initialized

    async def close(self) -> None:
        self._initialized = False

    # =========================================================================
    # Apps
    # =========================================================================

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        lowered = name.lower()
        return any(
            app.name.lower() == lowered and app.id != exclude_id
            for app in self._apps.values()
        )

    async def create_app(self, app: App) -> App:
        async with self._lock:
            if app.id in self._apps:
                raise ConflictError(f"App id already exists: {app.id}")
            if self._name_taken(app.name):
                raise ConflictError(f"App name already exists: {app.name}")
            self._apps[app.id] = replace(app)
            return replace(app)

    async def find_app(self, app_id: str) -> Optional[App]:
        app = self._apps.get(app_id)
        return replace(app) if app else None

    async def list_apps(
        self,
        search: Optional[str] = None,
        status: Optional[AppStatus] = None,
    ) -> List[App]:
        apps = list(self._apps.values())
        if search:
            needle = search.lower()
            apps = [a for a in apps if needle in a.name.lower()]
        if status is not None:
            apps = [a for a in apps if a.status == status]
        apps.sort(key=lambda a: a.updated_at, reverse=True)
        return [replace(a) for a in apps]

    async def update_app(self, app_id: str, **changes: Any) -> Optional[App]:
        unknown = set(changes) - APP_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update app fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            app = self._apps.get(app_id)
            if app is None:
                return None
            name = changes.get("name")
            if name is not None and self._name_taken(name, exclude_id=app_id):
                raise ConflictError(f"App name already exists: {name}")
            updated = replace(app, **changes, updated_at=utc_now())
            self._apps[app_id] = updated
            return replace(updated)

    async def delete_app(self, app_id: str) -> bool:
        async with self._lock:
            if self._apps.pop(app_id, None) is None:
                return False
            self._versions = {k: v for k, v in self._versions.items() if v.app_id != app_id}
            self._credentials = {
                k: c for k, c in self._credentials.items() if c.app_id != app_id
            }
            return True

    async def count_apps(self) -> Tuple[int, int]:
        total = len(self._apps)
        active = sum(1 for a in self._apps.values() if a.status == AppStatus.ACTIVE)
        return total, active

    # =========================================================================
    # Prompt Versions
    # =========================================================================

    async def create_version(self, draft: PromptVersionDraft) -> PromptVersion:
        async with self._lock:
            app = self._apps.get(draft.app_id)
            if app is None:
                raise NotFoundError(f"App not found: {draft.app_id}")
            if draft.id in self._versions:
                raise ConflictError(f"Prompt version id already exists: {draft.id}")

            now = utc_now()
            version = PromptVersion(
                id=draft.id,
                app_id=draft.app_id,
                version=app.version_seq + 1,
                system_prompt=draft.system_prompt,
                vendor=draft.vendor,
                model=draft.model,
                temperature=draft.temperature,
                max_tokens=draft.max_tokens,
                response_format=draft.response_format,
                created_at=now,
                published_at=now if draft.published else None,
                created_by=draft.created_by,
            )
            self._versions[version.id] = version

            app_changes: Dict[str, Any] = {"version_seq": version.version, "updated_at": now}
            if draft.published:
                app_changes["active_version_id"] = version.id
            self._apps[app.id] = replace(app, **app_changes)
            return replace(version)

    async def max_version_number(self, app_id: str) -> int:
        app = self._apps.get(app_id)
        return app.version_seq if app else 0

    def _app_versions(self, app_id: str) -> List[PromptVersion]:
        versions = [v for v in self._versions.values() if v.app_id == app_id]
        versions.sort(key=lambda v: v.version, reverse=True)
        return versions

    async def list_versions(self, app_id: str) -> List[PromptVersion]:
        return [replace(v) for v in self._app_versions(app_id)]

    async def find_version(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        version = self._versions.get(version_id)
        if version is None or version.app_id != app_id:
            return None
        return replace(version)

    async def find_version_by_number(self, app_id: str, number: int) -> Optional[PromptVersion]:
        for version in self._app_versions(app_id):
            if version.version == number:
                return replace(version)
        return None

    async def find_latest_version(self, app_id: str) -> Optional[PromptVersion]:
        versions = self._app_versions(app_id)
        return replace(versions[0]) if versions else None

    async def find_active_version(self, app_id: str) -> Optional[PromptVersion]:
        app = self._apps.get(app_id)
        if app is None or not app.active_version_id:
            return None
        return await self.find_version(app_id, app.active_version_id)

    async def publish(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        async with self._lock:
            app = self._apps.get(app_id)
            version = self._versions.get(version_id)
            if app is None or version is None or version.app_id != app_id:
                return None

            now = utc_now()
            published = replace(version, published_at=now)
            self._versions[version_id] = published
            self._apps[app_id] = replace(app, active_version_id=version_id, updated_at=now)
            return replace(published)

    async def delete_version(self, app_id: str, version_id: str) -> bool:
        async with self._lock:
            app = self._apps.get(app_id)
            version = self._versions.get(version_id)
            if app is None or version is None or version.app_id != app_id:
                return False
            if app.active_version_id == version_id:
                raise ConflictError("Cannot delete the active prompt version")

            del self._versions[version_id]
            for i, record in enumerate(self._executions):
                if record.version_id == version_id:
                    self._executions[i] = replace(record, version_id=None)
            return True

    # =========================================================================
    # Execution Records
    # =========================================================================

    async def append_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        self._executions.append(replace(record))
        return replace(record)

    async def find_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        for record in self._executions:
            if record.id == execution_id:
                return replace(record)
        return None

    def _newest_first(self, records: List[ExecutionRecord]) -> List[ExecutionRecord]:
        # Append order breaks ties between records with equal timestamps
        indexed = list(enumerate(records))
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [record for _, record in indexed]

    async def list_executions(
        self,
        app_id: str,
        limit: int,
        offset: int = 0,
    ) -> Tuple[List[ExecutionRecord], int]:
        records = self._newest_first([r for r in self._executions if r.app_id == app_id])
        page = records[offset:offset + limit]
        return [replace(r) for r in page], len(records)

    async def list_recent_executions(self, limit: int) -> List[ExecutionRecord]:
        return [replace(r) for r in self._newest_first(self._executions)[:limit]]

    async def execution_stats(self, app_id: Optional[str] = None) -> ExecutionStats:
        records = [r for r in self._executions if app_id is None or r.app_id == app_id]
        if not records:
            return ExecutionStats()

        success = sum(1 for r in records if r.status == ExecutionStatus.SUCCESS)
        return ExecutionStats(
            total_executions=len(records),
            success_count=success,
            error_count=len(records) - success,
            avg_latency_ms=round(sum(r.latency_ms for r in records) / len(records)),
            total_tokens=sum(r.token_usage.total for r in records if r.token_usage),
        )

    # =========================================================================
    # Credentials
    # =========================================================================

    async def create_credential(self, credential: Credential) -> Credential:
        async with self._lock:
            if any(c.key_digest == credential.key_digest for c in self._credentials.values()):
                raise ConflictError("Credential digest already exists")
            self._credentials[credential.id] = replace(credential)
            return replace(credential)

    async def find_credential(self, credential_id: str) -> Optional[Credential]:
        credential = self._credentials.get(credential_id)
        return replace(credential) if credential else None

    async def find_credential_by_digest(self, key_digest: str) -> Optional[Credential]:
        for credential in self._credentials.values():
            if credential.key_digest == key_digest:
                return replace(credential)
        return None

    async def list_credentials(self, app_id: str) -> List[Credential]:
        credentials = [c for c in self._credentials.values() if c.app_id == app_id]
        credentials.sort(key=lambda c: c.created_at, reverse=True)
        return [replace(c) for c in credentials]

    async def touch_credential(self, credential_id: str) -> None:
        credential = self._credentials.get(credential_id)
        if credential is not None:
            self._credentials[credential_id] = replace(credential, last_used_at=utc_now())

    async def update_credential_digest(self, credential_id: str, key_digest: str) -> Optional[Credential]:
        async with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return None
            updated = replace(credential, key_digest=key_digest)
            self._credentials[credential_id] = updated
            return replace(updated)

    async def delete_credential(self, credential_id: str) -> bool:
        return self._credentials.pop(credential_id, None) is not None

    # =========================================================================
    # Vendor Secrets
    # =========================================================================

    async def find_vendor_secret(self, vendor: Vendor) -> Optional[VendorSecret]:
        secret = self._vendor_secrets.get(Vendor(vendor))
        return replace(secret) if secret else None

    async def list_vendor_secrets(self) -> List[VendorSecret]:
        return [replace(s) for s in self._vendor_secrets.values()]

    async def upsert_vendor_secret(self, vendor: Vendor, encoded_key: str) -> VendorSecret:
        vendor = Vendor(vendor)
        now = utc_now()
        existing = self._vendor_secrets.get(vendor)
        if existing is not None:
            secret = replace(existing, encoded_key=encoded_key, updated_at=now)
        else:
            secret = VendorSecret(
                id=f"vk-{vendor.value}",
                vendor=vendor,
                encoded_key=encoded_key,
                created_at=now,
                updated_at=now,
            )
        self._vendor_secrets[vendor] = secret
        return replace(secret)

    async def delete_vendor_secret(self, vendor: Vendor) -> bool:
        return self._vendor_secrets.pop(Vendor(vendor), None) is not None
