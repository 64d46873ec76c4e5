"""
Firestore Database Provider implementation.

Uses Google Cloud Firestore (async client) as the configuration store.

Layout:
    apps/{app_id}                            App documents
    apps/{app_id}/prompt_versions/{id}       Prompt versions
    execution_logs/{id}                      Execution records
    api_keys/{id}                            Caller credentials (digest only)
    vendor_api_keys/{vendor}                 Operator-stored vendor secrets

Version numbering, publishing and credential inserts run in transactions.
"""
from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ...config import settings, get_logger
from ...exceptions import ConflictError, DatabaseError, GatewayException, NotFoundError
from ..llm.interface import ResponseFormat, TokenUsage, Vendor
from .interface import (
    App,
    AppScope,
    AppStatus,
    Credential,
    DatabaseProviderInterface,
    ExecutionRecord,
    ExecutionStats,
    ExecutionStatus,
    GlobalScope,
    PromptVersion,
    PromptVersionDraft,
    VendorSecret,
    utc_now,
)

logger = get_logger("database.firestore")

T = TypeVar("T")

# Firestore batches accept at most 500 writes
BATCH_SIZE = 400


# =============================================================================
# Document Mapping
# =============================================================================

def _app_to_doc(app: App) -> Dict[str, Any]:
    return {
        "name": app.name,
        "name_lower": app.name.lower(),
        "description": app.description,
        "status": app.status.value,
        "active_version_id": app.active_version_id,
        "version_seq": app.version_seq,
        "created_at": app.created_at,
        "updated_at": app.updated_at,
    }


def _app_from_doc(doc_id: str, data: Dict[str, Any]) -> App:
    return App(
        id=doc_id,
        name=data.get("name", ""),
        description=data.get("description"),
        status=AppStatus(data.get("status", AppStatus.DRAFT.value)),
        active_version_id=data.get("active_version_id"),
        version_seq=data.get("version_seq", 0),
        created_at=data.get("created_at") or utc_now(),
        updated_at=data.get("updated_at") or utc_now(),
    )


def _version_to_doc(version: PromptVersion) -> Dict[str, Any]:
    return {
        "app_id": version.app_id,
        "version": version.version,
        "system_prompt": version.system_prompt,
        "vendor": version.vendor.value,
        "model": version.model,
        "temperature": version.temperature,
        "max_tokens": version.max_tokens,
        "response_format": version.response_format.value,
        "created_at": version.created_at,
        "published_at": version.published_at,
        "created_by": version.created_by,
    }


def _version_from_doc(doc_id: str, data: Dict[str, Any]) -> PromptVersion:
    return PromptVersion(
        id=doc_id,
        app_id=data["app_id"],
        version=data["version"],
        system_prompt=data.get("system_prompt", ""),
        vendor=Vendor(data.get("vendor", Vendor.OPENAI.value)),
        model=data.get("model", ""),
        temperature=data.get("temperature", 0.7),
        max_tokens=data.get("max_tokens", 4096),
        response_format=ResponseFormat(data.get("response_format", ResponseFormat.JSON.value)),
        created_at=data.get("created_at") or utc_now(),
        published_at=data.get("published_at"),
        created_by=data.get("created_by", "system"),
    )


def _execution_to_doc(record: ExecutionRecord) -> Dict[str, Any]:
    # Caller input and model output are stored as JSON text; Firestore
    # rejects arrays nested directly inside arrays.
    usage = record.token_usage
    return {
        "app_id": record.app_id,
        "version_id": record.version_id,
        "status": record.status.value,
        "latency_ms": record.latency_ms,
        "input_json": json.dumps(record.input) if record.input is not None else None,
        "output_json": json.dumps(record.output) if record.output is not None else None,
        "raw_response": record.raw_response,
        "token_usage": (
            {"prompt": usage.prompt, "completion": usage.completion, "total": usage.total}
            if usage else None
        ),
        "error_message": record.error_message,
        "caller_service": record.caller_service,
        "created_at": record.created_at,
    }


def _execution_from_doc(doc_id: str, data: Dict[str, Any]) -> ExecutionRecord:
    usage = data.get("token_usage")
    input_json = data.get("input_json")
    output_json = data.get("output_json")
    return ExecutionRecord(
        id=doc_id,
        app_id=data.get("app_id", ""),
        version_id=data.get("version_id"),
        status=ExecutionStatus(data.get("status", ExecutionStatus.ERROR.value)),
        latency_ms=data.get("latency_ms", 0),
        input=json.loads(input_json) if input_json is not None else None,
        output=json.loads(output_json) if output_json is not None else None,
        raw_response=data.get("raw_response"),
        token_usage=TokenUsage(**usage) if usage else None,
        error_message=data.get("error_message"),
        caller_service=data.get("caller_service"),
        created_at=data.get("created_at") or utc_now(),
    )


def _credential_to_doc(credential: Credential) -> Dict[str, Any]:
    return {
        "name": credential.name,
        "key_digest": credential.key_digest,
        "app_id": credential.app_id,
        "created_at": credential.created_at,
        "last_used_at": credential.last_used_at,
    }


def _credential_from_doc(doc_id: str, data: Dict[str, Any]) -> Credential:
    app_id = data.get("app_id")
    return Credential(
        id=doc_id,
        name=data.get("name", ""),
        key_digest=data.get("key_digest", ""),
        scope=AppScope(app_id) if app_id else GlobalScope(),
        created_at=data.get("created_at") or utc_now(),
        last_used_at=data.get("last_used_at"),
    )


def _secret_from_doc(doc_id: str, data: Dict[str, Any]) -> VendorSecret:
    return VendorSecret(
        id=doc_id,
        vendor=Vendor(data.get("vendor", doc_id)),
        encoded_key=data.get("encoded_key", ""),
        created_at=data.get("created_at") or utc_now(),
        updated_at=data.get("updated_at") or utc_now(),
    )


class FirestoreDatabaseProvider(DatabaseProviderInterface):
    """
    Firestore configuration store.

    Every call is bounded by FIRESTORE_QUERY_TIMEOUT_SECONDS; failures
    surface as DatabaseError.
    """

    def __init__(self):
        self._client: Optional[firestore.AsyncClient] = None
        self._initialized = False
        self._credentials = None

    async def initialize(self) -> bool:
        """Initialize Firestore connection."""
        if self._initialized and self._client:
            return True

        try:
            if settings.FIREBASE_CREDS_BASE64:
                # Decode base64 credentials
                padded = settings.FIREBASE_CREDS_BASE64 + "=" * (
                    (4 - len(settings.FIREBASE_CREDS_BASE64) % 4) % 4
                )
                cred_json = base64.b64decode(padded).decode("utf-8")
                info = json.loads(cred_json)
                self._credentials = service_account.Credentials.from_service_account_info(info)
                self._client = firestore.AsyncClient(credentials=self._credentials)
            else:
                # Use default credentials (ADC)
                self._client = firestore.AsyncClient()

            self._initialized = True
            logger.info("Firestore AsyncClient initialized successfully")
            return True

        except Exception as e:
            logger.error("Firestore initialization failed: %s", e)
            return False

    @property
    def db(self) -> firestore.AsyncClient:
        if not self._client:
            raise DatabaseError("Firestore client not initialized")
        return self._client

    async def _run(self, call: Awaitable[T], action: str) -> T:
        """Await a Firestore call with the query timeout and error mapping."""
        try:
            return await asyncio.wait_for(call, timeout=settings.FIRESTORE_QUERY_TIMEOUT_SECONDS)
        except GatewayException:
            raise
        except asyncio.TimeoutError:
            logger.warning("Firestore %s timed out", action)
            raise DatabaseError(
                f"Failed to {action}",
                details=f"Timeout after {settings.FIRESTORE_QUERY_TIMEOUT_SECONDS}s",
            )
        except Exception as e:
            logger.error("Firestore %s failed: %s", action, e)
            raise DatabaseError(f"Failed to {action}", details=str(e))

    def _apps(self):
        return self.db.collection(settings.FIRESTORE_APPS_COLLECTION)

    def _versions(self, app_id: str):
        return self._apps().document(app_id).collection(settings.FIRESTORE_VERSIONS_SUBCOLLECTION)

    def _executions(self):
        return self.db.collection(settings.FIRESTORE_EXECUTIONS_COLLECTION)

    def _api_keys(self):
        return self.db.collection(settings.FIRESTORE_API_KEYS_COLLECTION)

    def _vendor_keys(self):
        return self.db.collection(settings.FIRESTORE_VENDOR_KEYS_COLLECTION)

    async def health_check(self) -> bool:
        """Perform a health check by querying the apps collection."""
        if not self._client:
            return False

        try:
            await asyncio.wait_for(self._apps().limit(1).get(), timeout=5.0)
            return True
        except Exception as e:
            logger.warning("Firestore health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "firestore"

    def is_available(self) -> bool:
        """Check if Firestore is available."""
        return self._initialized and self._client is not None

    async def close(self) -> None:
        """Close the Firestore connection properly."""
        if self._client:
            try:
                # Close the underlying gRPC channel
                self._client._client._transport.grpc_channel.close()
                logger.info("Firestore gRPC channel closed")
            except Exception as e:
                logger.warning("Error closing Firestore gRPC channel: %s", e)
            finally:
                self._client = None
                self._initialized = False
                self._credentials = None
                logger.info("Firestore connection closed")

    async def _delete_refs(self, refs: List[Any]) -> None:
        for start in range(0, len(refs), BATCH_SIZE):
            batch = self.db.batch()
            for ref in refs[start:start + BATCH_SIZE]:
                batch.delete(ref)
            await batch.commit()

    # =========================================================================
    # Apps
    # =========================================================================

    async def create_app(self, app: App) -> App:
        app_ref = self._apps().document(app.id)
        name_query = self._apps().where(filter=FieldFilter("name_lower", "==", app.name.lower())).limit(1)

        @firestore.async_transactional
        async def insert(transaction) -> None:
            existing = await app_ref.get(transaction=transaction)
            if existing.exists:
                raise ConflictError(f"App id already exists: {app.id}")
            same_name = await name_query.get(transaction=transaction)
            if same_name:
                raise ConflictError(f"App name already exists: {app.name}")
            transaction.set(app_ref, _app_to_doc(app))

        await self._run(insert(self.db.transaction()), "create app")
        logger.debug("Created app %s", app.id)
        return app

    async def find_app(self, app_id: str) -> Optional[App]:
        doc = await self._run(self._apps().document(app_id).get(), "fetch app")
        if not doc.exists:
            return None
        return _app_from_doc(doc.id, doc.to_dict())

    async def list_apps(
        self,
        search: Optional[str] = None,
        status: Optional[AppStatus] = None,
    ) -> List[App]:
        query = self._apps()
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))
        docs = await self._run(query.get(), "list apps")

        apps = [_app_from_doc(doc.id, doc.to_dict()) for doc in docs]
        if search:
            # Firestore has no substring match; filter client-side
            needle = search.lower()
            apps = [a for a in apps if needle in a.name.lower()]
        apps.sort(key=lambda a: a.updated_at, reverse=True)
        return apps

    async def update_app(self, app_id: str, **changes: Any) -> Optional[App]:
        allowed = {"name", "description", "status"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update app fields: {', '.join(sorted(unknown))}")

        app_ref = self._apps().document(app_id)

        @firestore.async_transactional
        async def apply(transaction) -> Optional[App]:
            snapshot = await app_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None

            updates: Dict[str, Any] = {"updated_at": utc_now()}
            name = changes.get("name")
            if name is not None:
                same_name = await (
                    self._apps()
                    .where(filter=FieldFilter("name_lower", "==", name.lower()))
                    .get(transaction=transaction)
                )
                if any(doc.id != app_id for doc in same_name):
                    raise ConflictError(f"App name already exists: {name}")
                updates["name"] = name
                updates["name_lower"] = name.lower()
            if "description" in changes:
                updates["description"] = changes["description"]
            if "status" in changes:
                updates["status"] = AppStatus(changes["status"]).value

            transaction.update(app_ref, updates)
            data = snapshot.to_dict()
            data.update(updates)
            return _app_from_doc(app_id, data)

        return await self._run(apply(self.db.transaction()), "update app")

    async def delete_app(self, app_id: str) -> bool:
        app_ref = self._apps().document(app_id)
        doc = await self._run(app_ref.get(), "fetch app")
        if not doc.exists:
            return False

        version_docs = await self._run(self._versions(app_id).get(), "list prompt versions")
        key_docs = await self._run(
            self._api_keys().where(filter=FieldFilter("app_id", "==", app_id)).get(),
            "list api keys",
        )
        refs = [d.reference for d in version_docs] + [d.reference for d in key_docs] + [app_ref]
        await self._run(self._delete_refs(refs), "delete app")
        logger.info("Deleted app %s (%d versions, %d keys)", app_id, len(version_docs), len(key_docs))
        return True

    async def count_apps(self) -> Tuple[int, int]:
        async def count(query) -> int:
            result = await query.count(alias="total").get()
            return int(result[0][0].value)

        total, active = await self._run(
            asyncio.gather(
                count(self._apps()),
                count(self._apps().where(filter=FieldFilter("status", "==", AppStatus.ACTIVE.value))),
            ),
            "count apps",
        )
        return total, active

    # =========================================================================
    # Prompt Versions
    # =========================================================================

    async def create_version(self, draft: PromptVersionDraft) -> PromptVersion:
        app_ref = self._apps().document(draft.app_id)
        version_ref = self._versions(draft.app_id).document(draft.id)

        @firestore.async_transactional
        async def insert(transaction) -> PromptVersion:
            snapshot = await app_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"App not found: {draft.app_id}")

            now = utc_now()
            number = snapshot.to_dict().get("version_seq", 0) + 1
            version = PromptVersion(
                id=draft.id,
                app_id=draft.app_id,
                version=number,
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
            transaction.create(version_ref, _version_to_doc(version))

            app_updates: Dict[str, Any] = {"version_seq": number, "updated_at": now}
            if draft.published:
                app_updates["active_version_id"] = version.id
            transaction.update(app_ref, app_updates)
            return version

        version = await self._run(insert(self.db.transaction()), "create prompt version")
        logger.debug("Created prompt version %s v%d for app %s", version.id, version.version, version.app_id)
        return version

    async def max_version_number(self, app_id: str) -> int:
        app = await self.find_app(app_id)
        return app.version_seq if app else 0

    async def list_versions(self, app_id: str) -> List[PromptVersion]:
        query = self._versions(app_id).order_by("version", direction=firestore.Query.DESCENDING)
        docs = await self._run(query.get(), "list prompt versions")
        return [_version_from_doc(doc.id, doc.to_dict()) for doc in docs]

    async def find_version(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        doc = await self._run(self._versions(app_id).document(version_id).get(), "fetch prompt version")
        if not doc.exists:
            return None
        return _version_from_doc(doc.id, doc.to_dict())

    async def find_version_by_number(self, app_id: str, number: int) -> Optional[PromptVersion]:
        query = self._versions(app_id).where(filter=FieldFilter("version", "==", number)).limit(1)
        docs = await self._run(query.get(), "fetch prompt version")
        return _version_from_doc(docs[0].id, docs[0].to_dict()) if docs else None

    async def find_latest_version(self, app_id: str) -> Optional[PromptVersion]:
        query = (
            self._versions(app_id)
            .order_by("version", direction=firestore.Query.DESCENDING)
            .limit(1)
        )
        docs = await self._run(query.get(), "fetch latest prompt version")
        return _version_from_doc(docs[0].id, docs[0].to_dict()) if docs else None

    async def find_active_version(self, app_id: str) -> Optional[PromptVersion]:
        app = await self.find_app(app_id)
        if app is None or not app.active_version_id:
            return None
        return await self.find_version(app_id, app.active_version_id)

    async def publish(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        app_ref = self._apps().document(app_id)
        version_ref = self._versions(app_id).document(version_id)

        @firestore.async_transactional
        async def apply(transaction) -> Optional[PromptVersion]:
            app_snapshot = await app_ref.get(transaction=transaction)
            version_snapshot = await version_ref.get(transaction=transaction)
            if not app_snapshot.exists or not version_snapshot.exists:
                return None

            now = utc_now()
            transaction.update(version_ref, {"published_at": now})
            transaction.update(app_ref, {"active_version_id": version_id, "updated_at": now})

            data = version_snapshot.to_dict()
            data["published_at"] = now
            return _version_from_doc(version_id, data)

        version = await self._run(apply(self.db.transaction()), "publish prompt version")
        if version:
            logger.info("Published prompt version %s v%d for app %s", version_id, version.version, app_id)
        return version

    async def delete_version(self, app_id: str, version_id: str) -> bool:
        app_ref = self._apps().document(app_id)
        version_ref = self._versions(app_id).document(version_id)

        # Active check and delete share one transaction, as in publish
        @firestore.async_transactional
        async def remove(transaction) -> bool:
            app_snapshot = await app_ref.get(transaction=transaction)
            version_snapshot = await version_ref.get(transaction=transaction)
            if not app_snapshot.exists or not version_snapshot.exists:
                return False
            if app_snapshot.to_dict().get("active_version_id") == version_id:
                raise ConflictError("Cannot delete the active prompt version")
            transaction.delete(version_ref)
            return True

        if not await self._run(remove(self.db.transaction()), "delete prompt version"):
            return False

        records = await self._run(
            self._executions().where(filter=FieldFilter("version_id", "==", version_id)).get(),
            "list execution records",
        )

        async def detach() -> None:
            for start in range(0, len(records), BATCH_SIZE):
                batch = self.db.batch()
                for record in records[start:start + BATCH_SIZE]:
                    batch.update(record.reference, {"version_id": None})
                await batch.commit()

        await self._run(detach(), "detach execution records")
        logger.info("Deleted prompt version %s for app %s (%d records detached)", version_id, app_id, len(records))
        return True

    # =========================================================================
    # Execution Records
    # =========================================================================

    async def append_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        await self._run(
            self._executions().document(record.id).set(_execution_to_doc(record)),
            "write execution record",
        )
        return record

    async def find_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        doc = await self._run(self._executions().document(execution_id).get(), "fetch execution record")
        if not doc.exists:
            return None
        return _execution_from_doc(doc.id, doc.to_dict())

    async def list_executions(
        self,
        app_id: str,
        limit: int,
        offset: int = 0,
    ) -> Tuple[List[ExecutionRecord], int]:
        base = self._executions().where(filter=FieldFilter("app_id", "==", app_id))
        page_query = (
            base.order_by("created_at", direction=firestore.Query.DESCENDING)
            .offset(offset)
            .limit(limit)
        )

        async def total() -> int:
            result = await base.count(alias="total").get()
            return int(result[0][0].value)

        docs, count = await self._run(
            asyncio.gather(page_query.get(), total()),
            "list execution records",
        )
        return [_execution_from_doc(doc.id, doc.to_dict()) for doc in docs], count

    async def list_recent_executions(self, limit: int) -> List[ExecutionRecord]:
        query = (
            self._executions()
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        docs = await self._run(query.get(), "list recent execution records")
        return [_execution_from_doc(doc.id, doc.to_dict()) for doc in docs]

    async def execution_stats(self, app_id: Optional[str] = None) -> ExecutionStats:
        query = self._executions()
        if app_id is not None:
            query = query.where(filter=FieldFilter("app_id", "==", app_id))
        success_query = query.where(filter=FieldFilter("status", "==", ExecutionStatus.SUCCESS.value))

        async def aggregate() -> Dict[str, Any]:
            agg = (
                query.count(alias="total")
                .avg("latency_ms", alias="avg_latency")
                .sum("token_usage.total", alias="tokens")
            )
            rows = await agg.get()
            values = {result.alias: result.value for result in rows[0]}
            success_rows = await success_query.count(alias="success").get()
            values["success"] = success_rows[0][0].value
            return values

        values = await self._run(aggregate(), "aggregate execution stats")
        total = int(values.get("total") or 0)
        success = int(values.get("success") or 0)
        return ExecutionStats(
            total_executions=total,
            success_count=success,
            error_count=total - success,
            avg_latency_ms=round(values.get("avg_latency") or 0),
            total_tokens=int(values.get("tokens") or 0),
        )

    # =========================================================================
    # Credentials
    # =========================================================================

    async def create_credential(self, credential: Credential) -> Credential:
        key_ref = self._api_keys().document(credential.id)
        digest_query = (
            self._api_keys()
            .where(filter=FieldFilter("key_digest", "==", credential.key_digest))
            .limit(1)
        )

        @firestore.async_transactional
        async def insert(transaction) -> None:
            if await digest_query.get(transaction=transaction):
                raise ConflictError("Credential digest already exists")
            transaction.create(key_ref, _credential_to_doc(credential))

        await self._run(insert(self.db.transaction()), "create api key")
        return credential

    async def find_credential(self, credential_id: str) -> Optional[Credential]:
        doc = await self._run(self._api_keys().document(credential_id).get(), "fetch api key")
        if not doc.exists:
            return None
        return _credential_from_doc(doc.id, doc.to_dict())

    async def find_credential_by_digest(self, key_digest: str) -> Optional[Credential]:
        query = self._api_keys().where(filter=FieldFilter("key_digest", "==", key_digest)).limit(1)
        docs = await self._run(query.get(), "look up api key")
        return _credential_from_doc(docs[0].id, docs[0].to_dict()) if docs else None

    async def list_credentials(self, app_id: str) -> List[Credential]:
        query = self._api_keys().where(filter=FieldFilter("app_id", "==", app_id))
        docs = await self._run(query.get(), "list api keys")
        credentials = [_credential_from_doc(doc.id, doc.to_dict()) for doc in docs]
        credentials.sort(key=lambda c: c.created_at, reverse=True)
        return credentials

    async def touch_credential(self, credential_id: str) -> None:
        await self._run(
            self._api_keys().document(credential_id).update({"last_used_at": utc_now()}),
            "update api key last use",
        )

    async def update_credential_digest(self, credential_id: str, key_digest: str) -> Optional[Credential]:
        key_ref = self._api_keys().document(credential_id)
        doc = await self._run(key_ref.get(), "fetch api key")
        if not doc.exists:
            return None
        await self._run(key_ref.update({"key_digest": key_digest}), "rotate api key")
        data = doc.to_dict()
        data["key_digest"] = key_digest
        return _credential_from_doc(credential_id, data)

    async def delete_credential(self, credential_id: str) -> bool:
        key_ref = self._api_keys().document(credential_id)
        doc = await self._run(key_ref.get(), "fetch api key")
        if not doc.exists:
            return False
        await self._run(key_ref.delete(), "delete api key")
        return True

    # =========================================================================
    # Vendor Secrets
    # =========================================================================

    async def find_vendor_secret(self, vendor: Vendor) -> Optional[VendorSecret]:
        doc = await self._run(
            self._vendor_keys().document(Vendor(vendor).value).get(),
            "fetch vendor key",
        )
        if not doc.exists:
            return None
        return _secret_from_doc(doc.id, doc.to_dict())

    async def list_vendor_secrets(self) -> List[VendorSecret]:
        docs = await self._run(self._vendor_keys().get(), "list vendor keys")
        return [_secret_from_doc(doc.id, doc.to_dict()) for doc in docs]

    async def upsert_vendor_secret(self, vendor: Vendor, encoded_key: str) -> VendorSecret:
        vendor = Vendor(vendor)
        ref = self._vendor_keys().document(vendor.value)
        existing = await self._run(ref.get(), "fetch vendor key")

        now = utc_now()
        created_at = existing.to_dict().get("created_at", now) if existing.exists else now
        data = {
            "vendor": vendor.value,
            "encoded_key": encoded_key,
            "created_at": created_at,
            "updated_at": now,
        }
        await self._run(ref.set(data), "save vendor key")
        return _secret_from_doc(vendor.value, data)

    async def delete_vendor_secret(self, vendor: Vendor) -> bool:
        ref = self._vendor_keys().document(Vendor(vendor).value)
        doc = await self._run(ref.get(), "fetch vendor key")
        if not doc.exists:
            return False
        await self._run(ref.delete(), "delete vendor key")
        return True
