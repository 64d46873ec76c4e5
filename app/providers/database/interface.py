"""
Abstract interface for configuration store providers.

The store holds apps, their prompt versions, caller credentials, vendor
secrets and the append-only execution log. All providers must implement
this interface to ensure consistent behavior and easy hot-swapping.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from ..llm.interface import ResponseFormat, TokenUsage, Vendor


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AppStatus(str, Enum):
    """Lifecycle state of an app."""
    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


# =============================================================================
# Apps & Prompt Versions
# =============================================================================

@dataclass
class App:
    """A named, versioned prompt configuration exposed to callers."""
    id: str
    name: str
    description: Optional[str] = None
    status: AppStatus = AppStatus.DRAFT
    active_version_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    # Highest version number ever assigned; never decreases
    version_seq: int = 0


@dataclass
class PromptVersionDraft:
    """A prompt version before the store assigns its version number."""
    id: str
    app_id: str
    system_prompt: str
    vendor: Vendor
    model: str
    temperature: float
    max_tokens: int
    response_format: ResponseFormat
    created_by: str = "system"
    published: bool = False


@dataclass
class PromptVersion:
    """An immutable snapshot of an app's prompt configuration."""
    id: str
    app_id: str
    version: int
    system_prompt: str
    vendor: Vendor
    model: str
    temperature: float
    max_tokens: int
    response_format: ResponseFormat
    created_at: datetime = field(default_factory=utc_now)
    published_at: Optional[datetime] = None
    created_by: str = "system"

    @property
    def is_published(self) -> bool:
        return self.published_at is not None


# =============================================================================
# Execution Records
# =============================================================================

@dataclass
class ExecutionRecord:
    """One attempted call of an app, successful or not."""
    id: str
    app_id: str
    status: ExecutionStatus
    latency_ms: int
    version_id: Optional[str] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    raw_response: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    error_message: Optional[str] = None
    caller_service: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class ExecutionStats:
    """Aggregates over a set of execution records."""
    total_executions: int = 0
    success_count: int = 0
    error_count: int = 0
    avg_latency_ms: int = 0
    total_tokens: int = 0


# =============================================================================
# Credentials & Vendor Secrets
# =============================================================================

@dataclass(frozen=True)
class GlobalScope:
    """Credential valid for every app."""


@dataclass(frozen=True)
class AppScope:
    """Credential bound to a single app."""
    app_id: str


CredentialScope = Union[GlobalScope, AppScope]


@dataclass
class Credential:
    """A caller API key. Only the digest of the key is stored."""
    id: str
    name: str
    key_digest: str
    scope: CredentialScope
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: Optional[datetime] = None

    @property
    def app_id(self) -> Optional[str]:
        return self.scope.app_id if isinstance(self.scope, AppScope) else None


@dataclass
class VendorSecret:
    """Operator-stored vendor API key, base64-encoded."""
    id: str
    vendor: Vendor
    encoded_key: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


# =============================================================================
# Provider Interface
# =============================================================================

class DatabaseProviderInterface(ABC):
    """
    Abstract interface for configuration store providers.

    All implementations must provide:
    - App and prompt version storage with atomic version numbering
    - Atomic publish (version published_at and app active_version_id together)
    - Credential lookup by digest
    - Append-only execution records with aggregate stats
    - Vendor secret storage
    - Connection management
    """

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the database connection.

        Returns:
            True if initialization succeeded, False otherwise
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the provider name (e.g., 'firestore', 'memory')."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the database connection is available."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Perform a cheap read to verify connectivity."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the database connection."""
        pass

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_app(self, app: App) -> App:
        """Insert a new app. Raises ConflictError on duplicate id or name."""
        pass

    @abstractmethod
    async def find_app(self, app_id: str) -> Optional[App]:
        pass

    @abstractmethod
    async def list_apps(
        self,
        search: Optional[str] = None,
        status: Optional[AppStatus] = None,
    ) -> List[App]:
        """
        List apps, most recently updated first.

        Args:
            search: Case-insensitive substring of the app name
            status: Only apps in this status
        """
        pass

    @abstractmethod
    async def update_app(self, app_id: str, **changes: Any) -> Optional[App]:
        """
        Update name, description or status of an app.

        active_version_id is changed only through publish().

        Returns:
            The updated app, or None if it does not exist

        Raises:
            ConflictError: If the new name belongs to another app
        """
        pass

    @abstractmethod
    async def delete_app(self, app_id: str) -> bool:
        """Delete an app together with its prompt versions and credentials."""
        pass

    @abstractmethod
    async def count_apps(self) -> Tuple[int, int]:
        """Return (total, active) app counts."""
        pass

    # -------------------------------------------------------------------------
    # Prompt Versions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_version(self, draft: PromptVersionDraft) -> PromptVersion:
        """
        Insert a prompt version with the next version number.

        Number assignment and insertion are atomic. When draft.published is
        set, the version is also published in the same step.

        Raises:
            NotFoundError: If the app does not exist
        """
        pass

    @abstractmethod
    async def max_version_number(self, app_id: str) -> int:
        """Highest version number ever assigned for the app (0 if none)."""
        pass

    @abstractmethod
    async def list_versions(self, app_id: str) -> List[PromptVersion]:
        """List versions, highest version number first."""
        pass

    @abstractmethod
    async def find_version(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        pass

    @abstractmethod
    async def find_version_by_number(self, app_id: str, number: int) -> Optional[PromptVersion]:
        pass

    @abstractmethod
    async def find_latest_version(self, app_id: str) -> Optional[PromptVersion]:
        pass

    @abstractmethod
    async def find_active_version(self, app_id: str) -> Optional[PromptVersion]:
        """Version the app's active_version_id points to, if any."""
        pass

    @abstractmethod
    async def publish(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        """
        Publish a version and make it the app's active version.

        Both changes happen together or not at all.

        Returns:
            The published version, or None if the app or version is missing
        """
        pass

    @abstractmethod
    async def delete_version(self, app_id: str, version_id: str) -> bool:
        """
        Delete a non-active version.

        Execution records that referenced it keep a null version_id.

        Returns:
            False if the app or version is missing

        Raises:
            ConflictError: If the version is the app's active version
        """
        pass

    # -------------------------------------------------------------------------
    # Execution Records
    # -------------------------------------------------------------------------

    @abstractmethod
    async def append_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        pass

    @abstractmethod
    async def find_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        pass

    @abstractmethod
    async def list_executions(
        self,
        app_id: str,
        limit: int,
        offset: int = 0,
    ) -> Tuple[List[ExecutionRecord], int]:
        """Return one page of an app's records (newest first) and the total count."""
        pass

    @abstractmethod
    async def list_recent_executions(self, limit: int) -> List[ExecutionRecord]:
        pass

    @abstractmethod
    async def execution_stats(self, app_id: Optional[str] = None) -> ExecutionStats:
        """Aggregate records of one app, or of all apps when app_id is None."""
        pass

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_credential(self, credential: Credential) -> Credential:
        """Insert a credential. Raises ConflictError if the digest exists."""
        pass

    @abstractmethod
    async def find_credential(self, credential_id: str) -> Optional[Credential]:
        pass

    @abstractmethod
    async def find_credential_by_digest(self, key_digest: str) -> Optional[Credential]:
        pass

    @abstractmethod
    async def list_credentials(self, app_id: str) -> List[Credential]:
        """List an app's credentials, newest first."""
        pass

    @abstractmethod
    async def touch_credential(self, credential_id: str) -> None:
        """Set last_used_at to now."""
        pass

    @abstractmethod
    async def update_credential_digest(self, credential_id: str, key_digest: str) -> Optional[Credential]:
        pass

    @abstractmethod
    async def delete_credential(self, credential_id: str) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Vendor Secrets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_vendor_secret(self, vendor: Vendor) -> Optional[VendorSecret]:
        pass

    @abstractmethod
    async def list_vendor_secrets(self) -> List[VendorSecret]:
        pass

    @abstractmethod
    async def upsert_vendor_secret(self, vendor: Vendor, encoded_key: str) -> VendorSecret:
        pass

    @abstractmethod
    async def delete_vendor_secret(self, vendor: Vendor) -> bool:
        pass
