"""
Caller credential issuance and validation.

Keys are shown to the operator once at creation or rotation; the store
keeps only their SHA-256 digest. A credential is either global or scoped
to a single app.

Usage:
    from app.services.access import AccessGate

    decision = await gate.validate(presented_key, target_app_id="sentim-4fK9a")
    if not decision.valid:
        ...
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from app.config import get_logger, settings
from app.exceptions import NotFoundError, ValidationError
from app.providers.database.interface import AppScope, Credential, GlobalScope, utc_now
from app.utils import digest_key, fire_and_forget, generate_api_key, prefixed_id, sanitize_text

if TYPE_CHECKING:
    from app.providers.database.interface import DatabaseProviderInterface

logger = get_logger("services.access")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class AccessDecision:
    """Outcome of validating a presented key."""
    valid: bool
    name: Optional[str] = None
    is_global: bool = False

    @classmethod
    def deny(cls) -> "AccessDecision":
        return cls(valid=False)


@dataclass(frozen=True)
class IssuedCredential:
    """A newly created or rotated key. The plaintext key is never stored."""
    id: str
    name: str
    key: str
    app_id: Optional[str]
    created_at: datetime


# =============================================================================
# Access Gate
# =============================================================================

class AccessGate:
    """Validates caller keys and issues new ones."""

    def __init__(self, database: "DatabaseProviderInterface") -> None:
        self._database = database

    def _new_key(self) -> str:
        return generate_api_key(settings.API_KEY_PREFIX, settings.API_KEY_RANDOM_LENGTH)

    async def validate(self, presented_key: str, target_app_id: Optional[str] = None) -> AccessDecision:
        """
        Decide whether a key may call the target app.

        Args:
            presented_key: Plaintext key from the caller
            target_app_id: App being called, if any

        Returns:
            AccessDecision; global keys are valid for every app, app keys
            only for their own app (or when no target is given)
        """
        credential = await self._database.find_credential_by_digest(digest_key(presented_key))
        if credential is None:
            return AccessDecision.deny()

        # Never delays or fails validation
        fire_and_forget(
            self._database.touch_credential(credential.id),
            f"touch credential {credential.id}",
        )

        scope = credential.scope
        if isinstance(scope, GlobalScope):
            return AccessDecision(valid=True, name=credential.name, is_global=True)
        if target_app_id is not None and scope.app_id != target_app_id:
            logger.info(
                "Credential %s is scoped to %s, not %s",
                credential.id,
                scope.app_id,
                target_app_id,
            )
            return AccessDecision.deny()
        return AccessDecision(valid=True, name=credential.name, is_global=False)

    # -------------------------------------------------------------------------
    # Issuance
    # -------------------------------------------------------------------------

    async def _issue(self, name: str, scope: AppScope | GlobalScope) -> IssuedCredential:
        key = self._new_key()
        credential = Credential(
            id=prefixed_id("ak"),
            name=name,
            key_digest=digest_key(key),
            scope=scope,
            created_at=utc_now(),
        )
        await self._database.create_credential(credential)
        logger.info("Issued API key %s (%s)", credential.id, credential.app_id or "global")
        return IssuedCredential(
            id=credential.id,
            name=credential.name,
            key=key,
            app_id=credential.app_id,
            created_at=credential.created_at,
        )

    async def create_for_app(self, app_id: str, name: Optional[str] = None) -> IssuedCredential:
        """
        Issue a key scoped to one app.

        Raises:
            NotFoundError: If the app does not exist
        """
        if await self._database.find_app(app_id) is None:
            raise NotFoundError(f"App not found: {app_id}")
        key_name = sanitize_text(name, max_length=200) or f"API Key for {app_id}"
        return await self._issue(key_name, AppScope(app_id))

    async def create_global(self, name: str) -> IssuedCredential:
        """Issue a key valid for every app."""
        key_name = sanitize_text(name, max_length=200)
        if not key_name:
            raise ValidationError("API key name must not be empty")
        return await self._issue(key_name, GlobalScope())

    async def list_for_app(self, app_id: str) -> List[Credential]:
        return await self._database.list_credentials(app_id)

    async def delete(self, credential_id: str) -> bool:
        deleted = await self._database.delete_credential(credential_id)
        if deleted:
            logger.info("Deleted API key %s", credential_id)
        return deleted

    async def rotate(self, credential_id: str) -> Optional[IssuedCredential]:
        """
        Replace a key's secret while keeping its id, name and scope.

        Returns:
            The new plaintext key, or None if the credential does not exist
        """
        key = self._new_key()
        updated = await self._database.update_credential_digest(credential_id, digest_key(key))
        if updated is None:
            return None

        logger.info("Rotated API key %s", credential_id)
        return IssuedCredential(
            id=updated.id,
            name=updated.name,
            key=key,
            app_id=updated.app_id,
            created_at=updated.created_at,
        )
