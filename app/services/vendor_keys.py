"""
Vendor secret resolution and management.

A secret stored by an operator takes precedence over the environment
fallback (OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Mapping, Optional

from app.config import get_logger, settings
from app.exceptions import ValidationError
from app.providers.llm.interface import Vendor
from app.utils import decode_secret, encode_secret, mask_secret

if TYPE_CHECKING:
    from app.providers.database.interface import DatabaseProviderInterface

logger = get_logger("services.vendor_keys")

SOURCE_DATABASE = "database"
SOURCE_ENVIRONMENT = "environment"


@dataclass(frozen=True)
class VendorKeyStatus:
    """Whether a vendor has a usable secret and where it comes from."""
    vendor: Vendor
    configured: bool
    source: Optional[str] = None
    masked_key: Optional[str] = None
    updated_at: Optional[datetime] = None


class VendorKeyService:
    """
    Resolves vendor secrets for adapters and manages stored secrets.

    Example:
        >>> service = VendorKeyService(database)
        >>> await service.get_secret(Vendor.OPENAI)
        'sk-...'
    """

    def __init__(
        self,
        database: "DatabaseProviderInterface",
        env_secrets: Mapping[str, Optional[str]] | None = None,
    ) -> None:
        """
        Args:
            database: Store holding operator secrets
            env_secrets: Environment fallback per vendor name (defaults to settings)
        """
        self._database = database
        self._env_secrets = dict(env_secrets if env_secrets is not None else settings.VENDOR_ENV_SECRETS)

    def _env_secret(self, vendor: Vendor) -> Optional[str]:
        return self._env_secrets.get(vendor.value) or None

    async def get_secret(self, vendor: Vendor | str) -> Optional[str]:
        """
        Get the secret an adapter should use.

        Returns:
            The decoded stored secret, else the environment secret, else None
        """
        vendor = Vendor(vendor)
        stored = await self._database.find_vendor_secret(vendor)
        if stored is not None:
            return decode_secret(stored.encoded_key)
        return self._env_secret(vendor)

    async def get_statuses(self) -> List[VendorKeyStatus]:
        """Status of every vendor, stored secrets first, then environment."""
        stored = {s.vendor: s for s in await self._database.list_vendor_secrets()}

        statuses: List[VendorKeyStatus] = []
        for vendor in Vendor:
            secret = stored.get(vendor)
            env_key = self._env_secret(vendor)
            if secret is not None:
                statuses.append(VendorKeyStatus(
                    vendor=vendor,
                    configured=True,
                    source=SOURCE_DATABASE,
                    masked_key=mask_secret(decode_secret(secret.encoded_key)),
                    updated_at=secret.updated_at,
                ))
            elif env_key:
                statuses.append(VendorKeyStatus(
                    vendor=vendor,
                    configured=True,
                    source=SOURCE_ENVIRONMENT,
                    masked_key=mask_secret(env_key),
                ))
            else:
                statuses.append(VendorKeyStatus(vendor=vendor, configured=False))
        return statuses

    async def upsert(self, vendor: Vendor | str, api_key: str) -> VendorKeyStatus:
        """Store (or replace) the operator secret for a vendor."""
        vendor = Vendor(vendor)
        api_key = api_key.strip()
        if not api_key:
            raise ValidationError("API key must not be empty")

        secret = await self._database.upsert_vendor_secret(vendor, encode_secret(api_key))
        logger.info("Vendor key saved | vendor=%s | key=%s", vendor.value, mask_secret(api_key))
        return VendorKeyStatus(
            vendor=vendor,
            configured=True,
            source=SOURCE_DATABASE,
            masked_key=mask_secret(api_key),
            updated_at=secret.updated_at,
        )

    async def delete(self, vendor: Vendor | str) -> bool:
        """Remove the stored secret; the environment fallback applies again."""
        vendor = Vendor(vendor)
        deleted = await self._database.delete_vendor_secret(vendor)
        if deleted:
            logger.info("Vendor key deleted | vendor=%s", vendor.value)
        return deleted
