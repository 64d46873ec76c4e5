"""
App and prompt version management.

An app is created with version 1 already published and an app-scoped
API key. Later versions are drafts until published; publishing makes a
version the app's active version.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from app.config import get_logger, settings
from app.exceptions import ConfigError, ConflictError, NotFoundError, ValidationError
from app.providers.database.interface import (
    App,
    AppStatus,
    PromptVersion,
    PromptVersionDraft,
)
from app.providers.llm.interface import ResponseFormat, Vendor
from app.providers.llm.registry import infer_vendor
from app.utils import generate_app_id, prefixed_id, sanitize_text

if TYPE_CHECKING:
    from app.providers.database.interface import DatabaseProviderInterface
    from app.services.access import AccessGate, IssuedCredential

logger = get_logger("services.apps")

MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000


@dataclass(frozen=True)
class PromptSettings:
    """Prompt configuration for a new version. Unset fields use defaults."""
    system_prompt: str
    vendor: Optional[Vendor] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    response_format: Optional[ResponseFormat] = None


@dataclass(frozen=True)
class CreatedApp:
    app: App
    version: PromptVersion
    api_key: "IssuedCredential"


class AppService:
    """
    App lifecycle and prompt versioning.

    Example:
        >>> service = AppService(database, access_gate)
        >>> created = await service.create_app("Sentiment", None, PromptSettings("Classify..."))
        >>> created.api_key.key
        'aak_...'
    """

    def __init__(self, database: "DatabaseProviderInterface", access_gate: "AccessGate") -> None:
        self._database = database
        self._access = access_gate

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _clean_name(self, name: Optional[str]) -> str:
        cleaned = sanitize_text(name, max_length=MAX_NAME_LENGTH)
        if not cleaned:
            raise ValidationError("App name must not be empty")
        return cleaned

    def _draft(
        self,
        app_id: str,
        prompt: PromptSettings,
        default_model: str,
        published: bool = False,
    ) -> PromptVersionDraft:
        if not prompt.system_prompt or not prompt.system_prompt.strip():
            raise ValidationError("System prompt must not be empty")

        model = prompt.model or default_model
        return PromptVersionDraft(
            id=prefixed_id("pv"),
            app_id=app_id,
            system_prompt=prompt.system_prompt,
            vendor=prompt.vendor or infer_vendor(model),
            model=model,
            temperature=prompt.temperature if prompt.temperature is not None else settings.DEFAULT_TEMPERATURE,
            max_tokens=prompt.max_tokens or settings.DEFAULT_MAX_TOKENS,
            response_format=prompt.response_format or ResponseFormat(settings.DEFAULT_RESPONSE_FORMAT),
            published=published,
        )

    async def _require_app(self, app_id: str) -> App:
        app = await self._database.find_app(app_id)
        if app is None:
            raise NotFoundError(f"App not found: {app_id}")
        return app

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    async def create_app(
        self,
        name: str,
        description: Optional[str],
        prompt: PromptSettings,
    ) -> CreatedApp:
        """
        Create an active app with a published first version and an API key.

        Raises:
            ValidationError: Empty name or prompt
            ConflictError: Another app already has this name
        """
        name = self._clean_name(name)
        description = sanitize_text(description, max_length=MAX_DESCRIPTION_LENGTH) or None

        app_id = generate_app_id(name)
        draft = self._draft(app_id, prompt, settings.DEFAULT_APP_MODEL, published=True)

        app = await self._database.create_app(App(id=app_id, name=name, description=description))
        try:
            version = await self._database.create_version(draft)
            # Activated only once version 1 is published
            app = await self._database.update_app(app.id, status=AppStatus.ACTIVE)
            api_key = await self._access.create_for_app(app.id)
        except Exception as e:
            logger.error("App creation failed, removing draft app %s: %s", app_id, e)
            await self._database.delete_app(app_id)
            raise

        logger.info(
            "App created | app=%s | vendor=%s | model=%s",
            app.id,
            version.vendor.value,
            version.model,
        )
        return CreatedApp(app=app, version=version, api_key=api_key)

    async def list_apps(self, search: Optional[str] = None) -> List[App]:
        return await self._database.list_apps(search=sanitize_text(search) or None)

    async def list_active_apps(self) -> List[App]:
        return await self._database.list_apps(status=AppStatus.ACTIVE)

    async def get_app(self, app_id: str) -> Optional[App]:
        return await self._database.find_app(app_id)

    async def update_app(
        self,
        app_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[App]:
        """Rename or re-describe an app. Returns None if it does not exist."""
        changes = {}
        if name is not None:
            changes["name"] = self._clean_name(name)
        if description is not None:
            changes["description"] = sanitize_text(description, max_length=MAX_DESCRIPTION_LENGTH) or None
        if not changes:
            return await self._database.find_app(app_id)
        return await self._database.update_app(app_id, **changes)

    async def delete_app(self, app_id: str) -> bool:
        deleted = await self._database.delete_app(app_id)
        if deleted:
            logger.info("App deleted | app=%s", app_id)
        return deleted

    async def activate_app(self, app_id: str) -> App:
        """
        Raises:
            NotFoundError: If the app does not exist
            ConfigError: If the app has no published version
        """
        app = await self._require_app(app_id)
        if await self._database.find_active_version(app_id) is None:
            raise ConfigError(
                f"App has no published prompt version: {app_id}",
                error_code="NO_ACTIVE_VERSION",
            )
        updated = await self._database.update_app(app_id, status=AppStatus.ACTIVE)
        logger.info("App activated | app=%s | previous=%s", app_id, app.status.value)
        return updated

    async def deprecate_app(self, app_id: str) -> App:
        await self._require_app(app_id)
        updated = await self._database.update_app(app_id, status=AppStatus.DEPRECATED)
        logger.info("App deprecated | app=%s", app_id)
        return updated

    # -------------------------------------------------------------------------
    # Prompt Versions
    # -------------------------------------------------------------------------

    async def create_version(self, app_id: str, prompt: PromptSettings) -> PromptVersion:
        """
        Add an unpublished version with the next version number.

        Raises:
            NotFoundError: If the app does not exist
        """
        await self._require_app(app_id)
        version = await self._database.create_version(self._draft(app_id, prompt, settings.DEFAULT_MODEL))
        logger.info("Prompt version created | app=%s | version=v%d | model=%s", app_id, version.version, version.model)
        return version

    async def list_versions(self, app_id: str) -> List[PromptVersion]:
        return await self._database.list_versions(app_id)

    async def get_version(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        return await self._database.find_version(app_id, version_id)

    async def get_version_by_number(self, app_id: str, number: int) -> Optional[PromptVersion]:
        return await self._database.find_version_by_number(app_id, number)

    async def get_latest_version(self, app_id: str) -> Optional[PromptVersion]:
        return await self._database.find_latest_version(app_id)

    async def get_active_version(self, app_id: str) -> Optional[PromptVersion]:
        return await self._database.find_active_version(app_id)

    async def publish_version(self, app_id: str, version_id: str) -> Optional[PromptVersion]:
        """Publish a version and make it active. None if app or version is missing."""
        version = await self._database.publish(app_id, version_id)
        if version is not None:
            logger.info("Prompt version published | app=%s | version=v%d", app_id, version.version)
        return version

    async def delete_version(self, app_id: str, version_id: str) -> bool:
        """
        Raises:
            ConflictError: If the version is the app's active version
        """
        try:
            deleted = await self._database.delete_version(app_id, version_id)
        except ConflictError:
            logger.info("Refused to delete active version %s of %s", version_id, app_id)
            raise
        if deleted:
            logger.info("Prompt version deleted | app=%s | version=%s", app_id, version_id)
        return deleted
