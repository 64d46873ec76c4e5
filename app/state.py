"""
Application state management using provider-based architecture.

This module wires the store, vendor registry and services once at
startup. Routes reach them through the AppState dependency.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.config import get_logger
from app.providers.database import DatabaseProviderInterface, create_database_provider
from app.providers.llm import VendorRegistry, create_vendor_registry
from app.services.access import AccessGate
from app.services.apps import AppService
from app.services.execution import ExecutionGateway
from app.services.vendor_keys import VendorKeyService

logger = get_logger("state")


@dataclass
class AppState:
    """
    Central container for shared application resources.

    Every component is created once per process; the registry and
    services are read-only after startup.
    """
    database_provider: DatabaseProviderInterface
    vendor_keys: VendorKeyService
    registry: VendorRegistry
    access: AccessGate
    apps: AppService
    gateway: ExecutionGateway

    @classmethod
    def build(
        cls,
        database: DatabaseProviderInterface,
        registry: VendorRegistry | None = None,
        vendor_keys: VendorKeyService | None = None,
    ) -> "AppState":
        """Assemble services around an existing store (not initialized here)."""
        vendor_keys = vendor_keys or VendorKeyService(database)
        registry = registry or create_vendor_registry(vendor_keys)
        access = AccessGate(database)
        return cls(
            database_provider=database,
            vendor_keys=vendor_keys,
            registry=registry,
            access=access,
            apps=AppService(database, access),
            gateway=ExecutionGateway(database, registry, access),
        )

    @classmethod
    async def create(cls, database: DatabaseProviderInterface | None = None) -> "AppState":
        """
        Create and initialize application state.

        Returns:
            Initialized AppState instance

        Raises:
            RuntimeError: If the store fails to initialize.
        """
        database = database or create_database_provider()
        db_initialized = await database.initialize()
        if not db_initialized:
            logger.critical("Database provider failed to initialize. Aborting startup.")
            raise RuntimeError("Critical Dependency Failed: Database Provider could not be initialized.")

        state = cls.build(database)

        available = [info.name for info in await state.registry.describe_available()]
        logger.info(
            "Providers: Database=%s (%s) | Vendors=%s | Configured=%s",
            database.get_provider_name(),
            "OK" if database.is_available() else "UNAVAILABLE",
            ", ".join(state.registry.names()),
            ", ".join(available) or "none",
        )
        return state

    def is_ready(self) -> bool:
        """Check if the application is ready to handle requests."""
        return self.database_provider.is_available()
