"""
Database Provider - Factory module for the configuration store.

Selects the appropriate database implementation based on configuration.
"""

from app.config import settings, get_logger
from .interface import DatabaseProviderInterface

logger = get_logger("database.provider")


def create_database_provider(provider: str | None = None) -> DatabaseProviderInterface:
    """
    Create the configured database provider.

    Args:
        provider: Override for settings.DATABASE_PROVIDER
    """
    provider = (provider or settings.DATABASE_PROVIDER).lower()

    # Factory pattern - select implementation based on configuration
    if provider == "firestore":
        from .firestore_impl import FirestoreDatabaseProvider
        logger.info("Database Provider: Firestore (apps collection: %s)",
                    settings.FIRESTORE_APPS_COLLECTION)
        return FirestoreDatabaseProvider()
    if provider == "memory":
        from .memory_impl import MemoryDatabaseProvider
        logger.info("Database Provider: in-memory")
        return MemoryDatabaseProvider()
    raise ValueError(f"Unknown database provider: {provider}. Supported: firestore, memory")


__all__ = ["create_database_provider", "DatabaseProviderInterface"]
