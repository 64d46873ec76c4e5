"""
Centralized configuration using Pydantic BaseSettings.

This module follows the usual FastAPI configuration layout:
- Pydantic BaseSettings for type-safe environment variable loading
- Validation at startup (fail-fast)
- Environment file support (.env)

Configuration Philosophy:
    - .env: Only sensitive data (vendor API keys, Firebase credentials)
    - config.py: All application settings with sensible defaults

Usage:
    from app.config import settings, get_logger

    print(settings.VENDOR_TIMEOUT_SECONDS)  # Type-safe access
"""
from __future__ import annotations

import logging
import re
from functools import cached_property, lru_cache
from typing import ClassVar, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Configuration Sources:
        1. Environment variables
        2. .env file (if present)
        3. Default values (defined below)

    Vendor API keys here are only the environment fallback. A key stored
    by an operator through the vendor-keys API takes precedence.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
        validate_default=True,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Server host (0.0.0.0 for external access, 127.0.0.1 for local only)",
    )
    PORT: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Server port number",
    )
    DEBUG: bool = Field(
        default=False,
        description="Debug mode - enables detailed error messages (NEVER use in production)",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    # =========================================================================
    # Vendor Configuration
    # =========================================================================
    # Sensitive: environment fallbacks for vendor secrets, loaded from .env

    OPENAI_API_KEY: str | None = Field(
        default=None,
        description="OpenAI API key (used when no operator-stored key exists)",
    )
    ANTHROPIC_API_KEY: str | None = Field(
        default=None,
        description="Anthropic API key (used when no operator-stored key exists)",
    )
    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="Google Gemini API key (used when no operator-stored key exists)",
    )
    VENDOR_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Maximum time to wait for a single vendor completion call",
    )

    # =========================================================================
    # Prompt Version Defaults
    # =========================================================================

    DEFAULT_MODEL: str = Field(
        default="gpt-5.2",
        description="Model used for new prompt versions and direct tests when none is given",
    )
    DEFAULT_APP_MODEL: str = Field(
        default="gpt-4o",
        description="Model used for the first version of a newly created app",
    )
    DEFAULT_TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature when none is given",
    )
    DEFAULT_MAX_TOKENS: int = Field(
        default=4096,
        ge=1,
        description="Maximum completion tokens when none is given",
    )
    DEFAULT_RESPONSE_FORMAT: Literal["json", "text"] = Field(
        default="json",
        description="Response format when none is given",
    )

    # =========================================================================
    # Database Configuration
    # =========================================================================
    # Sensitive: Firebase credentials loaded from .env

    DATABASE_PROVIDER: Literal["firestore", "memory"] = Field(
        default="firestore",
        description="Configuration store backend (memory is process-local, for development)",
    )
    FIREBASE_CREDS_BASE64: str | None = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON (alternative to GOOGLE_APPLICATION_CREDENTIALS)",
    )
    FIRESTORE_APPS_COLLECTION: str = Field(
        default="apps",
        description="Firestore collection for apps (prompt versions live in a subcollection)",
    )
    FIRESTORE_VERSIONS_SUBCOLLECTION: str = Field(
        default="prompt_versions",
        description="Subcollection name for an app's prompt versions",
    )
    FIRESTORE_EXECUTIONS_COLLECTION: str = Field(
        default="execution_logs",
        description="Firestore collection for execution records",
    )
    FIRESTORE_API_KEYS_COLLECTION: str = Field(
        default="api_keys",
        description="Firestore collection for caller credentials",
    )
    FIRESTORE_VENDOR_KEYS_COLLECTION: str = Field(
        default="vendor_api_keys",
        description="Firestore collection for operator-stored vendor secrets",
    )
    FIRESTORE_QUERY_TIMEOUT_SECONDS: float = Field(
        default=8.0,
        gt=0,
        description="Maximum time to wait for Firestore queries",
    )

    # =========================================================================
    # Credential Configuration
    # =========================================================================

    API_KEY_PREFIX: str = Field(
        default="aak_",
        min_length=1,
        description="Prefix of issued caller API keys",
    )
    API_KEY_RANDOM_LENGTH: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Number of random characters after the prefix",
    )

    # =========================================================================
    # Request & Log Paging
    # =========================================================================

    MAX_REQUEST_SIZE: int = Field(
        default=1_000_000,
        ge=1,
        description="Maximum HTTP request body size in bytes (1MB default)",
    )
    LOG_DEFAULT_LIMIT: int = Field(
        default=50,
        ge=1,
        description="Default page size for execution log queries",
    )
    LOG_MAX_LIMIT: int = Field(
        default=500,
        ge=1,
        description="Upper bound on execution log page size",
    )

    # =========================================================================
    # CORS Configuration
    # =========================================================================

    CORS_ORIGINS: str = Field(
        default="*",
        description="Comma-separated allowed origins ('*' for all, restrict in production)",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure LOG_LEVEL is uppercase."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("DATABASE_PROVIDER", "DEFAULT_RESPONSE_FORMAT", mode="before")
    @classmethod
    def lowercase_choice(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @field_validator("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", mode="before")
    @classmethod
    def blank_key_is_none(cls, v: str | None) -> str | None:
        """Treat empty strings from .env as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @cached_property
    def CORS_ORIGINS_LIST(self) -> list[str]:
        """Get list of CORS origins."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def VENDOR_ENV_SECRETS(self) -> dict[str, str | None]:
        """Environment secret per vendor name."""
        return {
            "openai": self.OPENAI_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY,
            "gemini": self.GEMINI_API_KEY,
        }


# =============================================================================
# Settings Factory with Caching
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache for singleton behavior while allowing
    cache invalidation in tests.
    """
    return Settings()


# Convenience alias for direct access
settings = get_settings()


# =============================================================================
# Logging Configuration
# =============================================================================

class SanitizingFormatter(logging.Formatter):
    """
    Logging formatter that redacts sensitive information.

    Automatically redacts:
    - Bearer tokens
    - API keys (including issued aak_ caller keys)
    - Tokens
    - Passwords
    """

    SENSITIVE_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        (re.compile(r'(Bearer\s+)[^\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'\b(aak_|sk-(?:ant-)?)[A-Za-z0-9_\-]{8,}'), r'\1[REDACTED]'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with sensitive data redaction."""
        message = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(SanitizingFormatter(log_format))

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[handler],
        force=True,  # Override any existing configuration
    )

    # Suppress noisy third-party loggers
    for logger_name in ("httpx", "httpcore", "google", "openai", "anthropic", "urllib3", "grpc"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured logging.Logger instance
    """
    return logging.getLogger(name)


# Initialize logging on module load
configure_logging(settings.LOG_LEVEL)
