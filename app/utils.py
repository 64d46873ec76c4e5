"""
Utility functions for the gateway.

Provides common functionality for:
- Input sanitization
- Identifier and API key generation
- Secret digests, masking and encoding
- Detached background tasks
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import re
import secrets
import string
import time
import unicodedata
from typing import Any, Coroutine, Set

from app.config import get_logger

logger = get_logger("utils")


# =============================================================================
# Input Sanitization
# =============================================================================

# Patterns for potentially dangerous content
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
_EXCESSIVE_WHITESPACE = re.compile(r'\s{10,}')
_NULL_BYTES = re.compile(r'\x00')


def sanitize_text(text: str | None, max_length: int | None = None) -> str:
    """
    Sanitize free-form text such as names and caller service tags.

    - Removes control characters
    - Normalizes Unicode (NFC form)
    - Removes null bytes
    - Collapses excessive whitespace
    - Strips leading/trailing whitespace
    - Optionally truncates to max_length

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length (None for no limit)

    Returns:
        Sanitized text string
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFC", text)
    text = _NULL_BYTES.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _EXCESSIVE_WHITESPACE.sub(" ", text)
    text = text.strip()

    if max_length and len(text) > max_length:
        text = text[:max_length]
        logger.debug("Text truncated to %d characters", max_length)

    return text


# =============================================================================
# Identifiers
# =============================================================================

# URL-safe alphabet, same character set as nanoid
_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_NON_SLUG = re.compile(r'[^a-z0-9]+')


def random_token(length: int) -> str:
    """Generate a cryptographically random URL-safe token."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def prefixed_id(prefix: str, length: int = 10) -> str:
    """
    Generate an entity id such as "pv-V1StGXR8_Z".

    Args:
        prefix: Entity prefix without the dash ("pv", "exec", "ak")
        length: Number of random characters
    """
    return f"{prefix}-{random_token(length)}"


def slugify(name: str, max_length: int = 6) -> str:
    """Lowercase kebab-case slug of a name, truncated without a trailing dash."""
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG.sub("-", name.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def generate_app_id(name: str) -> str:
    """
    Generate an app id from its name, e.g. "Sentiment Analyzer" -> "sentim-4fK9a".

    Names without any ASCII letters or digits get an "app" slug.
    """
    return f"{slugify(name) or 'app'}-{random_token(5)}"


# =============================================================================
# Secrets
# =============================================================================

def generate_api_key(prefix: str, length: int) -> str:
    """Generate a caller API key, e.g. "aak_" followed by random characters."""
    return f"{prefix}{random_token(length)}"


def digest_key(key: str) -> str:
    """SHA-256 hex digest of an API key. Only digests are stored."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def mask_secret(secret: str) -> str:
    """Mask a secret to its last 4 characters ("****abcd")."""
    if len(secret) <= 4:
        return "****"
    return "****" + secret[-4:]


def encode_secret(secret: str) -> str:
    return base64.b64encode(secret.encode("utf-8")).decode("ascii")


def decode_secret(encoded: str) -> str:
    return base64.b64decode(encoded.encode("ascii")).decode("utf-8")


# =============================================================================
# Timing
# =============================================================================

def elapsed_ms(start: float) -> int:
    """Milliseconds since a time.perf_counter() reading."""
    return round((time.perf_counter() - start) * 1000)


# =============================================================================
# Background Tasks
# =============================================================================

# Strong references so pending tasks are not garbage collected
_background_tasks: Set[asyncio.Task] = set()


def fire_and_forget(coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
    """
    Schedule a best-effort coroutine without awaiting it.

    Failures are logged and never reach the caller.

    Args:
        coro: Coroutine to run
        label: Short description for log messages
    """
    task = asyncio.create_task(coro)
    _background_tasks.add(task)

    def _done(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.warning("Background task failed (%s): %s", label, exc)

    task.add_done_callback(_done)
    return task
