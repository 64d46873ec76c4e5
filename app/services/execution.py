"""
Execution gateway.

Runs one caller request against an app:

    AUTHENTICATING -> RESOLVING_CONFIG -> DISPATCHING -> RECOVERING_OUTPUT
    -> RECORDING -> DONE, with FAILED reachable from any stage.

Every attempted call leaves exactly one execution record. Auth failures
are recorded and re-raised; configuration errors are raised before any
vendor call and are not recorded. Any failure during dispatch becomes an
"error" outcome with a matching record, and a recovery miss is a success
with no structured output. A failed record write is logged and
dropped and never changes what the caller receives.

Usage:
    from app.services.execution import ExecutionGateway

    outcome = await gateway.execute(app_id, {"text": "..."}, presented_key)
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from app.config import get_logger, settings
from app.exceptions import AuthInvalidError, AuthMissingError, ConfigError, VendorError
from app.providers.database.interface import (
    AppStatus,
    ExecutionRecord,
    ExecutionStats,
    ExecutionStatus,
    PromptVersion,
)
from app.providers.llm.interface import CompletionConfig, ResponseFormat, TokenUsage, Vendor
from app.providers.llm.registry import infer_vendor
from app.services.recovery import recover_structured_output
from app.utils import elapsed_ms, prefixed_id

if TYPE_CHECKING:
    from app.providers.database.interface import DatabaseProviderInterface
    from app.providers.llm.registry import VendorRegistry
    from app.services.access import AccessGate

logger = get_logger("services.execution")

# Caller service tags for records written by direct prompt tests
TEST_SUCCESS_CALLER = "test_success"
TEST_ERROR_CALLER = "test_error"


class ExecutionStage(str, Enum):
    AUTHENTICATING = "authenticating"
    RESOLVING_CONFIG = "resolving_config"
    DISPATCHING = "dispatching"
    RECOVERING_OUTPUT = "recovering_output"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Prefix tags for error messages of non-vendor failures."""
    AUTH = "auth_error"
    API = "api_error"
    TEST = "test_error"
    EXECUTION = "execution_error"


def tag_error(kind: FailureKind, message: str) -> str:
    return f"[{kind.value}] {message}"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class ExecutionOutcome:
    """What the caller receives for one execution."""
    execution_id: str
    status: ExecutionStatus
    latency_ms: int
    output: Optional[Any] = None
    raw_response: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    error_message: Optional[str] = None
    version_id: Optional[str] = None
    recorded: bool = True

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS


@dataclass(frozen=True)
class DirectTestRequest:
    """An ad-hoc prompt run that is not tied to a stored version."""
    system_prompt: str
    input: Any
    vendor: Optional[Vendor] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    response_format: Optional[ResponseFormat] = None


@dataclass(frozen=True)
class DirectTestResult:
    output: Optional[Any]
    raw_response: str
    latency_ms: int
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    error: Optional[str] = None


@dataclass(frozen=True)
class GlobalStats:
    """Aggregates across all apps."""
    total_apps: int
    active_apps: int
    total_executions: int
    success_rate: float
    avg_latency_ms: int
    total_tokens: int


def success_rate(successes: int, total: int) -> float:
    """Percentage of successful executions; 0 when there are none."""
    if total <= 0:
        return 0.0
    return successes / total * 100


def dispatch_error_message(exc: Exception) -> str:
    """Error message for a dispatch failure that is not a VendorError."""
    return tag_error(FailureKind.EXECUTION, f"{type(exc).__name__}: {exc}")


def recover_output(content: str | None, response_format: ResponseFormat) -> Optional[Any]:
    """Structured output for JSON versions; any recovery failure is a miss."""
    if response_format != ResponseFormat.JSON:
        return None
    try:
        return recover_structured_output(content)
    except Exception as e:
        logger.warning("Output recovery failed, returning no structured output: %s", e)
        return None


# =============================================================================
# Gateway
# =============================================================================

class ExecutionGateway:
    """
    Resolves, dispatches and records app executions.

    Example:
        >>> gateway = ExecutionGateway(database, registry, access_gate)
        >>> outcome = await gateway.execute("sentim-4fK9a", {"text": "great"}, "aak_...")
        >>> outcome.status
        <ExecutionStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        database: "DatabaseProviderInterface",
        registry: "VendorRegistry",
        access_gate: "AccessGate",
    ) -> None:
        self._database = database
        self._registry = registry
        self._access = access_gate

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    async def _record(self, record: ExecutionRecord) -> bool:
        """Persist a record; on failure log and drop it."""
        try:
            await self._database.append_execution(record)
            return True
        except Exception as e:
            logger.error(
                "Dropped execution record %s for app %s: %s",
                record.id,
                record.app_id,
                e,
            )
            return False

    async def _record_failure(
        self,
        app_id: str,
        kind: FailureKind,
        message: str,
        input: Any = None,
        latency_ms: int = 0,
        caller_service: Optional[str] = None,
    ) -> bool:
        return await self._record(ExecutionRecord(
            id=prefixed_id("exec"),
            app_id=app_id,
            status=ExecutionStatus.ERROR,
            latency_ms=latency_ms,
            input=input,
            error_message=tag_error(kind, message),
            caller_service=caller_service,
        ))

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _authenticate(
        self,
        app_id: str,
        input: Any,
        presented_key: Optional[str],
        caller_service: Optional[str],
    ) -> None:
        if not presented_key:
            error = AuthMissingError()
            await self._record_failure(app_id, FailureKind.AUTH, error.message, input, 0, caller_service)
            logger.info("Rejected call to %s: missing API key", app_id)
            raise error

        decision = await self._access.validate(presented_key, app_id)
        if not decision.valid:
            error = AuthInvalidError()
            await self._record_failure(app_id, FailureKind.AUTH, error.message, input, 0, caller_service)
            logger.info("Rejected call to %s: invalid API key", app_id)
            raise error

        logger.debug("Authenticated call to %s with key %r (global=%s)", app_id, decision.name, decision.is_global)

    async def _resolve_config(self, app_id: str) -> PromptVersion:
        app = await self._database.find_app(app_id)
        if app is None:
            raise ConfigError(f"App not found: {app_id}", error_code="APP_NOT_FOUND")
        if app.status != AppStatus.ACTIVE:
            raise ConfigError(f"App is not active: {app_id}", error_code="APP_NOT_ACTIVE")

        version = await self._database.find_active_version(app_id)
        if version is None:
            raise ConfigError(
                f"No active prompt version for app: {app_id}",
                error_code="NO_ACTIVE_VERSION",
            )
        return version

    async def execute(
        self,
        app_id: str,
        input: Any,
        presented_key: Optional[str],
        caller_service: Optional[str] = None,
    ) -> ExecutionOutcome:
        """
        Execute an app's active prompt version for a caller.

        Args:
            app_id: App to call
            input: Caller input, serialized to JSON for the model
            presented_key: Caller API key (X-API-Key)
            caller_service: Free-form caller tag (X-Caller-Service)

        Returns:
            ExecutionOutcome with status success or error

        Raises:
            AuthMissingError: No key was presented (recorded)
            AuthInvalidError: Key unknown or scoped to another app (recorded)
            ConfigError: App missing, not active or without a published version
        """
        stage = ExecutionStage.AUTHENTICATING
        try:
            await self._authenticate(app_id, input, presented_key, caller_service)

            stage = ExecutionStage.RESOLVING_CONFIG
            version = await self._resolve_config(app_id)
        except (AuthMissingError, AuthInvalidError, ConfigError) as e:
            logger.info("Execution of %s failed at %s: %s", app_id, stage.value, e.message)
            raise

        return await self._dispatch(app_id, version, input, caller_service)

    async def test_version(
        self,
        app_id: str,
        version_id: str,
        input: Any,
        caller_service: Optional[str] = None,
    ) -> ExecutionOutcome:
        """
        Execute a specific prompt version, published or not.

        Raises:
            ConfigError: If the version does not exist for the app
        """
        version = await self._database.find_version(app_id, version_id)
        if version is None:
            raise ConfigError(
                f"Prompt version not found: {version_id}",
                error_code="VERSION_NOT_FOUND",
            )
        return await self._dispatch(app_id, version, input, caller_service)

    async def _dispatch(
        self,
        app_id: str,
        version: PromptVersion,
        input: Any,
        caller_service: Optional[str],
    ) -> ExecutionOutcome:
        execution_id = prefixed_id("exec")
        adapter = self._registry.get(version.vendor)
        config = CompletionConfig(
            model=version.model,
            temperature=version.temperature,
            max_tokens=version.max_tokens,
            response_format=version.response_format,
        )

        stage = ExecutionStage.DISPATCHING
        start = time.perf_counter()
        try:
            result = await adapter.complete(version.system_prompt, json.dumps(input), config)
        except VendorError as e:
            error_message = e.message
        except Exception as e:
            logger.error("Unexpected dispatch failure for app %s: %s", app_id, e, exc_info=True)
            error_message = dispatch_error_message(e)
        else:
            error_message = None

        latency_ms = elapsed_ms(start)
        if error_message is not None:
            stage = ExecutionStage.FAILED
            logger.warning(
                "Execution failed | app=%s | version=%s | vendor=%s | latency_ms=%d | error=%s",
                app_id,
                version.id,
                version.vendor.value,
                latency_ms,
                error_message,
            )
            recorded = await self._record(ExecutionRecord(
                id=execution_id,
                app_id=app_id,
                version_id=version.id,
                status=ExecutionStatus.ERROR,
                latency_ms=latency_ms,
                input=input,
                error_message=error_message,
                caller_service=caller_service,
            ))
            return ExecutionOutcome(
                execution_id=execution_id,
                status=ExecutionStatus.ERROR,
                latency_ms=latency_ms,
                error_message=error_message,
                version_id=version.id,
                recorded=recorded,
            )

        stage = ExecutionStage.RECOVERING_OUTPUT
        output = recover_output(result.content, version.response_format)

        stage = ExecutionStage.RECORDING
        recorded = await self._record(ExecutionRecord(
            id=execution_id,
            app_id=app_id,
            version_id=version.id,
            status=ExecutionStatus.SUCCESS,
            latency_ms=latency_ms,
            input=input,
            output=output,
            raw_response=result.content,
            token_usage=result.token_usage,
            caller_service=caller_service,
        ))

        stage = ExecutionStage.DONE
        logger.info(
            "Execution complete | app=%s | version=v%d | vendor=%s | latency_ms=%d | tokens=%d | stage=%s",
            app_id,
            version.version,
            version.vendor.value,
            latency_ms,
            result.token_usage.total,
            stage.value,
        )
        return ExecutionOutcome(
            execution_id=execution_id,
            status=ExecutionStatus.SUCCESS,
            latency_ms=latency_ms,
            output=output,
            raw_response=result.content,
            token_usage=result.token_usage,
            version_id=version.id,
            recorded=recorded,
        )

    async def test_direct(self, request: DirectTestRequest, app_id: Optional[str] = None) -> DirectTestResult:
        """
        Run an unsaved prompt.

        Vendor failures are returned in DirectTestResult.error rather than
        raised. A record is written only when app_id is given.
        """
        vendor = request.vendor or infer_vendor(request.model)
        adapter = self._registry.get(vendor)
        response_format = request.response_format or ResponseFormat(settings.DEFAULT_RESPONSE_FORMAT)
        config = CompletionConfig(
            model=request.model or settings.DEFAULT_MODEL,
            temperature=request.temperature if request.temperature is not None else settings.DEFAULT_TEMPERATURE,
            max_tokens=request.max_tokens or settings.DEFAULT_MAX_TOKENS,
            response_format=response_format,
        )

        start = time.perf_counter()
        try:
            result = await adapter.complete(request.system_prompt, json.dumps(request.input), config)
        except VendorError as e:
            error_message = e.message
        except Exception as e:
            logger.error("Unexpected failure in prompt test: %s", e, exc_info=True)
            error_message = dispatch_error_message(e)
        else:
            error_message = None

        latency_ms = elapsed_ms(start)
        if error_message is not None:
            logger.warning(
                "Prompt test failed | vendor=%s | model=%s | error=%s",
                vendor.value,
                config.model,
                error_message,
            )
            if app_id:
                await self._record_failure(
                    app_id,
                    FailureKind.TEST,
                    error_message,
                    request.input,
                    latency_ms,
                    TEST_ERROR_CALLER,
                )
            return DirectTestResult(output=None, raw_response="", latency_ms=latency_ms, error=error_message)

        output = recover_output(result.content, response_format)

        if app_id:
            await self._record(ExecutionRecord(
                id=prefixed_id("exec"),
                app_id=app_id,
                status=ExecutionStatus.SUCCESS,
                latency_ms=latency_ms,
                input=request.input,
                output=output,
                raw_response=result.content,
                token_usage=result.token_usage,
                caller_service=TEST_SUCCESS_CALLER,
            ))

        return DirectTestResult(
            output=output,
            raw_response=result.content,
            latency_ms=latency_ms,
            token_usage=result.token_usage,
        )

    # -------------------------------------------------------------------------
    # Logs & Stats
    # -------------------------------------------------------------------------

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            return settings.LOG_DEFAULT_LIMIT
        return min(limit, settings.LOG_MAX_LIMIT)

    async def get_logs(
        self,
        app_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[ExecutionRecord], int]:
        return await self._database.list_executions(app_id, self._clamp_limit(limit), max(offset, 0))

    async def get_log(self, execution_id: str) -> Optional[ExecutionRecord]:
        return await self._database.find_execution(execution_id)

    async def get_recent_logs(self, limit: Optional[int] = None) -> List[ExecutionRecord]:
        return await self._database.list_recent_executions(self._clamp_limit(limit))

    async def get_stats(self, app_id: str) -> ExecutionStats:
        return await self._database.execution_stats(app_id)

    async def get_global_stats(self) -> GlobalStats:
        total_apps, active_apps = await self._database.count_apps()
        stats = await self._database.execution_stats()
        return GlobalStats(
            total_apps=total_apps,
            active_apps=active_apps,
            total_executions=stats.total_executions,
            success_rate=success_rate(stats.success_count, stats.total_executions),
            avg_latency_ms=stats.avg_latency_ms,
            total_tokens=stats.total_tokens,
        )
