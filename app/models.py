"""
Pydantic models for request/response validation and OpenAPI documentation.

This module defines all data transfer objects (DTOs) used in the API:
- Request models with validation
- Response models for consistent API outputs
- Converters from domain dataclasses to response models

Usage:
    from app.models import ExecuteRequest, ExecutionResponse, ErrorResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.providers.database.interface import (
    App,
    AppStatus,
    Credential,
    ExecutionRecord,
    ExecutionStats,
    ExecutionStatus,
    PromptVersion,
)
from app.providers.llm.interface import ModelDescriptor, ResponseFormat, TokenUsage, Vendor


# =============================================================================
# Constants
# =============================================================================

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
MAX_OUTPUT_TOKENS = 128000


# =============================================================================
# Request Models
# =============================================================================

class ExecuteRequest(BaseModel):
    """
    Caller payload for executing an app.

    Example:
        >>> ExecuteRequest(input={"text": "I love this product"})
    """

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"input": {"text": "I love this product"}}]},
    )

    input: dict[str, Any] = Field(
        ...,
        description="Caller input, passed to the model as JSON",
    )


class PromptSettingsRequest(BaseModel):
    """Prompt configuration fields shared by app and version creation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    system_prompt: str = Field(
        ...,
        min_length=1,
        description="System prompt sent to the model",
    )
    vendor: Vendor | None = Field(
        default=None,
        description="Vendor; inferred from the model when omitted",
    )
    model: str | None = Field(
        default=None,
        description="Vendor model id",
        examples=["gpt-4o", "claude-sonnet-4-20250514", "gemini-2.5-flash"],
    )
    temperature: float | None = Field(default=None, ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE)
    max_tokens: int | None = Field(default=None, ge=1, le=MAX_OUTPUT_TOKENS)
    response_format: ResponseFormat | None = Field(default=None)


class AppCreateRequest(PromptSettingsRequest):
    """
    Create an app with its first prompt version.

    Example:
        >>> AppCreateRequest(name="Sentiment", system_prompt="Classify the sentiment as JSON.")
    """

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty or whitespace only")
        return v


class AppUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)


class VersionTestRequest(BaseModel):
    input: dict[str, Any] = Field(..., description="Input to run the version with")


class DirectTestRequestBody(PromptSettingsRequest):
    """Run an unsaved prompt; recorded against app_id when given."""

    input: dict[str, Any] = Field(...)
    app_id: str | None = Field(default=None, description="App to record the test against")


class ApiKeyCreateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=200)


class GlobalApiKeyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class VendorKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=1, description="Vendor API key")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response format.

    All API errors return this format for consistency.
    """

    model_config = ConfigDict(frozen=True)

    detail: str = Field(..., description="Error message")
    error_type: str = Field(
        ...,
        description="Error classification",
        examples=["AuthInvalidError", "ConfigError", "NotFoundError"],
    )
    error_code: str | None = Field(default=None, description="Machine-readable error code")


class TokenUsageResponse(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0

    @classmethod
    def from_usage(cls, usage: TokenUsage | None) -> "TokenUsageResponse | None":
        if usage is None:
            return None
        return cls(prompt=usage.prompt, completion=usage.completion, total=usage.total)


class ExecutionResponse(BaseModel):
    """
    Result of one execution, returned to callers.

    The same body is sent with 200 on success and 502 on vendor failure.
    """

    execution_id: str
    output: Any | None = None
    status: ExecutionStatus
    latency_ms: int
    token_usage: TokenUsageResponse | None = None
    error_message: str | None = None


class ExecutionLogResponse(BaseModel):
    id: str
    app_id: str
    version_id: str | None = None
    status: ExecutionStatus
    latency_ms: int
    input: Any | None = None
    output: Any | None = None
    raw_response: str | None = None
    token_usage: TokenUsageResponse | None = None
    error_message: str | None = None
    caller_service: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: ExecutionRecord) -> "ExecutionLogResponse":
        return cls(
            id=record.id,
            app_id=record.app_id,
            version_id=record.version_id,
            status=record.status,
            latency_ms=record.latency_ms,
            input=record.input,
            output=record.output,
            raw_response=record.raw_response,
            token_usage=TokenUsageResponse.from_usage(record.token_usage),
            error_message=record.error_message,
            caller_service=record.caller_service,
            created_at=record.created_at,
        )


class ExecutionLogPage(BaseModel):
    logs: list[ExecutionLogResponse]
    total: int
    limit: int
    offset: int


class AppStatsResponse(BaseModel):
    total_executions: int
    success_count: int
    error_count: int
    avg_latency_ms: int
    total_tokens: int

    @classmethod
    def from_stats(cls, stats: ExecutionStats) -> "AppStatsResponse":
        return cls(
            total_executions=stats.total_executions,
            success_count=stats.success_count,
            error_count=stats.error_count,
            avg_latency_ms=stats.avg_latency_ms,
            total_tokens=stats.total_tokens,
        )


class GlobalStatsResponse(BaseModel):
    total_apps: int
    active_apps: int
    total_executions: int
    success_rate: float
    avg_latency_ms: int
    total_tokens: int


class PromptVersionResponse(BaseModel):
    id: str
    app_id: str
    version: int
    system_prompt: str
    vendor: Vendor
    model: str
    temperature: float
    max_tokens: int
    response_format: ResponseFormat
    is_published: bool
    published_at: datetime | None = None
    created_at: datetime
    created_by: str

    @classmethod
    def from_version(cls, version: PromptVersion) -> "PromptVersionResponse":
        return cls(
            id=version.id,
            app_id=version.app_id,
            version=version.version,
            system_prompt=version.system_prompt,
            vendor=version.vendor,
            model=version.model,
            temperature=version.temperature,
            max_tokens=version.max_tokens,
            response_format=version.response_format,
            is_published=version.is_published,
            published_at=version.published_at,
            created_at=version.created_at,
            created_by=version.created_by,
        )


class AppResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    status: AppStatus
    active_version_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_app(cls, app: App) -> "AppResponse":
        return cls(
            id=app.id,
            name=app.name,
            description=app.description,
            status=app.status,
            active_version_id=app.active_version_id,
            created_at=app.created_at,
            updated_at=app.updated_at,
        )


class IssuedApiKeyResponse(BaseModel):
    """A new key. The plaintext key is only ever returned here."""

    id: str
    name: str
    key: str
    app_id: str | None = None
    created_at: datetime


class AppCreatedResponse(BaseModel):
    app: AppResponse
    version: PromptVersionResponse
    api_key: IssuedApiKeyResponse


class ApiKeyResponse(BaseModel):
    id: str
    name: str
    app_id: str | None = None
    created_at: datetime
    last_used_at: datetime | None = None

    @classmethod
    def from_credential(cls, credential: Credential) -> "ApiKeyResponse":
        return cls(
            id=credential.id,
            name=credential.name,
            app_id=credential.app_id,
            created_at=credential.created_at,
            last_used_at=credential.last_used_at,
        )


class DirectTestResponse(BaseModel):
    output: Any | None = None
    raw_response: str
    latency_ms: int
    token_usage: TokenUsageResponse
    error: str | None = None


class VendorKeyStatusResponse(BaseModel):
    vendor: Vendor
    configured: bool
    source: str | None = None
    masked_key: str | None = None
    updated_at: datetime | None = None


class ModelResponse(BaseModel):
    id: str
    name: str
    context_window: int
    max_output: int

    @classmethod
    def from_descriptor(cls, model: ModelDescriptor) -> "ModelResponse":
        return cls(
            id=model.id,
            name=model.name,
            context_window=model.context_window,
            max_output=model.max_output,
        )


class VendorResponse(BaseModel):
    name: Vendor
    display_name: str
    available: bool
    models: list[ModelResponse]


class VendorStatusResponse(BaseModel):
    name: Vendor
    available: bool


class VendorOption(BaseModel):
    id: str
    display_name: str


class VendorCatalogResponse(BaseModel):
    """Vendors with a usable secret and their models, for selection lists."""

    vendors: list[VendorOption]
    models_by_vendor: dict[str, list[VendorOption]]


class SuccessResponse(BaseModel):
    success: bool = True


# =============================================================================
# Health Models
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response with service statuses.

    Example:
        >>> health = HealthResponse(
        ...     status="healthy",
        ...     services={"database": {"status": "healthy"}},
        ...     timestamp="2024-01-01T00:00:00Z"
        ... )
    """

    status: str = Field(
        ...,
        description="Overall health status",
        examples=["healthy", "degraded", "unhealthy"],
    )
    services: dict[str, Any] = Field(..., description="Individual service health statuses")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(default="1.0.0", description="API version")


class ReadinessResponse(BaseModel):
    """Readiness probe response for container orchestration."""

    model_config = ConfigDict(frozen=True)

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    checks: dict[str, bool] = Field(default_factory=dict)


class PingResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = Field(default="ok", description="Ping status")
