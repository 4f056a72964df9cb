"""Pydantic models for request and response bodies.

Field names on the wire follow the public API (``executionTimeMs``,
``errorType``); the models accept either the alias or the Python name.
Request validation messages are the exact strings returned to clients
in 400 responses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .executor.base import DEFAULT_TIMEOUT_MS, MAX_CODE_LENGTH, ExecutionResult, clamp_timeout


class ExecuteRequest(BaseModel):
    """Request body for ``POST /api/execute``."""

    code: Any = Field(default=None, validate_default=True, description="Source code to execute.")
    language: Any = Field(default="javascript", description="'javascript' (or 'js') and 'python' (or 'py').")
    timeout: Any = Field(
        default=DEFAULT_TIMEOUT_MS,
        description="Deadline in milliseconds, clamped to the supported range.",
    )

    @field_validator("code", mode="before")
    @classmethod
    def _check_code(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("Code is required")
        if not isinstance(value, str):
            raise ValueError("Code must be a string")
        if len(value) > MAX_CODE_LENGTH:
            raise ValueError(f"Code too long (max {MAX_CODE_LENGTH} characters)")
        return value

    @field_validator("language", mode="before")
    @classmethod
    def _check_language(cls, value: Any) -> str:
        if value is None:
            return "javascript"
        if not isinstance(value, str):
            raise ValueError("Language must be a string")
        return value

    @field_validator("timeout", mode="before")
    @classmethod
    def _check_timeout(cls, value: Any) -> int:
        if value is None:
            return DEFAULT_TIMEOUT_MS
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError("Timeout must be a number")
        try:
            # numeric strings are coerced the way JSON clients expect
            return clamp_timeout(int(float(value)))
        except (ValueError, OverflowError):
            raise ValueError("Timeout must be a number")


class ExecuteResponse(BaseModel):
    """Response body for code execution."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = Field(default=None, alias="errorType")
    logs: List[str] = Field(default_factory=list)
    language: str
    execution_time_ms: int = Field(..., alias="executionTimeMs")
    timestamp: str

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecuteResponse":
        return cls.model_validate(result.to_dict())


class ErrorResponse(BaseModel):
    """Body returned for rejected or failed requests."""

    success: bool = False
    error: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float


class ServiceInfo(BaseModel):
    status: str
    message: str
    version: str
    endpoints: Dict[str, str]
