"""Standardized error types for AI tools.

This module provides a hierarchy of error classes with consistent
JSON serialization for tool responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in tool responses."""

    DOCUMENT_NOT_FOUND = "document_not_found"
    EDIT_REJECTED = "edit_rejected"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"
    INVALID_PARAMETER = "invalid_parameter"
    MISSING_PARAMETER = "missing_parameter"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON tool responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Document Errors
# -----------------------------------------------------------------------------

@dataclass
class DocumentNotFoundError(ToolError):
    """Error raised when a requested project file cannot be resolved."""

    error_code: str = field(default=ErrorCode.DOCUMENT_NOT_FOUND)
    message: str = field(default="File not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Call get_context without filePath to list the available files")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["file_path"] = self.file_path
        return result


# -----------------------------------------------------------------------------
# Edit Errors
# -----------------------------------------------------------------------------

@dataclass
class EditRejectedError(ToolError):
    """Error raised when a proposed edit fails validation."""

    error_code: str = field(default=ErrorCode.EDIT_REJECTED)
    message: str = field(default="Edit validation failed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(
        default="Call get_context to re-read the file and choose an old_string that matches exactly once"
    )

    violations: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.violations:
            result["violations"] = list(self.violations)
        return result


# -----------------------------------------------------------------------------
# General Errors
# -----------------------------------------------------------------------------

@dataclass
class ToolTimeoutError(ToolError):
    """Error raised when a tool exceeds its time budget."""

    error_code: str = field(default=ErrorCode.TIMEOUT)
    message: str = field(default="Tool execution timed out")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Retry the call once; report the failure if it times out again")

    timeout_seconds: float | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.timeout_seconds is not None:
            result["timeout_seconds"] = self.timeout_seconds
        return result


@dataclass
class InvalidParameterError(ToolError):
    """Error raised when a parameter value is invalid."""

    error_code: str = field(default=ErrorCode.INVALID_PARAMETER)
    message: str = field(default="Invalid parameter value")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the parameter type and allowed values")

    parameter: str | None = field(default=None)
    value: Any = field(default=None)
    expected: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter is not None:
            result["parameter"] = self.parameter
        if self.expected is not None:
            result["expected"] = self.expected
        return result


@dataclass
class MissingParameterError(ToolError):
    """Error raised when a required parameter is missing."""

    error_code: str = field(default=ErrorCode.MISSING_PARAMETER)
    message: str = field(default="Required parameter is missing")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Provide all required parameters")

    parameter: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter is not None:
            result["parameter"] = self.parameter
        return result


__all__ = [
    "ErrorCode",
    "ToolError",
    "DocumentNotFoundError",
    "EditRejectedError",
    "ToolTimeoutError",
    "InvalidParameterError",
    "MissingParameterError",
]
