"""EnergyIntegration Exception Hierarchy.

Rich-context exceptions for the EnergyIntegration front-end data layer.

Exception Hierarchy:
    EnergyIntegrationException (base)
    ├── ConfigurationError
    └── StreamSpecException
        ├── UnitConversionError
        ├── PayloadBlockedError
        ├── StreamNotFoundError
        ├── StreamsetFormatError
        └── SolverResponseError

Validation never raises: a bad stream description produces diagnostics,
not exceptions. These classes cover programmer errors, malformed files,
gated actions and failed solver responses.

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from energy_integration.exceptions import StreamNotFoundError
    >>> raise StreamNotFoundError(
    ...     message="Unknown stream",
    ...     stream_id="4f1c...",
    ... )
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class EnergyIntegrationException(Exception):
    """Base exception for all EnergyIntegration errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "EI_STREAM_SPEC_UNIT_CONVERSION_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "EI"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate error code from the class name.

        Returns:
            Error code like "EI_STREAM_SPEC_STREAM_NOT_FOUND_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


class ConfigurationError(EnergyIntegrationException):
    """Service configuration is invalid.

    Example:
        >>> raise ConfigurationError(
        ...     message="temperature_tolerance must be >= 0",
        ...     context={"temperature_tolerance": -1.0},
        ... )
    """
    pass


# ==============================================================================
# Stream Specification Exceptions
# ==============================================================================

class StreamSpecException(EnergyIntegrationException):
    """Base exception for the stream specification engine."""
    ERROR_PREFIX = "EI_STREAM_SPEC"


class UnitConversionError(StreamSpecException):
    """A unit label is not known for the requested quantity.

    Only raised when strict unit handling is enabled; the default is to
    treat unknown labels as already-SI.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        quantity: Optional[str] = None,
        unit: Optional[str] = None,
    ):
        context = context or {}
        if quantity:
            context["quantity"] = quantity
        if unit is not None:
            context["unit"] = unit
        super().__init__(message, context=context)


class PayloadBlockedError(StreamSpecException):
    """The SI payload was requested while blocking diagnostics exist.

    Example:
        >>> raise PayloadBlockedError(
        ...     message="2 blocking issue(s)",
        ...     issues=[{"level": "error", "field": "Tout", ...}],
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        issues: Optional[List[Any]] = None,
    ):
        """Initialize payload blocked error.

        Args:
            message: Error message
            context: Error context
            issues: Blocking issues (pydantic models or dicts)
        """
        context = context or {}
        self.issues = list(issues or [])
        context["issues"] = [
            i.model_dump(mode="json", by_alias=True) if hasattr(i, "model_dump") else i
            for i in self.issues
        ]
        super().__init__(message, context=context)


class StreamNotFoundError(StreamSpecException):
    """No stream with the given id exists in the session."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        stream_id: Optional[str] = None,
    ):
        context = context or {}
        if stream_id:
            context["stream_id"] = stream_id
        super().__init__(message, context=context)


class StreamsetFormatError(StreamSpecException):
    """A saved streamset could not be parsed.

    Example:
        >>> raise StreamsetFormatError(
        ...     message="streams must be a list",
        ...     source="plant.json",
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        source: Optional[str] = None,
    ):
        context = context or {}
        if source:
            context["source"] = source
        super().__init__(message, context=context)


class SolverResponseError(StreamSpecException):
    """The external solver answered with a failure body."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        context = context or {}
        if body is not None:
            context["body"] = body
        super().__init__(message, context=context)


__all__ = [
    "EnergyIntegrationException",
    "ConfigurationError",
    "StreamSpecException",
    "UnitConversionError",
    "PayloadBlockedError",
    "StreamNotFoundError",
    "StreamsetFormatError",
    "SolverResponseError",
]
