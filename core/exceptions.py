"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the token event notifier.

- Provides clear exception hierarchy
- Separates startup-fatal from transient failures
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
NotifierException (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── SystemError
│   ├── StateTransitionError
│   ├── DatabaseError
│   ├── CommunicationError
│   └── EnrichmentError
└── OrchestrationError
    ├── StartupError
    └── ShutdownError

============================================================
"""

import asyncio
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, process cannot continue."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, next cycle may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, process must exit."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class NotifierException(Exception):
    """
    Base exception for all notifier errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(NotifierException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """One or more required configuration values are missing."""

    def __init__(self, keys: Iterable[str], source: str = "environment"):
        self.keys = list(keys)
        super().__init__(
            message=f"Missing required configuration: {', '.join(self.keys)}",
            context={"source": source, "missing": self.keys},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# SYSTEM ERRORS
# ============================================================

class SystemError(NotifierException):
    """Base class for system-related errors."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT


class StateTransitionError(SystemError):
    """Invalid state transition."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


class DatabaseError(SystemError):
    """Database operation failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation
        if table:
            context["table"] = table

        super().__init__(message, context=context, **kwargs)


class CommunicationError(SystemError):
    """External communication failed."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if service:
            context["service"] = service
        if endpoint:
            context["endpoint"] = endpoint
        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)


class EnrichmentError(SystemError):
    """Token metadata could not be fetched or interpreted."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(self, message: str, uri: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})

        if uri:
            context["uri"] = uri

        super().__init__(message, context=context, **kwargs)


# ============================================================
# ORCHESTRATION ERRORS
# ============================================================

class OrchestrationError(NotifierException):
    """Base class for orchestration-related errors."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class StartupError(OrchestrationError):
    """Startup sequence failed."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if stage:
            context["stage"] = stage

        super().__init__(message, context=context, **kwargs)


class ShutdownError(OrchestrationError):
    """Shutdown sequence failed."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if component:
            context["component"] = component

        super().__init__(message, context=context, **kwargs)


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def classify_exception(exc: BaseException) -> ErrorClassification:
    """Classify an exception for error handling."""
    if isinstance(exc, NotifierException):
        return exc.classification

    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)):
        return ErrorClassification.TRANSIENT

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorClassification.RECOVERABLE

    if isinstance(exc, (SystemExit, KeyboardInterrupt, MemoryError)):
        return ErrorClassification.NON_RECOVERABLE

    return ErrorClassification.RECOVERABLE


__all__ = [
    "Severity",
    "ErrorClassification",
    "NotifierException",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "SystemError",
    "StateTransitionError",
    "DatabaseError",
    "CommunicationError",
    "EnrichmentError",
    "OrchestrationError",
    "StartupError",
    "ShutdownError",
    "classify_exception",
]
